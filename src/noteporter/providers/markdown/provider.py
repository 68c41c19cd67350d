"""Markdown and plain text provider."""

from __future__ import annotations

import html
import logging
import re

import markdown

from ...models.note import Note
from ..base import File, ProviderType
from ..local import LocalDocumentProvider
from .frontmatter import parse_front_matter, split_front_matter

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = (".md", ".markdown")
MARKDOWN_FEATURES = ["extra", "sane_lists"]

_PARAGRAPH_BREAK = re.compile(r"\r?\n[ \t]*\r?\n")


def markdown_to_html(text: str) -> str:
    return markdown.markdown(text, extensions=MARKDOWN_FEATURES, output_format="html")


def text_to_html(text: str) -> str:
    """Escape plain text into paragraphs; single newlines become ``<br>``."""
    paragraphs = []
    for block in _PARAGRAPH_BREAK.split(text.strip()):
        if not block.strip():
            continue
        lines = [html.escape(line) for line in block.splitlines()]
        paragraphs.append(f"<p>{'<br>'.join(lines)}</p>")
    return "".join(paragraphs)


class MarkdownProvider(LocalDocumentProvider):
    """
    One note per ``.md``/``.markdown``/``.txt`` file.

    Markdown files may start with a YAML front matter block overriding the
    title, tags, dates, pin, favorite and color. Each field has a list of
    accepted keys and the first one with a value wins, e.g. the creation date
    is read from ``created``, then ``created_at``, then ``date created``. A
    key left empty (``created:``) is skipped like a missing one. Without
    front matter the title is the filename and the dates come from the
    filesystem.

    Example:
        ---
        title: Groceries
        created_at: 2023-04-01T10:00:00Z
        tags: [home, lists]
        pinned: true
        ---
        - milk
    """

    id = "md"
    name = "Markdown/Text"
    type = ProviderType.FILE
    supported_extensions = (*MARKDOWN_EXTENSIONS, ".txt")
    examples = ("document.md", "import-help.txt")

    def apply_metadata(self, note: Note, file: File, text: str) -> str:
        if file.extension not in MARKDOWN_EXTENSIONS:
            return text

        data, body = split_front_matter(text)
        if not data:
            return text

        front = parse_front_matter(data)
        note.title = front.title or note.title
        note.tags = front.tags
        note.date_created = front.created
        note.date_edited = front.edited
        note.pinned = front.pinned
        note.favorite = front.favorite
        note.color = front.color
        logger.debug(f"Applied front matter to {file.name}: {sorted(data)}")
        return body

    def render(self, file: File, text: str) -> str:
        if file.extension in MARKDOWN_EXTENSIONS:
            return markdown_to_html(text)
        return text_to_html(text)
