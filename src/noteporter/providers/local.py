"""Shared conversion for single-document local files (Markdown, text, HTML)."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from typing import Optional

from bs4 import BeautifulSoup

from ..attachments.resolver import AttachmentResolver, CompositeResolver, DataUriResolver, LocalFileResolver
from ..attachments.store import AttachmentStore
from ..content.html import HtmlTransformer
from ..errors import ProviderFatalError
from ..models.config import ImporterSettings
from ..models.messages import ProviderMessage, error, log, note_message
from ..models.note import DEFAULT_TITLE, ContentType, Note, NoteContent
from .base import BaseProvider, File
from .handler import HtmlElementHandler

logger = logging.getLogger(__name__)


class LocalDocumentProvider(BaseProvider):
    """
    Base class for providers where one file is one note.

    Subclasses turn the file text into an HTML fragment with ``render`` and
    may fill in note properties with ``apply_metadata``. Relative images and
    objects are resolved against the other files of the import and the
    file's own directory. Creation and modification dates fall back to the
    filesystem's.
    """

    def __init__(self, store: Optional[AttachmentStore] = None) -> None:
        super().__init__(store)
        self._transformer = HtmlTransformer()

    def render(self, file: File, text: str) -> str:
        """Return an HTML fragment for the file text."""
        raise NotImplementedError

    def document(self, html: str) -> str:
        """
        Give the rendered markup the ``<body>`` root the transformer starts from.

        Rendered fragments always get a fresh root; a ``<body>`` inside them
        is ordinary content.
        """
        return f"<body>{html}</body>"

    def body_title(self, html: str) -> Optional[str]:
        """Title taken from the transformed body when no other source gave one."""
        return None

    def apply_metadata(self, note: Note, file: File, text: str) -> str:
        """
        Fill note properties from the source text.

        Returns:
            The text left to render
        """
        return text

    def resolver_for(self, file: File, files: Sequence[File], settings: ImporterSettings) -> AttachmentResolver:
        if settings.resolver is not None:
            return settings.resolver
        return CompositeResolver(
            [
                DataUriResolver(),
                LocalFileResolver(base_dir=file.directory, files=[f.path for f in files]),
            ]
        )

    async def process(
        self,
        file: File,
        settings: ImporterSettings,
        files: Sequence[File] = (),
    ) -> AsyncIterator[ProviderMessage]:
        try:
            text = await file.read_text()
        except OSError as err:
            raise ProviderFatalError(f"Cannot read {file.path}: {err}") from err

        yield log(f"Found {file.name}...")
        note = Note(title="")
        remaining = self.apply_metadata(note, file, text)

        if note.date_created is None:
            note.date_created = file.created_at
        if note.date_edited is None:
            note.date_edited = file.modified_at

        handler = HtmlElementHandler(note, settings.hasher, self.store, self.resolver_for(file, files, settings))
        failure: Optional[Exception] = None
        html = ""
        try:
            html = await self._transformer.transform(self.document(self.render(file, remaining)), handler)
            note.content = NoteContent(type=ContentType.HTML, data=html.strip())
        except Exception as e:
            logger.warning(f"Failed to process {file.name}: {e}")
            failure = e

        if not note.title:
            note.title = self.body_title(html) or file.stem or DEFAULT_TITLE
        if failure is not None:
            yield error(failure, note)
        for resolution_error in handler.errors:
            yield error(resolution_error, note)

        logger.debug(f"Converted {file.name} ({len(note.attachments)} attachments)")
        yield note_message(note)


def first_text(document: BeautifulSoup, selectors: Sequence[str]) -> Optional[str]:
    """Text of the first non-empty element matching one of the selectors, in order."""
    for selector in selectors:
        element = document.select_one(selector)
        if element is not None and element.get_text(strip=True):
            return element.get_text(strip=True)
    return None


def heading_title(html: str) -> Optional[str]:
    """Text of the first non-empty h1 or h2 of transformed markup."""
    return first_text(BeautifulSoup(html, "html.parser"), ("h1, h2",))
