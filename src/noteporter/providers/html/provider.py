"""Standalone HTML file provider."""

from __future__ import annotations

from typing import Optional

from bs4 import BeautifulSoup

from ...models.note import Note
from ..base import File, ProviderType
from ..local import LocalDocumentProvider, first_text, heading_title


class HtmlProvider(LocalDocumentProvider):
    """
    One note per ``.html``/``.htm`` file.

    The title comes from ``<title>``, then the first h1/h2 of the converted
    body, then the filename. A document's own top-level ``<body>`` is the
    content root; fragments without one are imported as-is.
    """

    id = "html"
    name = "HTML"
    type = ProviderType.FILE
    supported_extensions = (".html", ".htm")
    examples = ("index.html", "saved-page.htm")

    def apply_metadata(self, note: Note, file: File, text: str) -> str:
        note.title = first_text(BeautifulSoup(text, "html.parser"), ("title",)) or note.title
        return text

    def render(self, file: File, text: str) -> str:
        return text

    def document(self, html: str) -> str:
        soup = BeautifulSoup(html, "html.parser")
        top = soup.find("html", recursive=False) or soup
        if top.find("body", recursive=False) is not None:
            return html
        return super().document(html)

    def body_title(self, html: str) -> Optional[str]:
        return heading_title(html)
