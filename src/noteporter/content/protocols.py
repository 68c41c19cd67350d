"""Protocol definitions for element handlers."""

from typing import Optional, Protocol

from bs4 import Tag


class ElementHandler(Protocol):
    """
    Per-format visitor that rewrites one classified element.

    Handlers may resolve and register attachments as a side effect. The
    return value replaces the element; ``None`` (or an empty string) deletes
    it. Handling the same element twice against the same attachment store
    must produce the same attachment hashes.
    """

    async def process(self, element_type: str, element: Tag) -> Optional[str]:
        """
        Produce replacement markup for an element.

        Args:
            element_type: Classification chosen by the transformer
            element: The element, with its attributes already normalized

        Returns:
            Replacement markup, or None to delete the element
        """
        ...


class ClipSource(Protocol):
    """Provenance metadata consulted for full-page web clip detection."""

    source_url: Optional[str]
    source_application: Optional[str]
