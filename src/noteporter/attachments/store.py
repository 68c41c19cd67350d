"""Per-run attachment registry with first-writer-wins deduplication."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator

from ..models.note import Attachment

logger = logging.getLogger(__name__)


class AttachmentStore:
    """
    Registry of every attachment materialized during one import run.

    Element handlers for different notes may interleave at await points, so
    registration goes through a lock: the first attachment registered for a
    hash is the one that is kept, later registrations get that instance back.
    Create one store per run and discard it with the archive.

    Example:
        store = AttachmentStore()

        stored, is_new = await store.register(attachment)
        if not is_new:
            logger.debug(f"Reusing {stored.filename} for {attachment.filename}")
    """

    def __init__(self) -> None:
        # hash -> first attachment registered with that hash
        self._attachments: dict[str, Attachment] = {}
        self._lock = asyncio.Lock()

        self._total_registered: int = 0
        self._duplicates_found: int = 0

    async def register(self, attachment: Attachment) -> tuple[Attachment, bool]:
        """
        Register an attachment unless its hash is already known.

        Args:
            attachment: Freshly created attachment

        Returns:
            A tuple of (stored_attachment, is_new):
            - (attachment, True) = first time this hash was seen
            - (existing, False) = hash already registered, existing instance returned
        """
        async with self._lock:
            self._total_registered += 1

            existing = self._attachments.get(attachment.hash)
            if existing is not None:
                self._duplicates_found += 1
                return existing, False

            self._attachments[attachment.hash] = attachment
            logger.debug(f"Registered attachment {attachment.hash} ({attachment.filename})")
            return attachment, True

    def get(self, content_hash: str) -> Attachment | None:
        return self._attachments.get(content_hash)

    def __contains__(self, content_hash: object) -> bool:
        return content_hash in self._attachments

    def __len__(self) -> int:
        return len(self._attachments)

    def __iter__(self) -> Iterator[Attachment]:
        """Attachments in registration order."""
        return iter(list(self._attachments.values()))

    def get_stats(self) -> dict:
        """
        Get registration statistics.

        Returns:
            Dictionary with unique, total and duplicates counts
        """
        return {
            "unique": len(self._attachments),
            "total": self._total_registered,
            "duplicates": self._duplicates_found,
        }

    def clear(self) -> None:
        """Drop all state."""
        self._attachments.clear()
        self._total_registered = 0
        self._duplicates_found = 0
