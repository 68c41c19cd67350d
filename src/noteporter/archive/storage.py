"""In-memory note storage between import and packing."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from ..models.note import Note

logger = logging.getLogger(__name__)


class MemoryStorage:
    """
    Ordered collection of imported notes.

    Example:
        storage = MemoryStorage()
        storage.add(note)
        entries = pack(storage, store)
    """

    def __init__(self) -> None:
        self._notes: list[Note] = []

    def add(self, note: Note) -> None:
        self._notes.append(note)

    def __iter__(self) -> Iterator[Note]:
        return iter(self._notes)

    def __len__(self) -> int:
        return len(self._notes)

    def get_stats(self) -> dict[str, int]:
        return {
            "notes": len(self._notes),
            "attachments": sum(len(note.attachments) for note in self._notes),
        }

    def clear(self) -> None:
        self._notes.clear()
