"""Lay out notes and attachments as archive entries."""

from __future__ import annotations

import hashlib
import json
import logging
import re
from collections.abc import AsyncIterator, Iterable
from typing import Optional

from ..attachments.resolver import AttachmentResolver
from ..attachments.store import AttachmentStore
from ..errors import AttachmentResolutionError
from ..models.note import DEFAULT_TITLE, Attachment, Note
from .zip_stream import ZipEntry

logger = logging.getLogger(__name__)

ATTACHMENTS_DIR = "attachments"
MAX_NAME_LENGTH = 200


def sanitize(name: str) -> str:
    """
    Make a title safe to use as one path segment.

    Args:
        name: Note or notebook title

    Returns:
        Sanitized name
    """
    name = re.sub(r"[\\/>]", "-", name)
    name = re.sub(r'[<:"|?*\x00-\x1f]', "", name)
    name = re.sub(r"\s+", " ", name).strip(" .")

    if len(name) > MAX_NAME_LENGTH:
        # Hash the overflow to prevent collisions
        overflow = name[180:]
        name_hash = hashlib.md5(overflow.encode()).hexdigest()[:8]
        name = name[:180] + "-" + name_hash

    return name or DEFAULT_TITLE


def attachment_path(attachment: Attachment) -> str:
    """``attachments/<hash><ext>``; identical payloads share one path."""
    return f"{ATTACHMENTS_DIR}/{attachment.hash}{attachment.extension}"


class _NameAllocator:
    """Hands out ``title``, ``title (1)``, ``title (2)``... per directory."""

    def __init__(self) -> None:
        self._taken: set[str] = set()

    def allocate(self, directory: str, title: str) -> str:
        base = f"{directory}/{title}" if directory else title
        candidate, counter = base, 0
        while candidate.lower() in self._taken:
            counter += 1
            candidate = f"{base} ({counter})"
        self._taken.add(candidate.lower())
        return candidate


async def pack(
    notes: Iterable[Note],
    store: AttachmentStore,
    resolver: Optional[AttachmentResolver] = None,
) -> AsyncIterator[ZipEntry]:
    """
    Turn imported notes into archive entries.

    Each note is written once per notebook it belongs to (at the root if
    it has none) as ``<notebook>/<topic>/<title>.html`` plus a ``.json``
    metadata sidecar. Attachments follow the note that first references
    them as ``attachments/<hash><ext>``. Attachments without payload bytes
    are fetched through ``resolver``; those that cannot be fetched are
    logged and left out.

    Args:
        notes: Notes in import order
        store: The run's attachment store
        resolver: Resolver for attachments referenced only by locator

    Yields:
        ZipEntry per body, sidecar and attachment
    """
    names = _NameAllocator()
    emitted: set[str] = set()

    for note in notes:
        directories = [
            "/".join(sanitize(part) for part in notebook.path.split("/")) for notebook in note.notebooks
        ] or [""]
        metadata = json.dumps(note.to_dict(), indent=2, ensure_ascii=False).encode("utf-8")
        body = note.content.data if note.content else ""

        for directory in directories:
            base = names.allocate(directory, sanitize(note.title))
            yield ZipEntry(f"{base}.html", body.encode("utf-8"))
            yield ZipEntry(f"{base}.json", metadata)

        for attachment in note.attachments:
            if attachment.hash in emitted:
                continue
            stored = store.get(attachment.hash) or attachment
            data = stored.data
            if data is None and stored.locator and resolver is not None:
                try:
                    data = await resolver.resolve(stored.locator)
                except AttachmentResolutionError as e:
                    logger.warning(f"Leaving out attachment {stored.filename}: {e}")
            if data is None:
                continue
            emitted.add(stored.hash)
            yield ZipEntry(attachment_path(stored), data)
