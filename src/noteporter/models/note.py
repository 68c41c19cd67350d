"""Normalized note model shared by every provider."""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

DEFAULT_TITLE = "Untitled note"


class ContentType(str, Enum):
    """Markup flavour of a note body."""

    HTML = "html"


@dataclass(frozen=True)
class NoteContent:
    """Transformed note body."""

    type: ContentType
    data: str


@dataclass(frozen=True)
class Notebook:
    """
    One grouping path a note belongs to.

    Attributes:
        title: Notebook name, or a flattened "Notebook: GroupB>GroupA" path
        topic: Optional second level (a OneNote section)
    """

    title: str
    topic: Optional[str] = None

    @property
    def path(self) -> str:
        """Slash-joined path used for archive entry names."""
        if self.topic:
            return f"{self.title}/{self.topic}"
        return self.title


@dataclass(frozen=True)
class Attachment:
    """
    Content-addressed binary payload.

    Identity is ``hash``; two attachments with the same hash are the same
    attachment regardless of filename.

    Attributes:
        hash: Content hash produced by the run's Hasher
        filename: Original (or synthesized) filename
        mime: MIME type if known
        size: Payload size in bytes
        data: Payload bytes, if held in memory
        locator: Where the payload can be re-fetched from, if not held in memory
    """

    hash: str
    filename: str
    mime: Optional[str] = None
    size: Optional[int] = None
    data: Optional[bytes] = field(default=None, repr=False, compare=False)
    locator: Optional[str] = field(default=None, compare=False)

    @property
    def extension(self) -> str:
        """File extension for the stored payload, including the dot."""
        if "." in self.filename:
            suffix = "." + self.filename.rsplit(".", 1)[1].lower()
            if 1 < len(suffix) <= 10:
                return suffix
        if self.mime:
            guessed = mimetypes.guess_extension(self.mime)
            if guessed:
                return guessed
        return ".bin"

    def to_dict(self) -> dict[str, Any]:
        """Metadata without the payload."""
        return {
            "hash": self.hash,
            "filename": self.filename,
            "mime": self.mime,
            "size": self.size,
        }


@dataclass
class Note:
    """
    A note under construction by a provider.

    Providers mutate a Note only until they yield it; consumers must treat
    yielded notes as read-only.
    """

    title: str = DEFAULT_TITLE
    id: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    date_created: Optional[datetime] = None
    date_edited: Optional[datetime] = None
    pinned: Optional[bool] = None
    favorite: Optional[bool] = None
    color: Optional[str] = None
    content: Optional[NoteContent] = None
    attachments: list[Attachment] = field(default_factory=list)
    notebooks: list[Notebook] = field(default_factory=list)

    def add_attachment(self, attachment: Attachment) -> None:
        """Reference an attachment once per note."""
        if any(existing.hash == attachment.hash for existing in self.attachments):
            return
        self.attachments.append(attachment)

    def to_dict(self) -> dict[str, Any]:
        """Serialize metadata (everything except the body) for the archive."""
        return {
            "id": self.id,
            "title": self.title,
            "tags": list(self.tags),
            "date_created": self.date_created.isoformat() if self.date_created else None,
            "date_edited": self.date_edited.isoformat() if self.date_edited else None,
            "pinned": self.pinned,
            "favorite": self.favorite,
            "color": self.color,
            "content_type": self.content.type.value if self.content else None,
            "attachments": [a.to_dict() for a in self.attachments],
            "notebooks": [{"title": n.title, "topic": n.topic} for n in self.notebooks],
        }
