"""Messages emitted by providers while they work."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union

from .note import Note


class MessageType(str, Enum):
    """Discriminator for ProviderMessage."""

    NOTE = "note"
    LOG = "log"
    ERROR = "error"


class ItemType(str, Enum):
    """Hierarchical unit a progress payload refers to."""

    NOTEBOOK = "notebook"
    SECTION_GROUP = "sectionGroup"
    SECTION = "section"
    PAGE = "page"


class ProgressOp(str, Enum):
    """What is being done to the unit."""

    FETCH = "fetch"
    PROCESS = "process"


@dataclass(frozen=True)
class ProgressPayload:
    """Structured progress: ``current`` is zero-based, ``total`` is the count."""

    type: ItemType
    op: ProgressOp
    current: int
    total: int


Reporter = Callable[[Union[str, ProgressPayload]], None]


@dataclass
class ProviderMessage:
    """
    One unit of provider output.

    Exactly one of the payload fields is meaningful for a given type:
    ``note`` for NOTE, ``message`` for LOG, ``error`` (plus an optional
    partial ``note``) for ERROR.

    Example:
        async for message in provider.process(file, settings, files):
            if message.type == MessageType.NOTE:
                storage.add(message.note)
            elif message.type == MessageType.ERROR:
                print(f"Failed: {message.message}")
    """

    type: MessageType
    note: Optional[Note] = None
    message: Optional[str] = None
    error: Optional[BaseException] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_error(self) -> bool:
        return self.type == MessageType.ERROR


def note_message(note: Note) -> ProviderMessage:
    return ProviderMessage(type=MessageType.NOTE, note=note)


def log(text: str) -> ProviderMessage:
    return ProviderMessage(type=MessageType.LOG, message=text)


def error(exc: BaseException, note: Optional[Note] = None) -> ProviderMessage:
    """Wrap a recoverable failure, optionally tied to the partial note."""
    text = str(exc)
    if note is not None and note.title:
        text = f"{text} (note: {note.title})"
    return ProviderMessage(type=MessageType.ERROR, note=note, message=text, error=exc)


@dataclass
class ImportStats:
    """Cumulative statistics for an import run."""

    files_processed: int = 0
    files_skipped: int = 0
    notes_imported: int = 0
    errors: int = 0
    providers_failed: int = 0
    attachments: int = 0
    duplicate_attachments: int = 0
    archive_bytes: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        """Convert stats to dictionary for serialization."""
        return {
            "files_processed": self.files_processed,
            "files_skipped": self.files_skipped,
            "notes_imported": self.notes_imported,
            "errors": self.errors,
            "providers_failed": self.providers_failed,
            "attachments": self.attachments,
            "duplicate_attachments": self.duplicate_attachments,
            "archive_bytes": self.archive_bytes,
            "duration_seconds": round(self.duration_seconds, 2),
        }
