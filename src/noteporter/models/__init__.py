"""Note model, provider messages and settings."""

from .note import (
    DEFAULT_TITLE,
    Attachment,
    ContentType,
    Note,
    Notebook,
    NoteContent,
)
from .messages import (
    ImportStats,
    ItemType,
    MessageType,
    ProgressOp,
    ProgressPayload,
    ProviderMessage,
    Reporter,
    error,
    log,
    note_message,
)
from .config import ArchiveConfig, ImporterSettings

__all__ = [
    # Notes
    "DEFAULT_TITLE",
    "Attachment",
    "ContentType",
    "Note",
    "Notebook",
    "NoteContent",
    # Messages
    "ImportStats",
    "ItemType",
    "MessageType",
    "ProgressOp",
    "ProgressPayload",
    "ProviderMessage",
    "Reporter",
    "error",
    "log",
    "note_message",
    # Settings
    "ArchiveConfig",
    "ImporterSettings",
]
