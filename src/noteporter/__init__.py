"""
noteporter - Convert note exports into a normalized, archivable form.

Usage:
    from noteporter import Importer, ImporterSettings

    async with Importer(ImporterSettings(reporter=print)) as importer:
        async for message in importer.run(["First Notebook.enex"]):
            print(message.type, message.message)
        await importer.save_archive(Path("notes.zip"))
"""

__version__ = "1.0.0"

from .archive import MemoryStorage, ZipEntry, ZipStreamWriter, pack, save_archive, stream_archive
from .attachments import AttachmentStore, Hasher, Sha256Hasher
from .content import ContentTransformer, EnmlTransformer, HtmlTransformer
from .core.importer import Importer, import_blocking
from .errors import (
    ArchiveAbortedError,
    ArchiveError,
    AttachmentNotFoundError,
    AttachmentResolutionError,
    ImporterError,
    ProviderFatalError,
    StructuralError,
    UnknownProviderError,
    UnsupportedLocatorError,
)
from .models import (
    ArchiveConfig,
    Attachment,
    ImporterSettings,
    ImportStats,
    MessageType,
    Note,
    Notebook,
    NoteContent,
    ProgressPayload,
    ProviderMessage,
)
from .providers import File, ProviderType, available_providers, detect, get_provider

__all__ = [
    "__version__",
    # Core
    "Importer",
    "import_blocking",
    # Providers
    "File",
    "ProviderType",
    "available_providers",
    "detect",
    "get_provider",
    # Content
    "ContentTransformer",
    "EnmlTransformer",
    "HtmlTransformer",
    # Attachments
    "AttachmentStore",
    "Hasher",
    "Sha256Hasher",
    # Archive
    "MemoryStorage",
    "ZipEntry",
    "ZipStreamWriter",
    "pack",
    "save_archive",
    "stream_archive",
    # Models
    "ArchiveConfig",
    "Attachment",
    "ImportStats",
    "ImporterSettings",
    "MessageType",
    "Note",
    "NoteContent",
    "Notebook",
    "ProgressPayload",
    "ProviderMessage",
    # Errors
    "ArchiveAbortedError",
    "ArchiveError",
    "AttachmentNotFoundError",
    "AttachmentResolutionError",
    "ImporterError",
    "ProviderFatalError",
    "StructuralError",
    "UnknownProviderError",
    "UnsupportedLocatorError",
]
