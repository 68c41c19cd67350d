"""Provider contracts and the input file abstraction."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import ClassVar, Optional, Protocol, Union, runtime_checkable

from ..attachments.store import AttachmentStore
from ..models.config import ImporterSettings
from ..models.messages import ProviderMessage
from ..models.note import Note


class ProviderType(str, Enum):
    """Capability variant of a provider; callers branch on this."""

    FILE = "file"
    NETWORK = "network"


@dataclass(frozen=True)
class File:
    """
    A local input file.

    Example:
        file = File(Path("exports/First Notebook.enex"))
        file.extension  # ".enex"
        file.stem       # "First Notebook"
    """

    path: Path

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def stem(self) -> str:
        """Filename without its extension."""
        return self.path.stem

    @property
    def extension(self) -> str:
        """Lowercased extension including the dot."""
        return self.path.suffix.lower()

    @property
    def directory(self) -> Path:
        return self.path.parent

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    @property
    def created_at(self) -> datetime:
        """Filesystem creation time (birth time where the platform records it)."""
        stat = self.path.stat()
        timestamp = getattr(stat, "st_birthtime", None) or stat.st_ctime
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)

    @property
    def modified_at(self) -> datetime:
        return datetime.fromtimestamp(self.path.stat().st_mtime, tz=timezone.utc)

    async def read_bytes(self) -> bytes:
        return await asyncio.to_thread(self.path.read_bytes)

    async def read_text(self, encoding: str = "utf-8") -> str:
        data = await self.read_bytes()
        return data.decode(encoding, errors="replace")

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> File:
        return cls(Path(path))


@dataclass
class ProviderResult:
    """Eager result of a network provider run."""

    notes: list[Note] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)


@dataclass(frozen=True)
class ProviderInfo:
    """Static capability metadata consumed by the registry."""

    id: str
    name: str
    type: ProviderType
    version: str
    supported_extensions: tuple[str, ...] = ()
    examples: tuple[str, ...] = ()
    help_link: Optional[str] = None


@runtime_checkable
class FileProvider(Protocol):
    """
    Protocol for providers that convert a local export file.

    ``process`` is a finite, non-restartable async iterator; use a fresh
    provider instance per run.
    """

    id: str
    type: ProviderType
    store: AttachmentStore

    def filter(self, file: File) -> bool:
        """Whether this provider can handle the file."""
        ...

    def process(
        self,
        file: File,
        settings: ImporterSettings,
        files: Sequence[File] = (),
    ) -> AsyncIterator[ProviderMessage]:
        """
        Convert one file into a stream of provider messages.

        Args:
            file: The export file to convert
            settings: Run settings (hasher, reporter, ...)
            files: Sibling files, for exports that reference local assets

        Yields:
            ProviderMessage for each note, progress line and recoverable error
        """
        ...


@runtime_checkable
class NetworkProvider(Protocol):
    """Protocol for providers that pull notes from a network service."""

    id: str
    type: ProviderType
    store: AttachmentStore

    def iter_messages(self, settings: ImporterSettings) -> AsyncIterator[ProviderMessage]:
        """Stream messages while walking the remote hierarchy."""
        ...

    async def process(self, settings: ImporterSettings) -> ProviderResult:
        """Run to completion and return all notes and per-item errors."""
        ...


class BaseProvider:
    """Shared metadata plumbing for concrete providers."""

    id: ClassVar[str]
    name: ClassVar[str]
    type: ClassVar[ProviderType]
    version: ClassVar[str] = "1.0.0"
    supported_extensions: ClassVar[tuple[str, ...]] = ()
    examples: ClassVar[tuple[str, ...]] = ()
    help_link: ClassVar[Optional[str]] = None

    def __init__(self, store: Optional[AttachmentStore] = None) -> None:
        """
        Initialize the provider.

        Args:
            store: Attachment store shared by every provider in the run
                   (a private one is created if None)
        """
        self.store = store if store is not None else AttachmentStore()

    @classmethod
    def info(cls) -> ProviderInfo:
        return ProviderInfo(
            id=cls.id,
            name=cls.name,
            type=cls.type,
            version=cls.version,
            supported_extensions=cls.supported_extensions,
            examples=cls.examples,
            help_link=cls.help_link,
        )

    def filter(self, file: File) -> bool:
        return file.extension in self.supported_extensions
