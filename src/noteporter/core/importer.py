"""Import orchestration: providers in, notes and archive out."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from pathlib import Path
from types import TracebackType
from typing import Callable, Optional, Union

from ..archive import MemoryStorage, ZipEntry, pack, save_archive, stream_archive
from ..attachments.store import AttachmentStore
from ..errors import ArchiveAbortedError, ProviderFatalError
from ..models.config import ArchiveConfig, ImporterSettings
from ..models.messages import ImportStats, MessageType, ProviderMessage, error, log
from ..providers import File, detect, get_provider

logger = logging.getLogger(__name__)

PathLike = Union[str, Path, File]


class Importer:
    """
    Primary API: run providers over inputs and stream their messages.

    One Importer is one run. It owns the run's AttachmentStore (created on
    enter and shared by every provider, so an attachment referenced from
    many notes or files is stored once) and the note storage the archive
    is built from.

    A ProviderFatalError ends the run of that provider only; it is reported
    as an ``error`` message and the remaining inputs are still imported.

    Example:
        settings = ImporterSettings(reporter=print)

        async with Importer(settings) as importer:
            async for message in importer.run(["export.enex", "notes/todo.md"]):
                if message.type == MessageType.ERROR:
                    print(f"Error: {message.message}")
            await importer.save_archive(Path("notes.zip"))

        print(f"Stats: {importer.stats.to_dict()}")
    """

    def __init__(
        self,
        settings: Optional[ImporterSettings] = None,
        archive_config: Optional[ArchiveConfig] = None,
    ):
        """
        Initialize the Importer.

        Args:
            settings: Settings handed to every provider
            archive_config: Zip writer configuration
        """
        self.settings = settings or ImporterSettings()
        self.archive_config = archive_config or ArchiveConfig()
        self._cancelled = False
        self._stats = ImportStats()
        self._start_time: float | None = None

        # Initialized in __aenter__
        self._store: AttachmentStore | None = None
        self._storage: MemoryStorage | None = None

    @property
    def stats(self) -> ImportStats:
        """Get current import statistics."""
        return self._stats

    @property
    def store(self) -> AttachmentStore:
        if self._store is None:
            raise RuntimeError("Importer not initialized. Use 'async with' context manager.")
        return self._store

    @property
    def storage(self) -> MemoryStorage:
        if self._storage is None:
            raise RuntimeError("Importer not initialized. Use 'async with' context manager.")
        return self._storage

    def cancel(self) -> None:
        """
        Request graceful cancellation.

        Provider iteration stops at its next message and an archive being
        written is aborted without a trailer.
        """
        self._cancelled = True

    async def __aenter__(self) -> Importer:
        """Enter async context and create the run's shared state."""
        self._store = AttachmentStore()
        self._storage = self.settings.storage if self.settings.storage is not None else MemoryStorage()
        self._cancelled = False
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit async context and drop the run's attachments."""
        if self._store is not None:
            self._store.clear()
        self._store = None

    def _record(self, message: ProviderMessage) -> None:
        if message.type == MessageType.NOTE and message.note is not None:
            self.storage.add(message.note)
            self._stats.notes_imported += 1
        elif message.type == MessageType.ERROR:
            self._stats.errors += 1
        elif message.type == MessageType.LOG and message.message:
            self.settings.report(message.message)

    def _update_attachment_stats(self) -> None:
        stats = self.store.get_stats()
        self._stats.attachments = stats["unique"]
        self._stats.duplicate_attachments = stats["duplicates"]

    async def _drain(self, messages: AsyncIterator[ProviderMessage], source: str) -> AsyncIterator[ProviderMessage]:
        """Forward one provider run, converting a fatal failure into an error message."""
        try:
            async with aclosing(messages) as stream:
                async for message in stream:
                    self._record(message)
                    yield message
                    if self._cancelled:
                        return
        except ProviderFatalError as e:
            logger.error(f"Import of {source} failed: {e}")
            self._stats.providers_failed += 1
            self._stats.errors += 1
            yield error(e)

    async def run(
        self,
        files: Sequence[PathLike] = (),
        onenote: bool = False,
    ) -> AsyncIterator[ProviderMessage]:
        """
        Import local files and, optionally, the user's OneNote notebooks.

        Files are matched to providers by extension; every file is also
        visible to the others as a sibling (for exports referencing local
        assets). Unsupported files are skipped with a log message.

        Args:
            files: Input files
            onenote: Also import from OneNote (needs ``settings.access_token``)

        Yields:
            ProviderMessage objects in provider order
        """
        self._start_time = time.monotonic()
        inputs = [f if isinstance(f, File) else File.from_path(f) for f in files]

        try:
            for file in inputs:
                if self._cancelled:
                    yield log("Import cancelled")
                    return

                provider = detect(file, store=self.store)
                if provider is None:
                    self._stats.files_skipped += 1
                    yield log(f"Skipping {file.name}: unsupported format")
                    continue

                logger.info(f"Importing {file.name} with {provider.name}")
                self._stats.files_processed += 1
                async for message in self._drain(provider.process(file, self.settings, inputs), file.name):
                    yield message

            if onenote and not self._cancelled:
                provider = get_provider("onenote", store=self.store)
                logger.info("Importing from OneNote")
                async for message in self._drain(provider.iter_messages(self.settings), "OneNote"):
                    yield message

            if self._cancelled:
                yield log("Import cancelled")
        finally:
            self._update_attachment_stats()
            self._stats.duration_seconds = time.monotonic() - self._start_time

    async def _entries(self) -> AsyncIterator[ZipEntry]:
        async with aclosing(pack(self.storage, self.store, self.settings.resolver)) as entries:
            async for entry in entries:
                if self._cancelled:
                    raise ArchiveAbortedError("Import cancelled")
                yield entry

    async def stream_archive(self) -> AsyncIterator[bytes]:
        """Yield the zip archive of everything imported so far."""
        async with aclosing(stream_archive(self._entries(), self.archive_config)) as chunks:
            async for chunk in chunks:
                self._stats.archive_bytes += len(chunk)
                yield chunk

    async def save_archive(self, path: Path) -> Path:
        """
        Write the zip archive of everything imported so far.

        Returns:
            The archive path
        """
        self._stats.archive_bytes = await save_archive(self._entries(), path, self.archive_config)
        return path


def import_blocking(
    files: Sequence[PathLike],
    output: Path,
    on_message: Callable[[ProviderMessage], None] | None = None,
    settings: ImporterSettings | None = None,
    onenote: bool = False,
) -> ImportStats:
    """
    Blocking import with optional message callback.

    WARNING: Do not call from within an existing event loop. Use the async
    Importer API instead.

    Args:
        files: Input files
        output: Archive path
        on_message: Optional callback for every provider message
        settings: Importer settings
        onenote: Also import from OneNote

    Returns:
        Statistics of the run

    Example:
        stats = import_blocking(["export.enex"], Path("notes.zip"), on_message=print)
    """
    try:
        asyncio.get_running_loop()
        raise RuntimeError("import_blocking() called from async context. Use 'async with Importer()' instead.")
    except RuntimeError as e:
        if "no running event loop" not in str(e).lower():
            raise

    async def _run() -> ImportStats:
        async with Importer(settings) as importer:
            async for message in importer.run(files, onenote=onenote):
                if on_message:
                    on_message(message)
            await importer.save_archive(output)
        return importer.stats

    return asyncio.run(_run())
