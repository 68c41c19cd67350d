"""Streaming zip writer with path deduplication and bounded buffering."""

from __future__ import annotations

import asyncio
import logging
import time
import zipfile
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from contextlib import aclosing, suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union, cast

from ..errors import ArchiveAbortedError, ArchiveError
from ..models.config import ArchiveConfig

logger = logging.getLogger(__name__)

EntryData = Union[bytes, AsyncIterable[bytes]]

_COMPRESSION = {"deflated": zipfile.ZIP_DEFLATED, "stored": zipfile.ZIP_STORED}
_EOF = object()


@dataclass
class ZipEntry:
    """
    One archive member.

    ``data`` is either the complete payload or an async iterable of chunks,
    so large attachments can be streamed without holding them in memory.
    """

    path: str
    data: EntryData = field(repr=False)
    modified: Optional[float] = None


@dataclass(frozen=True)
class _Abort:
    reason: str


class _PendingSink:
    """
    Write-only byte sink handed to ZipFile.

    It deliberately has no ``tell``/``seek`` so zipfile treats it as a
    non-seekable stream and writes data descriptors instead of going back
    to patch local headers.
    """

    def __init__(self) -> None:
        self.chunks: list[bytes] = []

    def write(self, data: bytes) -> int:
        if data:
            self.chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def take(self) -> list[bytes]:
        chunks, self.chunks = self.chunks, []
        return chunks


class ZipStreamWriter:
    """
    Produces a zip byte stream from entries written one at a time.

    The writer is both the input side (``write``/``close``/``abort``) and
    the output side (``async for chunk in writer``). Output chunks pass
    through a bounded queue, so a slow consumer makes ``write`` wait rather
    than letting the archive pile up in memory. At most one entry's payload
    is in flight at a time.

    Rules:
    - A path already written to this archive is skipped silently; the first
      content written under a path is the one kept
    - Entries are written with zip64 extensions so archive size is unbounded
    - ``abort`` ends both sides: later writes raise ArchiveAbortedError and
      the consumer raises ArchiveAbortedError instead of receiving a trailer

    Example:
        writer = ZipStreamWriter()

        async def produce():
            await writer.write(ZipEntry("notes/a.html", b"<p>a</p>"))
            await writer.close()

        task = asyncio.create_task(produce())
        async for chunk in writer:
            sink.write(chunk)
    """

    def __init__(self, config: Optional[ArchiveConfig] = None) -> None:
        self.config = config or ArchiveConfig()
        self._sink = _PendingSink()
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=self.config.queue_size)
        self._zip = zipfile.ZipFile(
            self._sink,  # type: ignore[arg-type]
            mode="w",
            compression=_COMPRESSION[self.config.compression],
            compresslevel=self.config.compress_level,
            allowZip64=True,
        )
        self._written: set[str] = set()
        self._closed = False
        self._aborted: Optional[str] = None
        self._bytes_out = 0
        self._eof = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def aborted(self) -> bool:
        return self._aborted is not None

    @property
    def entry_count(self) -> int:
        return len(self._written)

    def _check_open(self) -> None:
        if self._aborted is not None:
            raise ArchiveAbortedError(f"Archive aborted: {self._aborted}")
        if self._closed:
            raise ArchiveError("Archive already closed")

    async def _drain(self) -> None:
        for chunk in self._sink.take():
            await self._queue.put(chunk)
            # The consumer may have aborted while we were waiting for room
            self._check_open()

    async def write(self, entry: ZipEntry) -> bool:
        """
        Append an entry.

        Returns:
            False if an entry with the same path was already written

        Raises:
            ArchiveAbortedError: If the archive was aborted
            ArchiveError: If the archive was already closed
        """
        self._check_open()
        path = entry.path.replace("\\", "/").lstrip("/")
        if path in self._written:
            logger.debug(f"Skipping duplicate archive entry: {path}")
            return False
        self._written.add(path)

        info = zipfile.ZipInfo(path, date_time=time.localtime(entry.modified or time.time())[:6])
        info.compress_type = _COMPRESSION[self.config.compression]
        if self.config.compress_level is not None:
            # Public as compress_level since Python 3.13
            attr = "compress_level" if hasattr(zipfile.ZipInfo, "compress_level") else "_compresslevel"
            setattr(info, attr, self.config.compress_level)
        info.external_attr = 0o644 << 16

        chunk_size = self.config.chunk_size
        with self._zip.open(info, mode="w", force_zip64=True) as member:
            if isinstance(entry.data, (bytes, bytearray, memoryview)):
                view = memoryview(entry.data)
                for start in range(0, len(view), chunk_size):
                    member.write(view[start : start + chunk_size])
                    await self._drain()
            else:
                async for chunk in entry.data:
                    member.write(chunk)
                    await self._drain()
        await self._drain()
        return True

    async def close(self) -> None:
        """Write the central directory and end the output stream."""
        self._check_open()
        self._zip.close()
        await self._drain()
        self._closed = True
        await self._queue.put(_EOF)
        logger.debug(f"Archive closed with {len(self._written)} entries")

    def abort(self, reason: str = "aborted") -> None:
        """
        Abort both sides without writing an archive trailer.

        Safe to call more than once and from either side.
        """
        if self._aborted is not None or self._closed:
            return
        self._aborted = reason
        self._sink.take()

        # A full queue means no reader is waiting; emptying it releases a blocked writer
        was_full = self._queue.full()
        while not self._queue.empty():
            self._queue.get_nowait()
        if not was_full:
            self._queue.put_nowait(_Abort(reason))
        logger.warning(f"Archive aborted: {reason}")

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self

    async def __anext__(self) -> bytes:
        if self._aborted is not None:
            raise ArchiveAbortedError(f"Archive aborted: {self._aborted}")
        if self._eof:
            raise StopAsyncIteration

        item = await self._queue.get()
        if item is _EOF:
            self._eof = True
            raise StopAsyncIteration
        if isinstance(item, _Abort) or self._aborted is not None:
            raise ArchiveAbortedError(f"Archive aborted: {self._aborted}")
        chunk = cast(bytes, item)
        self._bytes_out += len(chunk)
        return chunk


async def _iter_entries(entries: Union[Iterable[ZipEntry], AsyncIterable[ZipEntry]]) -> AsyncIterator[ZipEntry]:
    if isinstance(entries, AsyncIterable):
        async for entry in entries:
            yield entry
    else:
        for entry in entries:
            yield entry


async def stream_archive(
    entries: Union[Iterable[ZipEntry], AsyncIterable[ZipEntry]],
    config: Optional[ArchiveConfig] = None,
) -> AsyncIterator[bytes]:
    """
    Yield the bytes of a zip archive built from ``entries``.

    Entries are pulled only as fast as the caller consumes output. Closing
    the generator early aborts the archive and stops pulling entries.

    Raises:
        ArchiveAbortedError: If the archive was aborted
        Exception: Whatever the entry source raised
    """
    writer = ZipStreamWriter(config)

    async def produce() -> None:
        try:
            async for entry in _iter_entries(entries):
                await writer.write(entry)
            await writer.close()
        except asyncio.CancelledError:
            writer.abort("cancelled")
            raise
        except Exception as e:
            writer.abort(str(e) or type(e).__name__)
            raise

    task = asyncio.create_task(produce())
    try:
        async for chunk in writer:
            yield chunk
        await task
    except ArchiveAbortedError:
        if task.done() and not task.cancelled() and task.exception() is not None:
            raise task.exception()  # type: ignore[misc]
        raise
    finally:
        if not task.done():
            writer.abort("output closed")
            task.cancel()
            with suppress(asyncio.CancelledError, ArchiveError):
                await task


async def save_archive(
    entries: Union[Iterable[ZipEntry], AsyncIterable[ZipEntry]],
    path: Path,
    config: Optional[ArchiveConfig] = None,
) -> int:
    """
    Stream an archive to ``path``.

    A failure while writing removes the partial file.

    Returns:
        Number of bytes written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    handle = await asyncio.to_thread(path.open, "wb")
    try:
        async with aclosing(stream_archive(entries, config)) as chunks:
            async for chunk in chunks:
                await asyncio.to_thread(handle.write, chunk)
                written += len(chunk)
    except BaseException:
        await asyncio.to_thread(handle.close)
        path.unlink(missing_ok=True)
        raise
    await asyncio.to_thread(handle.close)
    logger.info(f"Created archive: {path} ({written / 1024 / 1024:.1f} MB)")
    return written
