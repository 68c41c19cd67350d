"""Tests for the streaming zip writer and the note packer."""

import asyncio
import io
import json
import zipfile
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from noteporter.archive import (
    MemoryStorage,
    ZipEntry,
    ZipStreamWriter,
    attachment_path,
    pack,
    sanitize,
    save_archive,
    stream_archive,
)
from noteporter.attachments import AttachmentStore, Sha256Hasher
from noteporter.errors import ArchiveAbortedError, ArchiveError, AttachmentNotFoundError
from noteporter.models import ArchiveConfig, Attachment, ContentType, Note, Notebook, NoteContent


async def read_all(chunks) -> bytes:
    return b"".join([chunk async for chunk in chunks])


def open_zip(data: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(data))


async def chunked(*parts: bytes):
    for part in parts:
        yield part


def make_attachment(data, filename="cat.png", mime="image/png", locator=None):
    return Attachment(
        hash=Sha256Hasher().hash(data or locator.encode()),
        filename=filename,
        mime=mime,
        size=len(data) if data else None,
        data=data,
        locator=locator,
    )


def make_note(title, body="<p>x</p>", notebooks=(), attachments=()):
    return Note(
        title=title,
        content=NoteContent(type=ContentType.HTML, data=body),
        notebooks=list(notebooks),
        attachments=list(attachments),
    )


class TestZipStreamWriter:
    """Tests for ZipStreamWriter."""

    @pytest.mark.asyncio
    async def test_duplicate_paths_first_wins(self):
        """Writing {a, b, a} yields two members with a's first content."""
        writer = ZipStreamWriter()

        async def produce():
            assert await writer.write(ZipEntry("a.txt", b"first")) is True
            assert await writer.write(ZipEntry("b.txt", b"other")) is True
            assert await writer.write(ZipEntry("a.txt", b"second")) is False
            await writer.close()

        task = asyncio.create_task(produce())
        data = await read_all(writer)
        await task

        archive = open_zip(data)
        assert archive.namelist() == ["a.txt", "b.txt"]
        assert archive.read("a.txt") == b"first"
        assert writer.entry_count == 2

    @pytest.mark.asyncio
    async def test_streamed_entry_data(self):
        writer = ZipStreamWriter()

        async def produce():
            await writer.write(ZipEntry("big.bin", chunked(b"abc", b"def", b"ghi")))
            await writer.close()

        task = asyncio.create_task(produce())
        data = await read_all(writer)
        await task

        assert open_zip(data).read("big.bin") == b"abcdefghi"

    @pytest.mark.asyncio
    async def test_paths_normalized(self):
        writer = ZipStreamWriter()

        async def produce():
            await writer.write(ZipEntry("\\dir\\note.html", b"x"))
            await writer.write(ZipEntry("/dir/note.html", b"y"))
            await writer.close()

        task = asyncio.create_task(produce())
        data = await read_all(writer)
        await task

        assert open_zip(data).namelist() == ["dir/note.html"]

    @pytest.mark.asyncio
    async def test_writer_waits_for_consumer(self):
        """With a full queue, write does not finish until output is consumed."""
        config = ArchiveConfig(queue_size=1, chunk_size=1024, compression="stored")
        writer = ZipStreamWriter(config)
        payload = b"x" * 10 * 1024

        write_task = asyncio.create_task(writer.write(ZipEntry("big.bin", payload)))
        await asyncio.sleep(0.05)
        assert not write_task.done()

        chunks = []

        async def consume():
            async for chunk in writer:
                chunks.append(chunk)

        consumer = asyncio.create_task(consume())
        await write_task
        await writer.close()
        await consumer

        assert open_zip(b"".join(chunks)).read("big.bin") == payload

    @pytest.mark.asyncio
    async def test_abort_ends_both_sides(self):
        writer = ZipStreamWriter()
        await writer.write(ZipEntry("a.txt", b"a"))
        writer.abort("stop")

        assert writer.aborted is True
        with pytest.raises(ArchiveAbortedError):
            await writer.write(ZipEntry("b.txt", b"b"))
        with pytest.raises(ArchiveAbortedError):
            await read_all(writer)

    @pytest.mark.asyncio
    async def test_abort_releases_blocked_writer(self):
        writer = ZipStreamWriter(ArchiveConfig(queue_size=1, chunk_size=1024, compression="stored"))
        write_task = asyncio.create_task(writer.write(ZipEntry("big.bin", b"x" * 8192)))
        await asyncio.sleep(0.05)

        writer.abort("consumer gone")
        with pytest.raises(ArchiveAbortedError):
            await asyncio.wait_for(write_task, timeout=1)

    @pytest.mark.asyncio
    async def test_abort_is_idempotent(self):
        writer = ZipStreamWriter()
        writer.abort("one")
        writer.abort("two")
        with pytest.raises(ArchiveAbortedError, match="one"):
            await writer.__anext__()

    @pytest.mark.asyncio
    async def test_write_after_close(self):
        writer = ZipStreamWriter()
        consumer = asyncio.create_task(read_all(writer))
        await writer.close()
        await consumer

        with pytest.raises(ArchiveError):
            await writer.write(ZipEntry("late.txt", b"x"))
        writer.abort("too late")
        assert writer.aborted is False


class TestStreamArchive:
    """Tests for stream_archive and save_archive."""

    @pytest.mark.asyncio
    async def test_stream_from_async_entries(self):
        async def entries():
            yield ZipEntry("one.txt", b"1")
            yield ZipEntry("two.txt", b"2")

        data = await read_all(stream_archive(entries()))
        archive = open_zip(data)
        assert archive.read("one.txt") == b"1"
        assert archive.read("two.txt") == b"2"

    @pytest.mark.asyncio
    async def test_empty_archive(self):
        data = await read_all(stream_archive([]))
        assert open_zip(data).namelist() == []

    @pytest.mark.asyncio
    async def test_source_error_propagates(self):
        async def entries():
            yield ZipEntry("one.txt", b"1")
            raise ValueError("source broke")

        with pytest.raises(ValueError, match="source broke"):
            await read_all(stream_archive(entries()))

    @pytest.mark.asyncio
    async def test_closing_output_stops_source(self):
        pulled = 0

        async def entries():
            nonlocal pulled
            for i in range(1000):
                pulled += 1
                yield ZipEntry(f"{i}.bin", b"x" * 4096)

        stream = stream_archive(entries(), ArchiveConfig(queue_size=1, compression="stored"))
        await stream.__anext__()
        await stream.aclose()

        assert pulled < 1000

    @pytest.mark.asyncio
    async def test_save_archive(self, tmp_path: Path):
        path = tmp_path / "out" / "notes.zip"
        written = await save_archive([ZipEntry("a.txt", b"hello")], path)

        assert written == path.stat().st_size
        with zipfile.ZipFile(path) as archive:
            assert archive.read("a.txt") == b"hello"

    @pytest.mark.asyncio
    async def test_save_archive_removes_partial_file(self, tmp_path: Path):
        async def entries():
            yield ZipEntry("a.txt", b"hello")
            raise RuntimeError("boom")

        path = tmp_path / "notes.zip"
        with pytest.raises(RuntimeError, match="boom"):
            await save_archive(entries(), path)
        assert not path.exists()


class TestSanitize:
    """Tests for path segment sanitization."""

    def test_strips_invalid_characters(self):
        assert sanitize('What? <now: "yes"|*') == "What now yes"

    def test_slashes_become_dashes(self):
        assert sanitize("2023/01/02 notes") == "2023-01-02 notes"

    def test_empty_falls_back(self):
        assert sanitize("  ...  ") == "Untitled note"

    def test_long_names_hashed(self):
        first = sanitize("a" * 250)
        second = sanitize("a" * 249 + "b")
        assert len(first) == 189
        assert first != second


class TestPack:
    """Tests for the note packer."""

    @staticmethod
    async def entries_of(notes, store, resolver=None):
        return [entry async for entry in pack(notes, store, resolver)]

    @pytest.mark.asyncio
    async def test_layout(self):
        image = make_attachment(b"png bytes")
        store = AttachmentStore()
        await store.register(image)
        notes = [
            make_note("Todo", notebooks=[Notebook("Work", "Inbox")], attachments=[image]),
            make_note("Todo", notebooks=[Notebook("Work", "Inbox")]),
            make_note("Loose"),
        ]

        paths = [entry.path for entry in await self.entries_of(notes, store)]

        assert paths == [
            "Work/Inbox/Todo.html",
            "Work/Inbox/Todo.json",
            f"attachments/{image.hash}.png",
            "Work/Inbox/Todo (1).html",
            "Work/Inbox/Todo (1).json",
            "Loose.html",
            "Loose.json",
        ]

    @pytest.mark.asyncio
    async def test_note_in_several_notebooks(self):
        note = make_note(
            "Plan",
            notebooks=[Notebook("Work", "Q1"), Notebook("Work: Q1>Planning", "Q1")],
        )
        paths = [entry.path for entry in await self.entries_of([note], AttachmentStore())]
        assert paths == [
            "Work/Q1/Plan.html",
            "Work/Q1/Plan.json",
            "Work Q1-Planning/Q1/Plan.html",
            "Work Q1-Planning/Q1/Plan.json",
        ]

    @pytest.mark.asyncio
    async def test_shared_attachment_emitted_once(self):
        image = make_attachment(b"shared")
        store = AttachmentStore()
        await store.register(image)
        notes = [make_note("A", attachments=[image]), make_note("B", attachments=[image])]

        entries = await self.entries_of(notes, store)
        assert [e.path for e in entries].count(attachment_path(image)) == 1

    @pytest.mark.asyncio
    async def test_sidecar_metadata(self):
        note = make_note("Meta", notebooks=[Notebook("Personal")])
        note.tags = ["a", "b"]
        entries = await self.entries_of([note], AttachmentStore())

        body, sidecar = entries
        assert body.data == b"<p>x</p>"
        metadata = json.loads(sidecar.data)
        assert metadata["title"] == "Meta"
        assert metadata["tags"] == ["a", "b"]
        assert metadata["notebooks"] == [{"title": "Personal", "topic": None}]

    @pytest.mark.asyncio
    async def test_attachment_fetched_by_locator(self):
        remote = make_attachment(None, locator="https://example.com/a.png")
        resolver = AsyncMock()
        resolver.resolve.return_value = b"remote bytes"

        entries = await self.entries_of([make_note("R", attachments=[remote])], AttachmentStore(), resolver)

        assert entries[-1].path == attachment_path(remote)
        assert entries[-1].data == b"remote bytes"
        resolver.resolve.assert_awaited_once_with("https://example.com/a.png")

    @pytest.mark.asyncio
    async def test_unresolvable_attachment_left_out(self):
        remote = make_attachment(None, locator="https://example.com/gone.png")
        resolver = AsyncMock()
        resolver.resolve.side_effect = AttachmentNotFoundError("https://example.com/gone.png")

        entries = await self.entries_of([make_note("R", attachments=[remote])], AttachmentStore(), resolver)
        assert [e.path for e in entries] == ["R.html", "R.json"]


class TestMemoryStorage:
    """Tests for MemoryStorage."""

    def test_order_and_stats(self):
        storage = MemoryStorage()
        storage.add(make_note("one", attachments=[make_attachment(b"1")]))
        storage.add(make_note("two"))

        assert [n.title for n in storage] == ["one", "two"]
        assert storage.get_stats() == {"notes": 2, "attachments": 1}

        storage.clear()
        assert len(storage) == 0
