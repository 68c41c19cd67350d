"""Tests for the Importer orchestrator."""

import base64
import hashlib
import zipfile
from pathlib import Path

import pytest
from noteporter.core import Importer, import_blocking
from noteporter.errors import ArchiveAbortedError, ProviderFatalError
from noteporter.models import ImporterSettings, MessageType

IMAGE = b"\x89PNG shared image bytes"


def write_enex(path: Path, title: str = "Groceries") -> Path:
    md5 = hashlib.md5(IMAGE).hexdigest()
    path.write_text(
        '<?xml version="1.0" encoding="UTF-8"?>'
        "<en-export>"
        f"<note><title>{title}</title>"
        f'<content><![CDATA[<en-note><p>milk</p><en-media hash="{md5}" type="image/png"/></en-note>]]></content>'
        "<created>20230102T030405Z</created>"
        f'<resource><data encoding="base64">{base64.b64encode(IMAGE).decode()}</data>'
        "<mime>image/png</mime></resource>"
        "</note></en-export>",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def inputs(tmp_path: Path):
    """An ENEX export, a Markdown note and the image both of them embed."""
    enex = write_enex(tmp_path / "Home.enex")
    image = tmp_path / "cat.png"
    image.write_bytes(IMAGE)
    markdown = tmp_path / "pets.md"
    markdown.write_text("# Pets\n\n![cat](cat.png)\n", encoding="utf-8")
    return [enex, markdown, image]


async def run_all(importer, files, **kwargs):
    return [message async for message in importer.run(files, **kwargs)]


class TestImporterLifecycle:
    """Tests for context management and state."""

    def test_requires_context(self):
        importer = Importer()
        with pytest.raises(RuntimeError, match="async with"):
            _ = importer.store

    @pytest.mark.asyncio
    async def test_store_cleared_on_exit(self, inputs):
        async with Importer() as importer:
            await run_all(importer, inputs)
            store = importer.store
            assert len(store) == 1
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_custom_storage(self, inputs):
        from noteporter.archive import MemoryStorage

        storage = MemoryStorage()
        async with Importer(ImporterSettings(storage=storage)) as importer:
            await run_all(importer, inputs)
        assert [n.title for n in storage] == ["Groceries", "pets"]


class TestImporterRun:
    """Tests for Importer.run."""

    @pytest.mark.asyncio
    async def test_imports_every_supported_file(self, inputs):
        reports = []
        async with Importer(ImporterSettings(reporter=reports.append)) as importer:
            messages = await run_all(importer, inputs)

        notes = [m.note for m in messages if m.type == MessageType.NOTE]
        assert [n.title for n in notes] == ["Groceries", "pets"]
        assert "Found Groceries..." in reports
        assert "Skipping cat.png: unsupported format" in [m.message for m in messages]

        stats = importer.stats
        assert stats.files_processed == 2
        assert stats.files_skipped == 1
        assert stats.notes_imported == 2
        assert stats.errors == 0

    @pytest.mark.asyncio
    async def test_attachments_shared_across_providers(self, inputs):
        """The same image from an ENEX and a Markdown file is stored once."""
        async with Importer() as importer:
            messages = await run_all(importer, inputs)

        enex_note, md_note = [m.note for m in messages if m.type == MessageType.NOTE]
        assert enex_note.attachments[0].hash == md_note.attachments[0].hash
        assert importer.stats.attachments == 1
        assert importer.stats.duplicate_attachments == 1

    @pytest.mark.asyncio
    async def test_fatal_provider_does_not_stop_run(self, tmp_path: Path, inputs):
        broken = tmp_path / "broken.enex"
        broken.write_text("<en-export><note><title>x</note>", encoding="utf-8")

        async with Importer() as importer:
            messages = await run_all(importer, [broken, *inputs])

        errors = [m for m in messages if m.type == MessageType.ERROR]
        assert len(errors) == 1
        assert isinstance(errors[0].error, ProviderFatalError)
        assert importer.stats.providers_failed == 1
        assert importer.stats.notes_imported == 2

    @pytest.mark.asyncio
    async def test_onenote_without_token_reported(self):
        async with Importer() as importer:
            messages = await run_all(importer, [], onenote=True)

        (failure,) = messages
        assert failure.type == MessageType.ERROR
        assert "access token" in failure.message
        assert importer.stats.providers_failed == 1

    @pytest.mark.asyncio
    async def test_cancel_stops_iteration(self, tmp_path: Path):
        files = [write_enex(tmp_path / f"book{i}.enex", title=f"Note {i}") for i in range(3)]

        async with Importer() as importer:
            messages = []
            async for message in importer.run(files):
                messages.append(message)
                if message.type == MessageType.NOTE:
                    importer.cancel()

        assert [m.note.title for m in messages if m.type == MessageType.NOTE] == ["Note 0"]
        assert messages[-1].message == "Import cancelled"
        assert importer.stats.files_processed == 1

    @pytest.mark.asyncio
    async def test_duration_recorded(self, inputs):
        async with Importer() as importer:
            await run_all(importer, inputs)
        assert importer.stats.duration_seconds >= 0
        assert importer.stats.to_dict()["notes_imported"] == 2


class TestImporterArchive:
    """Tests for archive output."""

    @pytest.mark.asyncio
    async def test_save_archive(self, tmp_path: Path, inputs):
        output = tmp_path / "out.zip"
        async with Importer() as importer:
            await run_all(importer, inputs)
            assert await importer.save_archive(output) == output

        image_path = f"attachments/{hashlib.sha256(IMAGE).hexdigest()}.png"
        with zipfile.ZipFile(output) as archive:
            names = archive.namelist()
            assert "Home/Groceries.html" in names
            assert "Home/Groceries.json" in names
            assert "pets.html" in names
            assert names.count(image_path) == 1
            assert archive.read(image_path) == IMAGE
        assert importer.stats.archive_bytes == output.stat().st_size

    @pytest.mark.asyncio
    async def test_stream_archive_counts_bytes(self, inputs):
        async with Importer() as importer:
            await run_all(importer, inputs)
            data = b"".join([chunk async for chunk in importer.stream_archive()])

        assert data[:2] == b"PK"
        assert importer.stats.archive_bytes == len(data)

    @pytest.mark.asyncio
    async def test_cancelled_archive_aborts(self, tmp_path: Path, inputs):
        output = tmp_path / "out.zip"
        async with Importer() as importer:
            await run_all(importer, inputs)
            importer.cancel()
            with pytest.raises(ArchiveAbortedError):
                await importer.save_archive(output)
        assert not output.exists()


class TestImportBlocking:
    """Tests for the synchronous wrapper."""

    def test_import_blocking(self, tmp_path: Path, inputs):
        output = tmp_path / "notes.zip"
        seen = []

        stats = import_blocking(inputs, output, on_message=seen.append)

        assert stats.notes_imported == 2
        assert output.exists()
        assert any(m.type == MessageType.NOTE for m in seen)

    @pytest.mark.asyncio
    async def test_refuses_running_loop(self, tmp_path: Path):
        with pytest.raises(RuntimeError, match="async context"):
            import_blocking([], tmp_path / "notes.zip")
