"""Tests for the Markdown/Text and HTML file providers."""

from datetime import datetime, timezone
from pathlib import Path

import pytest
from bs4 import BeautifulSoup
from noteporter.errors import AttachmentNotFoundError
from noteporter.models import ImporterSettings, MessageType
from noteporter.providers import File
from noteporter.providers.html import HtmlProvider
from noteporter.providers.markdown import (
    MarkdownProvider,
    parse_front_matter,
    split_front_matter,
    text_to_html,
)


async def collect(provider, file, settings=None, files=()):
    settings = settings or ImporterSettings()
    return [message async for message in provider.process(file, settings, files)]


def only_note(messages):
    (note,) = [m.note for m in messages if m.type == MessageType.NOTE]
    return note


class TestFrontMatter:
    """Tests for front matter parsing."""

    def test_split(self):
        data, body = split_front_matter("---\nTitle: Hello\n---\n# Body\n")
        assert data == {"title": "Hello"}
        assert body == "# Body\n"

    def test_no_front_matter(self):
        data, body = split_front_matter("# Just text\n---\n")
        assert data == {}
        assert body == "# Just text\n---\n"

    def test_invalid_yaml_kept_in_body(self):
        text = "---\ntitle: [unclosed\n---\nbody"
        assert split_front_matter(text) == ({}, text)

    def test_scalar_yaml_kept_in_body(self):
        text = "---\njust a string\n---\nbody"
        assert split_front_matter(text) == ({}, text)

    def test_fallback_keys(self):
        """Later keys in a field's list are used when earlier ones are absent."""
        front = parse_front_matter(
            {
                "created_at": "2023-04-01T10:00:00Z",
                "date modified": "2023-04-02T11:00:00+00:00",
                "keywords": "home, #lists",
                "starred": "yes",
                "colour": "red",
            }
        )
        assert front.created == datetime(2023, 4, 1, 10, 0, tzinfo=timezone.utc)
        assert front.edited == datetime(2023, 4, 2, 11, 0, tzinfo=timezone.utc)
        assert front.tags == ["home", "lists"]
        assert front.favorite is True
        assert front.color == "red"

    def test_first_key_wins(self):
        front = parse_front_matter({"created": "2020-01-01", "created_at": "2021-01-01"})
        assert front.created.year == 2020

    def test_empty_key_falls_through(self):
        """A key present with no value does not block the next fallback key."""
        front = parse_front_matter({"created": None, "created_at": "2021-01-01", "tags": None, "keywords": "a"})
        assert front.created.year == 2021
        assert front.tags == ["a"]

    def test_epoch_milliseconds(self):
        front = parse_front_matter({"created": 1680343200000})
        assert front.created == datetime(2023, 4, 1, 10, 0, tzinfo=timezone.utc)

    def test_missing_fields(self):
        front = parse_front_matter({"title": "Only title"})
        assert front.created is None
        assert front.pinned is None
        assert front.tags == []


class TestTextToHtml:
    """Tests for plain text rendering."""

    def test_paragraphs_and_breaks(self):
        assert text_to_html("one\ntwo\n\nthree") == "<p>one<br>two</p><p>three</p>"

    def test_escapes_markup(self):
        assert text_to_html("a < b & <i>c</i>") == "<p>a &lt; b &amp; &lt;i&gt;c&lt;/i&gt;</p>"


class TestMarkdownProvider:
    """Tests for MarkdownProvider."""

    def test_filter(self, tmp_path: Path):
        provider = MarkdownProvider()
        assert provider.filter(File(tmp_path / "a.md")) is True
        assert provider.filter(File(tmp_path / "a.markdown")) is True
        assert provider.filter(File(tmp_path / "a.TXT")) is True
        assert provider.filter(File(tmp_path / "a.html")) is False

    @pytest.mark.asyncio
    async def test_front_matter_applied(self, tmp_path: Path):
        path = tmp_path / "groceries.md"
        path.write_text(
            "---\ntitle: Shopping\ncreated_at: 2023-04-01T10:00:00Z\ntags: [home]\npinned: true\n---\n"
            "# List\n\n- milk\n",
            encoding="utf-8",
        )
        note = only_note(await collect(MarkdownProvider(), File(path)))

        assert note.title == "Shopping"
        assert note.date_created == datetime(2023, 4, 1, 10, 0, tzinfo=timezone.utc)
        assert note.tags == ["home"]
        assert note.pinned is True
        body = BeautifulSoup(note.content.data, "html.parser")
        assert body.find("h1").get_text() == "List"
        assert body.find("li").get_text() == "milk"
        assert "title:" not in note.content.data

    @pytest.mark.asyncio
    async def test_filesystem_fallbacks(self, tmp_path: Path):
        """Title falls back to the filename and dates to the filesystem."""
        path = tmp_path / "meeting notes.md"
        path.write_text("Plain *markdown*", encoding="utf-8")
        file = File(path)
        note = only_note(await collect(MarkdownProvider(), file))

        assert note.title == "meeting notes"
        assert note.date_created == file.created_at
        assert note.date_edited == file.modified_at
        assert note.content.data == "<p>Plain <em>markdown</em></p>"

    @pytest.mark.asyncio
    async def test_partial_front_matter_keeps_filesystem_dates(self, tmp_path: Path):
        path = tmp_path / "todo.md"
        path.write_text("---\ntags: work\n---\nbody", encoding="utf-8")
        file = File(path)
        note = only_note(await collect(MarkdownProvider(), file))

        assert note.title == "todo"
        assert note.tags == ["work"]
        assert note.date_edited == file.modified_at

    @pytest.mark.asyncio
    async def test_text_file_not_parsed_for_front_matter(self, tmp_path: Path):
        path = tmp_path / "readme.txt"
        path.write_text("---\ntitle: nope\n---\n<b>text</b>", encoding="utf-8")
        note = only_note(await collect(MarkdownProvider(), File(path)))

        assert note.title == "readme"
        assert "&lt;b&gt;text&lt;/b&gt;" in note.content.data

    @pytest.mark.asyncio
    async def test_relative_image_becomes_attachment(self, tmp_path: Path):
        (tmp_path / "img").mkdir()
        image = tmp_path / "img" / "cat.png"
        image.write_bytes(b"\x89PNG cat")
        path = tmp_path / "pets.md"
        path.write_text("![a cat](img/cat.png)", encoding="utf-8")

        provider = MarkdownProvider()
        note = only_note(await collect(provider, File(path), files=[File(path), File(image)]))

        (attachment,) = note.attachments
        assert attachment.filename == "cat.png"
        assert attachment.mime == "image/png"
        img = BeautifulSoup(note.content.data, "html.parser").find("img")
        assert img["data-hash"] == attachment.hash
        assert img["alt"] == "a cat"
        assert len(provider.store) == 1

    @pytest.mark.asyncio
    async def test_missing_image_reported(self, tmp_path: Path):
        path = tmp_path / "broken.md"
        path.write_text("text\n\n![gone](missing.png)", encoding="utf-8")
        messages = await collect(MarkdownProvider(), File(path))

        (failure,) = [m for m in messages if m.type == MessageType.ERROR]
        assert isinstance(failure.error, AttachmentNotFoundError)
        assert failure.message.endswith("(note: broken)")
        assert only_note(messages).attachments == []

    @pytest.mark.asyncio
    async def test_remote_image_left_untouched(self, tmp_path: Path):
        path = tmp_path / "remote.md"
        path.write_text("![logo](https://example.com/logo.png)", encoding="utf-8")
        note = only_note(await collect(MarkdownProvider(), File(path)))

        assert note.attachments == []
        assert BeautifulSoup(note.content.data, "html.parser").find("img")["src"] == "https://example.com/logo.png"

    @pytest.mark.asyncio
    async def test_inline_body_tag_keeps_whole_document(self, tmp_path: Path):
        """Raw ``<body>`` in Markdown text is content, not the document root."""
        path = tmp_path / "doc.md"
        path.write_text(
            "Intro paragraph.\n\nUse the <body> element for content.\n\nClosing paragraph.\n",
            encoding="utf-8",
        )
        messages = await collect(MarkdownProvider(), File(path))

        assert [m for m in messages if m.type == MessageType.ERROR] == []
        text = BeautifulSoup(only_note(messages).content.data, "html.parser").get_text()
        assert "Intro paragraph." in text
        assert "element for content." in text
        assert "Closing paragraph." in text


class TestHtmlProvider:
    """Tests for HtmlProvider."""

    @pytest.mark.asyncio
    async def test_title_from_title_tag(self, tmp_path: Path):
        path = tmp_path / "page.html"
        path.write_text(
            "<html><head><title>Saved page</title></head><body><h1>Heading</h1><p>x</p></body></html>",
            encoding="utf-8",
        )
        note = only_note(await collect(HtmlProvider(), File(path)))

        assert note.title == "Saved page"
        assert note.content.data == "<h1>Heading</h1><p>x</p>"

    @pytest.mark.asyncio
    async def test_title_from_heading(self, tmp_path: Path):
        path = tmp_path / "fragment.htm"
        path.write_text("<h1>Fragment</h1><p>no body tag</p>", encoding="utf-8")
        note = only_note(await collect(HtmlProvider(), File(path)))

        assert note.title == "Fragment"
        assert note.content.data == "<h1>Fragment</h1><p>no body tag</p>"

    @pytest.mark.asyncio
    async def test_title_tag_beats_heading(self, tmp_path: Path):
        path = tmp_path / "doc.html"
        path.write_text(
            "<html><head><title>Head title</title></head><body><h2>Sub</h2></body></html>",
            encoding="utf-8",
        )
        note = only_note(await collect(HtmlProvider(), File(path)))
        assert note.title == "Head title"

    @pytest.mark.asyncio
    async def test_heading_of_document_body(self, tmp_path: Path):
        path = tmp_path / "doc.html"
        path.write_text("<!DOCTYPE html><html><body><p>intro</p><h2>Section</h2></body></html>", encoding="utf-8")
        note = only_note(await collect(HtmlProvider(), File(path)))

        assert note.title == "Section"
        assert note.content.data == "<p>intro</p><h2>Section</h2>"

    @pytest.mark.asyncio
    async def test_title_from_filename(self, tmp_path: Path):
        path = tmp_path / "untitled.html"
        path.write_text("<body><p>x</p></body>", encoding="utf-8")
        note = only_note(await collect(HtmlProvider(), File(path)))
        assert note.title == "untitled"

    @pytest.mark.asyncio
    async def test_data_uri_image(self, tmp_path: Path):
        path = tmp_path / "inline.html"
        path.write_text('<body><img src="data:image/gif;base64,R0lGODlhAQABAAAAACw="></body>', encoding="utf-8")
        note = only_note(await collect(HtmlProvider(), File(path)))

        (attachment,) = note.attachments
        assert attachment.mime == "image/gif"
        assert attachment.filename == "image.gif"
