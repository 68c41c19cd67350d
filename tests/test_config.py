"""Tests for settings, the note model and the error hierarchy."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError
from noteporter.attachments import Sha256Hasher
from noteporter.errors import (
    AttachmentNotFoundError,
    AttachmentResolutionError,
    GraphApiError,
    PageProcessingError,
    ProviderFatalError,
    UnknownProviderError,
)
from noteporter.models import (
    ArchiveConfig,
    Attachment,
    ContentType,
    ImporterSettings,
    Note,
    Notebook,
    NoteContent,
    error,
)


class TestImporterSettings:
    """Tests for ImporterSettings."""

    def test_defaults(self):
        settings = ImporterSettings()
        assert isinstance(settings.hasher, Sha256Hasher)
        assert settings.reporter is None
        assert settings.page_size == 100

    def test_from_yaml(self):
        settings = ImporterSettings.from_yaml("client_id: abc\npage_size: 50\nclient_type: browser\n")
        assert settings.client_id == "abc"
        assert settings.page_size == 50
        assert settings.client_type == "browser"

    def test_empty_yaml(self):
        assert ImporterSettings.from_yaml("").access_token is None

    def test_from_yaml_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("request_timeout: 5\n", encoding="utf-8")
        assert ImporterSettings.from_yaml_file(path).request_timeout == 5

    def test_token_env_expansion(self, monkeypatch):
        monkeypatch.setenv("GRAPH_TOKEN", "secret")
        assert ImporterSettings(access_token="${GRAPH_TOKEN}").access_token == "secret"
        assert ImporterSettings(access_token="$GRAPH_TOKEN").access_token == "secret"

    def test_unknown_env_var_left_alone(self, monkeypatch):
        monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
        assert ImporterSettings(access_token="$NOT_SET_ANYWHERE").access_token == "$NOT_SET_ANYWHERE"

    def test_extra_keys_passed_through(self):
        settings = ImporterSettings.from_yaml("tenant: contoso\n")
        assert settings.model_extra == {"tenant": "contoso"}

    def test_page_size_bounds(self):
        with pytest.raises(ValidationError):
            ImporterSettings(page_size=500)

    def test_invalid_client_type(self):
        with pytest.raises(ValidationError):
            ImporterSettings(client_type="desktop")

    def test_report(self):
        seen = []
        ImporterSettings(reporter=seen.append).report("hello")
        ImporterSettings().report("ignored")
        assert seen == ["hello"]


class TestArchiveConfig:
    """Tests for ArchiveConfig."""

    def test_defaults(self):
        config = ArchiveConfig()
        assert config.compression == "deflated"
        assert config.queue_size == 16

    def test_extra_keys_forbidden(self):
        with pytest.raises(ValidationError):
            ArchiveConfig(level=9)

    def test_compress_level_bounds(self):
        with pytest.raises(ValidationError):
            ArchiveConfig(compress_level=10)


class TestNoteModel:
    """Tests for the normalized note model."""

    def test_notebook_path(self):
        assert Notebook("Work").path == "Work"
        assert Notebook("Work", "Inbox").path == "Work/Inbox"

    def test_attachment_extension(self):
        assert Attachment(hash="h", filename="Photo.JPG").extension == ".jpg"
        assert Attachment(hash="h", filename="scan", mime="application/pdf").extension == ".pdf"
        assert Attachment(hash="h", filename="blob").extension == ".bin"

    def test_attachment_identity_is_hash(self):
        assert Attachment(hash="h", filename="a.png", data=b"1") == Attachment(hash="h", filename="a.png", data=b"2")

    def test_add_attachment_once(self):
        note = Note()
        attachment = Attachment(hash="h", filename="a.png")
        note.add_attachment(attachment)
        note.add_attachment(Attachment(hash="h", filename="b.png"))
        assert note.attachments == [attachment]

    def test_to_dict(self):
        note = Note(
            title="Plan",
            id="7",
            tags=["a"],
            date_created=datetime(2023, 1, 2, tzinfo=timezone.utc),
            content=NoteContent(type=ContentType.HTML, data="<p>x</p>"),
            attachments=[Attachment(hash="h", filename="a.png", mime="image/png", size=3, data=b"abc")],
            notebooks=[Notebook("Work", "Inbox")],
        )
        data = note.to_dict()

        assert data["title"] == "Plan"
        assert data["date_created"] == "2023-01-02T00:00:00+00:00"
        assert data["date_edited"] is None
        assert data["content_type"] == "html"
        assert data["attachments"] == [{"hash": "h", "filename": "a.png", "mime": "image/png", "size": 3}]
        assert data["notebooks"] == [{"title": "Work", "topic": "Inbox"}]

    def test_default_title(self):
        assert Note().title == "Untitled note"


class TestErrors:
    """Tests for error messages and hierarchy."""

    def test_not_found_is_resolution_error(self):
        err = AttachmentNotFoundError("img/cat.png")
        assert isinstance(err, AttachmentResolutionError)
        assert err.locator == "img/cat.png"
        assert str(err) == "Attachment not found: img/cat.png"

    def test_long_locator_shortened(self):
        err = AttachmentResolutionError("data:image/png;base64," + "A" * 500)
        assert len(str(err)) < 120
        assert str(err).endswith("...")

    def test_graph_error_is_fatal(self):
        err = GraphApiError(401, "https://graph.microsoft.com/v1.0/me/onenote/notebooks", "expired")
        assert isinstance(err, ProviderFatalError)
        assert err.status_code == 401
        assert str(err).endswith(": expired")

    def test_page_error_message(self):
        err = PageProcessingError("p1", "Welcome", ValueError("bad markup"))
        assert str(err) == "bad markup (page: Welcome)"
        assert err.page_id == "p1"

    def test_unknown_provider_message(self):
        assert str(UnknownProviderError("Unknown provider: x")) == "Unknown provider: x"

    def test_error_message_names_note(self):
        message = error(ValueError("boom"), Note(title="Groceries"))
        assert message.is_error
        assert message.message == "boom (note: Groceries)"
        assert error(ValueError("boom")).message == "boom"
