"""Evernote ENEX provider."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Optional

from ...attachments.store import AttachmentStore
from ...content.enml import EnmlTransformer
from ...errors import ProviderFatalError
from ...models.config import ImporterSettings
from ...models.messages import ProviderMessage, error, log, note_message
from ...models.note import DEFAULT_TITLE, ContentType, Note, Notebook, NoteContent
from ..base import BaseProvider, File, ProviderType
from ..local import heading_title
from .enex import EnexNote, iter_enex
from .handler import EvernoteElementHandler, NoteIds

logger = logging.getLogger(__name__)


class EvernoteProvider(BaseProvider):
    """
    Converts ``.enex`` exports.

    The export is parsed note by note in a worker thread. A note whose body
    cannot be transformed is reported as an ``error`` message (carrying the
    partial note) and the export continues with the next note. Notes with an
    empty ``<title>`` take the first h1/h2 of their converted body.

    Example:
        provider = EvernoteProvider()
        async for message in provider.process(File(path), settings):
            ...
    """

    id = "evernote"
    name = "Evernote"
    type = ProviderType.FILE
    supported_extensions = (".enex",)
    examples = ("First Notebook.enex", "checklist.enex")
    help_link = "https://help.evernote.com/hc/en-us/articles/209005557"

    def __init__(self, store: Optional[AttachmentStore] = None) -> None:
        super().__init__(store)
        self._ids = NoteIds()
        self._transformer = EnmlTransformer()

    async def process(
        self,
        file: File,
        settings: ImporterSettings,
        files: Sequence[File] = (),
    ) -> AsyncIterator[ProviderMessage]:
        notebook = Notebook(title=file.stem)

        try:
            handle = await asyncio.to_thread(file.path.open, "rb")
        except OSError as err:
            raise ProviderFatalError(f"Cannot read {file.path}: {err}") from err

        with handle:
            notes = iter_enex(handle)
            while True:
                # Reading and parsing the next note happens off the event loop
                en_note = await asyncio.to_thread(next, notes, None)
                if en_note is None:
                    break
                async for message in self._convert(en_note, notebook, settings):
                    yield message

    async def _convert(
        self,
        en_note: EnexNote,
        notebook: Notebook,
        settings: ImporterSettings,
    ) -> AsyncIterator[ProviderMessage]:
        label = en_note.title or DEFAULT_TITLE
        yield log(f"Found {label}...")

        note = Note(
            id=self._ids.get(label),
            title=en_note.title,
            tags=list(en_note.tags),
            date_created=en_note.created,
            date_edited=en_note.updated,
            notebooks=[notebook],
        )

        failure: Optional[Exception] = None
        resolution_errors: list[Exception] = []
        html = ""
        if en_note.content:
            handler = EvernoteElementHandler(note, en_note, settings.hasher, self.store, self._ids)
            try:
                html = await self._transformer.transform(en_note.content, handler, en_note)
                note.content = NoteContent(type=ContentType.HTML, data=html.strip())
            except Exception as e:
                logger.warning(f"Failed to process {label}: {e}")
                failure = e
            resolution_errors = handler.errors

        if not note.title:
            note.title = heading_title(html) or DEFAULT_TITLE
        if failure is not None:
            yield error(failure, note)
        for resolution_error in resolution_errors:
            yield error(resolution_error, note)

        logger.debug(f"Converted {note.title} ({len(note.attachments)} attachments)")
        yield note_message(note)
