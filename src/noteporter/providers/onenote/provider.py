"""OneNote provider backed by Microsoft Graph."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack
from typing import Optional

from bs4 import BeautifulSoup

from ...attachments.resolver import AttachmentResolver, CompositeResolver, DataUriResolver, HttpResolver
from ...attachments.store import AttachmentStore
from ...content.html import HtmlTransformer
from ...errors import GraphApiError, PageProcessingError, ProviderFatalError
from ...http.client import AsyncHttpClient
from ...http.protocols import HttpClient
from ...models.config import ImporterSettings
from ...models.messages import MessageType, ProgressPayload, ProviderMessage, error, log, note_message
from ...models.note import DEFAULT_TITLE, ContentType, Note, Notebook, NoteContent
from ..base import BaseProvider, ProviderResult, ProviderType
from ..handler import HtmlElementHandler
from ..local import first_text, heading_title
from .client import GraphClient, OneNotePage, OneNoteSection, OneNoteSectionGroup
from .progress import ProgressTracker

logger = logging.getLogger(__name__)

UNTITLED_TOPIC = "Untitled topic"
GROUP_SEPARATOR = ">"

# Status codes that invalidate the whole run rather than one page
_FATAL_STATUS = (401, 403)


def flattened_section_groups(group: Optional[OneNoteSectionGroup]) -> list[str]:
    """Names of ``group`` and its ancestors, nearest first."""
    names: list[str] = []
    while group is not None:
        if group.display_name:
            names.append(group.display_name)
        group = group.parent_section_group
    return names


def get_notebooks(section: OneNoteSection) -> list[Notebook]:
    """
    Notebook paths a page in ``section`` belongs to.

    Every page lands in its notebook with the section as topic. Pages in a
    section group also get a flattened path walking from the section up to
    the outermost group, e.g. Notebook > GroupA > GroupB > SectionX becomes
    ``"Notebook: SectionX>GroupB>GroupA"``.
    """
    topic = section.display_name or UNTITLED_TOPIC
    notebook = section.parent_notebook
    if notebook is None or not notebook.display_name:
        return []

    notebooks = [Notebook(title=notebook.display_name, topic=topic)]
    if section.parent_section_group is not None:
        chain = [topic, *flattened_section_groups(section.parent_section_group)]
        notebooks.append(Notebook(title=f"{notebook.display_name}: {GROUP_SEPARATOR.join(chain)}", topic=topic))
    return notebooks


def page_title(page: OneNotePage, document: BeautifulSoup, body: str) -> str:
    """Page title, then the document ``<title>``, then the first h1/h2 of the converted body."""
    return page.title or first_text(document, ("title",)) or heading_title(body) or DEFAULT_TITLE


class OneNoteProvider(BaseProvider):
    """
    Imports every page of the signed-in user's OneNote notebooks.

    The notebook hierarchy is fetched first (paginated), then page bodies
    are fetched and converted one by one. A page that fails is reported
    with its title and id and the walk continues; authentication failures
    and hierarchy fetch failures end the run.

    Example:
        provider = OneNoteProvider()
        result = await provider.process(ImporterSettings(access_token=token))
        print(len(result.notes), len(result.errors))
    """

    id = "onenote"
    name = "OneNote"
    type = ProviderType.NETWORK
    examples = ("https://www.onenote.com/notebooks",)
    help_link = "https://learn.microsoft.com/en-us/graph/onenote-concept-overview"

    def __init__(self, store: Optional[AttachmentStore] = None, http_client: Optional[HttpClient] = None) -> None:
        """
        Initialize the provider.

        Args:
            store: Attachment store shared by the run
            http_client: Pre-authenticated client; one is built from the
                         settings' access token if None
        """
        super().__init__(store)
        self._http_client = http_client
        self._transformer = HtmlTransformer()

    async def iter_messages(self, settings: ImporterSettings) -> AsyncIterator[ProviderMessage]:
        """
        Stream notes, progress lines and per-page errors.

        Raises:
            ProviderFatalError: Missing credentials, auth failure or a failed hierarchy fetch
        """
        tracker = ProgressTracker()

        def on_progress(payload: ProgressPayload) -> None:
            if tracker.update(payload):
                message = tracker.message()
                if message:
                    settings.report(message)

        async with AsyncExitStack() as stack:
            http = self._http_client
            if http is None:
                if not settings.access_token:
                    raise ProviderFatalError("OneNote import requires an access token")
                http = await stack.enter_async_context(
                    AsyncHttpClient(
                        bearer_token=settings.access_token,
                        default_timeout=settings.request_timeout,
                    )
                )

            graph = GraphClient(
                http,
                base_url=settings.graph_base_url,
                page_size=settings.page_size,
                timeout=settings.request_timeout,
                on_progress=on_progress,
            )
            resolver = settings.resolver or CompositeResolver([DataUriResolver(), HttpResolver(http)])

            notebooks = await graph.get_notebooks()
            for notebook in notebooks:
                for section in notebook.all_sections():
                    section_notebooks = get_notebooks(section)
                    for index, page in enumerate(section.pages):
                        settings.report(f"Transforming pages ({index + 1}/{len(section.pages)})")
                        yield log(f"Found {page.title or DEFAULT_TITLE}...")

                        try:
                            note, resolution_errors = await self._page_to_note(
                                graph, page, section_notebooks, settings, resolver
                            )
                        except GraphApiError as e:
                            if e.status_code in _FATAL_STATUS:
                                raise
                            yield self._page_error(page, e)
                            continue
                        except Exception as e:
                            yield self._page_error(page, e)
                            continue

                        for resolution_error in resolution_errors:
                            yield error(resolution_error, note)
                        yield note_message(note)
                        await asyncio.sleep(0)

        settings.report("Done!")

    async def process(self, settings: ImporterSettings) -> ProviderResult:
        """Run to completion and collect notes and per-page errors."""
        result = ProviderResult()
        async for message in self.iter_messages(settings):
            if message.type == MessageType.NOTE and message.note is not None:
                result.notes.append(message.note)
            elif message.type == MessageType.ERROR and message.error is not None:
                result.errors.append(message.error)
        return result

    def _page_error(self, page: OneNotePage, exc: Exception) -> ProviderMessage:
        title = page.title or DEFAULT_TITLE
        logger.warning(f"Failed to process page {title} ({page.id}): {exc}")
        return error(PageProcessingError(page.id, title, exc))

    async def _page_to_note(
        self,
        graph: GraphClient,
        page: OneNotePage,
        notebooks: list[Notebook],
        settings: ImporterSettings,
        resolver: AttachmentResolver,
    ) -> tuple[Note, list[Exception]]:
        note = Note(
            id=page.id,
            date_created=page.created,
            date_edited=page.modified,
            tags=list(page.tags),
            notebooks=list(notebooks),
        )

        markup = await graph.get_page_content(page)
        handler = HtmlElementHandler(note, settings.hasher, self.store, resolver)
        data = await self._transformer.transform(markup, handler)

        note.title = page_title(page, BeautifulSoup(markup, "html.parser"), data)
        note.content = NoteContent(type=ContentType.HTML, data=data.strip())
        logger.debug(f"Converted page {note.title} ({len(note.attachments)} attachments)")
        return note, handler.errors
