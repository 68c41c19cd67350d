"""Microsoft Graph client for the OneNote hierarchy."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional
from urllib.parse import urlencode

import aiohttp

from ...errors import GraphApiError, ProviderFatalError, ResponseTooLargeError
from ...http.protocols import HttpClient, HttpResponse
from ...models.messages import ItemType, ProgressOp, ProgressPayload

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"


def parse_graph_date(value: Optional[str]) -> Optional[datetime]:
    """Parse Graph's ISO 8601 timestamps (``2023-01-02T03:04:05Z``)."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Ignoring malformed Graph date: {value!r}")
        return None


@dataclass
class OneNotePage:
    id: str
    title: Optional[str] = None
    created: Optional[datetime] = None
    modified: Optional[datetime] = None
    tags: list[str] = field(default_factory=list)
    content_url: Optional[str] = None


@dataclass
class OneNoteSection:
    id: str
    display_name: Optional[str] = None
    parent_notebook: Optional[OneNoteNotebook] = field(default=None, repr=False)
    parent_section_group: Optional[OneNoteSectionGroup] = field(default=None, repr=False)
    pages: list[OneNotePage] = field(default_factory=list)


@dataclass
class OneNoteSectionGroup:
    id: str
    display_name: Optional[str] = None
    parent_section_group: Optional[OneNoteSectionGroup] = field(default=None, repr=False)
    sections: list[OneNoteSection] = field(default_factory=list)
    section_groups: list[OneNoteSectionGroup] = field(default_factory=list)

    def all_sections(self) -> Iterator[OneNoteSection]:
        """Sections of this group, then those of nested groups, in discovery order."""
        yield from self.sections
        for group in self.section_groups:
            yield from group.all_sections()


@dataclass
class OneNoteNotebook:
    id: str
    display_name: Optional[str] = None
    sections: list[OneNoteSection] = field(default_factory=list)
    section_groups: list[OneNoteSectionGroup] = field(default_factory=list)

    def all_sections(self) -> Iterator[OneNoteSection]:
        yield from self.sections
        for group in self.section_groups:
            yield from group.all_sections()


class GraphClient:
    """
    Walks the signed-in user's OneNote notebooks through Microsoft Graph.

    Collections are followed through ``@odata.nextLink`` until exhausted.
    Every request is made exactly once; a non-success response raises
    GraphApiError, which ends the run. Page bodies are not part of the
    hierarchy walk and are fetched one at a time with ``get_page_content``.

    Example:
        async with AsyncHttpClient(bearer_token=token) as http:
            graph = GraphClient(http, on_progress=print)
            for notebook in await graph.get_notebooks():
                for section in notebook.all_sections():
                    html = await graph.get_page_content(section.pages[0])
    """

    def __init__(
        self,
        http_client: HttpClient,
        base_url: str = GRAPH_BASE_URL,
        page_size: int = 100,
        timeout: Optional[float] = None,
        on_progress: Optional[Callable[[ProgressPayload], None]] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            http_client: Client carrying the bearer token in its default headers
            base_url: Graph API root
            page_size: ``$top`` for collection requests
            timeout: Per-request timeout in seconds
            on_progress: Called with a ProgressPayload for every item fetched
        """
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._page_size = page_size
        self._timeout = timeout
        self._on_progress = on_progress

    def _report(self, item_type: ItemType, current: int, total: int) -> None:
        if self._on_progress is not None:
            self._on_progress(ProgressPayload(type=item_type, op=ProgressOp.FETCH, current=current, total=total))

    def _url(self, path: str, **params: Any) -> str:
        query = {"$top": self._page_size, **params}
        return f"{self._base_url}/me/onenote/{path}?{urlencode(query, safe='$,')}"

    async def _request(self, url: str) -> HttpResponse:
        try:
            response = await self._http.get(url, timeout=self._timeout)
        except (aiohttp.ClientError, asyncio.TimeoutError, ResponseTooLargeError) as err:
            raise ProviderFatalError(f"Graph request to {url} failed: {err}") from err
        if not response.ok:
            raise GraphApiError(response.status_code, url, _graph_error_message(response))
        return response

    async def get_collection(self, url: str) -> list[dict[str, Any]]:
        """Fetch every item of a collection, following ``@odata.nextLink``."""
        items: list[dict[str, Any]] = []
        next_url: Optional[str] = url
        while next_url:
            payload = (await self._request(next_url)).json()
            items.extend(payload.get("value") or [])
            next_url = payload.get("@odata.nextLink")
        return items

    async def get_notebooks(self) -> list[OneNoteNotebook]:
        """
        Fetch the complete notebook hierarchy without page bodies.

        Returns:
            Notebooks with their sections, section groups and page metadata
        """
        raw = await self.get_collection(self._url("notebooks"))
        notebooks: list[OneNoteNotebook] = []
        for index, item in enumerate(raw):
            self._report(ItemType.NOTEBOOK, index, len(raw))
            notebook = OneNoteNotebook(id=item["id"], display_name=item.get("displayName"))
            notebook.sections = await self._get_sections(f"notebooks/{notebook.id}/sections", notebook, None)
            notebook.section_groups = await self._get_section_groups(
                f"notebooks/{notebook.id}/sectionGroups", notebook, None
            )
            notebooks.append(notebook)
        self._report(ItemType.NOTEBOOK, len(raw), len(raw))
        logger.info(f"Fetched {len(notebooks)} OneNote notebooks")
        return notebooks

    async def _get_section_groups(
        self,
        path: str,
        notebook: OneNoteNotebook,
        parent: Optional[OneNoteSectionGroup],
    ) -> list[OneNoteSectionGroup]:
        raw = await self.get_collection(self._url(path))
        groups: list[OneNoteSectionGroup] = []
        for index, item in enumerate(raw):
            self._report(ItemType.SECTION_GROUP, index, len(raw))
            group = OneNoteSectionGroup(
                id=item["id"],
                display_name=item.get("displayName"),
                parent_section_group=parent,
            )
            group.sections = await self._get_sections(f"sectionGroups/{group.id}/sections", notebook, group)
            group.section_groups = await self._get_section_groups(
                f"sectionGroups/{group.id}/sectionGroups", notebook, group
            )
            groups.append(group)
        self._report(ItemType.SECTION_GROUP, len(raw), len(raw))
        return groups

    async def _get_sections(
        self,
        path: str,
        notebook: OneNoteNotebook,
        group: Optional[OneNoteSectionGroup],
    ) -> list[OneNoteSection]:
        raw = await self.get_collection(self._url(path))
        sections: list[OneNoteSection] = []
        for index, item in enumerate(raw):
            self._report(ItemType.SECTION, index, len(raw))
            section = OneNoteSection(
                id=item["id"],
                display_name=item.get("displayName"),
                parent_notebook=notebook,
                parent_section_group=group,
            )
            section.pages = await self._get_pages(section)
            sections.append(section)
        self._report(ItemType.SECTION, len(raw), len(raw))
        return sections

    async def _get_pages(self, section: OneNoteSection) -> list[OneNotePage]:
        raw = await self.get_collection(
            self._url(
                f"sections/{section.id}/pages",
                **{"$select": "id,title,createdDateTime,lastModifiedDateTime,userTags,contentUrl"},
            )
        )
        pages = []
        for index, item in enumerate(raw):
            self._report(ItemType.PAGE, index, len(raw))
            pages.append(
                OneNotePage(
                    id=item["id"],
                    title=item.get("title"),
                    created=parse_graph_date(item.get("createdDateTime")),
                    modified=parse_graph_date(item.get("lastModifiedDateTime")),
                    tags=list(item.get("userTags") or []),
                    content_url=item.get("contentUrl"),
                )
            )
        self._report(ItemType.PAGE, len(raw), len(raw))
        return pages

    async def get_page_content(self, page: OneNotePage) -> str:
        """Fetch a page body as HTML."""
        url = page.content_url or f"{self._base_url}/me/onenote/pages/{page.id}/content"
        response = await self._request(url)
        return response.text()


def _graph_error_message(response: HttpResponse) -> str:
    try:
        payload = response.json()
    except ValueError:
        return ""
    if isinstance(payload, dict):
        detail = payload.get("error")
        if isinstance(detail, dict):
            return str(detail.get("message") or detail.get("code") or "")
    return ""
