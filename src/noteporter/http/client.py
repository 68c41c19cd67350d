"""aiohttp client for Microsoft Graph and remote attachments."""

from __future__ import annotations

import logging
from types import TracebackType

import aiohttp

from ..errors import ResponseTooLargeError
from .protocols import HttpResponse

logger = logging.getLogger(__name__)

USER_AGENT = "noteporter/1.0"


class AsyncHttpClient:
    """
    Reads whole responses into HttpResponse objects.

    Graph requests and attachment downloads share one session per import
    run. A bearer token, when given, is sent with every request. Bodies
    larger than ``max_content_size`` are refused while streaming, so a huge
    attachment fails on its own instead of exhausting memory.

    There are no retries: each ``get`` is exactly one request and callers
    decide what a failure means (a page error, a missing attachment, or the
    end of the run).

    Example:
        async with AsyncHttpClient(bearer_token=token) as http:
            response = await http.get("https://graph.microsoft.com/v1.0/me/onenote/notebooks")
            notebooks = response.json()["value"]
    """

    MAX_CONTENT_SIZE = 100 * 1024 * 1024  # 100 MB
    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        bearer_token: str | None = None,
        max_content_size: int = MAX_CONTENT_SIZE,
        default_timeout: float = 60.0,
        default_headers: dict[str, str] | None = None,
        proxy: str | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            bearer_token: OAuth access token sent as ``Authorization: Bearer``
            max_content_size: Largest body accepted, in bytes
            default_timeout: Per-request timeout in seconds
            default_headers: Extra headers sent with every request
            proxy: Proxy URL
        """
        self._headers = {"User-Agent": USER_AGENT, **(default_headers or {})}
        if bearer_token:
            self._headers["Authorization"] = f"Bearer {bearer_token}"
        self._max_content_size = max_content_size
        self._default_timeout = default_timeout
        self._proxy = proxy
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> AsyncHttpClient:
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=10, limit_per_host=4),
            headers=self._headers,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def get(
        self,
        url: str,
        *,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
    ) -> HttpResponse:
        """
        Fetch ``url`` once and read the whole body.

        Non-success statuses are returned, not raised.

        Raises:
            aiohttp.ClientError: Connection or protocol failure
            ResponseTooLargeError: Body exceeds ``max_content_size``
        """
        if self._session is None:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        async with self._session.get(
            url,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=timeout or self._default_timeout),
            proxy=self._proxy,
        ) as response:
            declared = response.content_length
            if declared is not None and declared > self._max_content_size:
                raise ResponseTooLargeError(url, self._max_content_size)
            body = await self._read(url, response)

            result = HttpResponse(
                status_code=response.status,
                content=body,
                content_type=response.headers.get("Content-Type", ""),
                headers=dict(response.headers),
                url=str(response.url),
            )

        if result.ok:
            logger.debug(f"GET {url} -> {result.status_code} ({len(body)} bytes)")
        else:
            logger.debug(f"GET {url} -> {result.status_code} (request-id: {result.request_id})")
        return result

    async def _read(self, url: str, response: aiohttp.ClientResponse) -> bytes:
        body = bytearray()
        async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
            body.extend(chunk)
            if len(body) > self._max_content_size:
                raise ResponseTooLargeError(url, self._max_content_size)
        return bytes(body)
