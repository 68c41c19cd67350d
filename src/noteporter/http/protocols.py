"""Response type and client protocol shared by Graph and attachment fetching."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol


@dataclass(frozen=True)
class HttpResponse:
    """
    A fully read response.

    Graph collections are decoded with ``json()``, page bodies with
    ``text()`` and attachment payloads are taken from ``content`` as-is.

    Attributes:
        status_code: HTTP status
        content: Body bytes
        content_type: Content-Type header, "" if absent
        headers: Response headers
        url: URL the body was read from, after redirects
    """

    status_code: int
    content: bytes = field(repr=False)
    content_type: str
    headers: dict[str, str]
    url: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def charset(self) -> Optional[str]:
        for param in self.content_type.split(";")[1:]:
            name, _, value = param.strip().partition("=")
            if name.lower() == "charset" and value:
                return value.strip('"')
        return None

    @property
    def request_id(self) -> Optional[str]:
        """Graph's ``request-id`` header, quoted in support requests."""
        for name, value in self.headers.items():
            if name.lower() == "request-id":
                return value
        return None

    def text(self) -> str:
        return self.content.decode(self.charset or "utf-8", errors="replace")

    def json(self) -> Any:
        """
        Decode the body as JSON.

        Raises:
            ValueError: If the body is not JSON
        """
        return json.loads(self.text())


class HttpClient(Protocol):
    """
    What providers and resolvers need from an HTTP client.

    ``AsyncHttpClient`` is the aiohttp implementation; tests substitute
    in-memory fakes.
    """

    async def get(
        self,
        url: str,
        *,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
    ) -> HttpResponse:
        """
        Fetch ``url`` once.

        Args:
            url: Absolute URL
            timeout: Seconds before giving up, client default if None
            headers: Headers added to the client's defaults

        Returns:
            The response, whatever its status
        """
        ...
