"""Attachment resolvers: turn a locator into raw bytes on demand."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path, PurePosixPath
from typing import Optional, Protocol
from urllib.parse import unquote, unquote_to_bytes, urlparse

import aiohttp

from ..errors import (
    AttachmentNotFoundError,
    AttachmentResolutionError,
    ResponseTooLargeError,
    UnsupportedLocatorError,
)
from ..http.protocols import HttpClient

logger = logging.getLogger(__name__)


class AttachmentResolver(Protocol):
    """
    Protocol for fetching attachment payloads.

    A locator is a URL, a path relative to the source file, or an inline
    ``data:`` URI. Implementations raise AttachmentNotFoundError when the
    locator is understood but empty-handed, and UnsupportedLocatorError when
    they cannot handle that kind of locator at all.
    """

    def supports(self, locator: str) -> bool:
        """Whether this resolver handles the locator's kind."""
        ...

    async def resolve(self, locator: str) -> bytes:
        """Return the raw payload bytes."""
        ...


def parse_data_uri(uri: str) -> tuple[str, bytes]:
    """
    Split a ``data:`` URI into its MIME type and decoded payload.

    Args:
        uri: A ``data:[<mime>][;base64],<payload>`` string

    Returns:
        Tuple of (mime, payload)

    Raises:
        UnsupportedLocatorError: If ``uri`` is not a data URI
        AttachmentResolutionError: If the payload cannot be decoded
    """
    if not uri.startswith("data:"):
        raise UnsupportedLocatorError(uri)

    header, sep, payload = uri[5:].partition(",")
    if not sep:
        raise AttachmentResolutionError(uri, "Malformed data URI: missing payload separator")

    params = [p.strip() for p in header.split(";")]
    mime = params[0] or "text/plain"
    try:
        if "base64" in params[1:]:
            return mime, base64.b64decode("".join(payload.split()), validate=True)
        return mime, unquote_to_bytes(payload)
    except (binascii.Error, ValueError) as err:
        raise AttachmentResolutionError(uri, f"Malformed data URI payload: {err}") from err


class DataUriResolver:
    """Decodes inline ``data:`` URIs."""

    def supports(self, locator: str) -> bool:
        return locator.startswith("data:")

    async def resolve(self, locator: str) -> bytes:
        _, data = parse_data_uri(locator)
        return data


class LocalFileResolver:
    """
    Resolves relative paths against the files exported alongside a source file.

    Sibling files are matched first by their path relative to ``base_dir``
    and then by bare filename. Paths that escape ``base_dir`` are refused.

    Example:
        resolver = LocalFileResolver(base_dir=Path("export"), files=[Path("export/img/a.png")])
        data = await resolver.resolve("img/a.png")
    """

    def __init__(self, base_dir: Optional[Path] = None, files: Iterable[Path] = ()) -> None:
        self._base_dir = base_dir.resolve() if base_dir else None
        self._by_relative: dict[str, Path] = {}
        self._by_name: dict[str, Path] = {}
        for path in files:
            path = Path(path)
            self._by_name.setdefault(path.name, path)
            if self._base_dir is not None:
                try:
                    relative = path.resolve().relative_to(self._base_dir)
                except ValueError:
                    continue
                self._by_relative[relative.as_posix()] = path

    def supports(self, locator: str) -> bool:
        parsed = urlparse(locator)
        if parsed.scheme == "file":
            return True
        # Windows drive letters parse as one-letter schemes
        return not parsed.scheme or len(parsed.scheme) == 1

    def _candidate(self, locator: str) -> Optional[Path]:
        parsed = urlparse(locator)
        raw = unquote(parsed.path if parsed.scheme in ("file", "") else locator)
        relative = PurePosixPath(raw.replace("\\", "/"))
        key = relative.as_posix()

        if key in self._by_relative:
            return self._by_relative[key]
        if relative.name in self._by_name:
            return self._by_name[relative.name]

        if self._base_dir is None:
            return None
        candidate = (self._base_dir / relative.as_posix().lstrip("/")).resolve()
        try:
            candidate.relative_to(self._base_dir)
        except ValueError:
            logger.warning(f"Refusing attachment path outside {self._base_dir}: {locator}")
            return None
        return candidate

    async def resolve(self, locator: str) -> bytes:
        if not self.supports(locator):
            raise UnsupportedLocatorError(locator)

        path = self._candidate(locator)
        if path is None or not path.is_file():
            raise AttachmentNotFoundError(locator)
        return await asyncio.to_thread(path.read_bytes)


class HttpResolver:
    """Fetches http(s) locators through an HttpClient."""

    def __init__(self, http_client: HttpClient, headers: Optional[dict[str, str]] = None) -> None:
        self._http_client = http_client
        self._headers = headers

    def supports(self, locator: str) -> bool:
        return urlparse(locator).scheme in ("http", "https")

    async def resolve(self, locator: str) -> bytes:
        if not self.supports(locator):
            raise UnsupportedLocatorError(locator)

        try:
            response = await self._http_client.get(locator, headers=self._headers)
        except (aiohttp.ClientError, asyncio.TimeoutError, ResponseTooLargeError) as err:
            raise AttachmentResolutionError(locator, f"Fetching {locator} failed: {err}") from err
        if response.status_code in (404, 410):
            raise AttachmentNotFoundError(locator)
        if not 200 <= response.status_code < 300:
            raise AttachmentResolutionError(locator, f"HTTP {response.status_code} fetching {locator}")
        return response.content


class CompositeResolver:
    """
    Dispatches each locator to the first resolver that supports it.

    Example:
        resolver = CompositeResolver([DataUriResolver(), LocalFileResolver(base_dir)])
    """

    def __init__(self, resolvers: Sequence[AttachmentResolver]) -> None:
        self._resolvers = list(resolvers)

    def supports(self, locator: str) -> bool:
        return any(r.supports(locator) for r in self._resolvers)

    async def resolve(self, locator: str) -> bytes:
        for resolver in self._resolvers:
            if resolver.supports(locator):
                return await resolver.resolve(locator)
        raise UnsupportedLocatorError(locator)
