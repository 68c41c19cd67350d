"""Exception hierarchy for noteporter.

Per-item failures (a single note, page or attachment) are converted into
``error`` provider messages by the providers. Only ``ProviderFatalError`` and
archive sink failures are allowed to terminate a run.
"""

from __future__ import annotations


class ImporterError(Exception):
    """Base class for all noteporter errors."""


class StructuralError(ImporterError):
    """The source document is malformed or lacks its root content element."""


class AttachmentResolutionError(ImporterError):
    """Attachment bytes could not be produced for a locator."""

    def __init__(self, locator: str, message: str | None = None) -> None:
        self.locator = locator
        super().__init__(message or f"Could not resolve attachment: {_shorten(locator)}")


class AttachmentNotFoundError(AttachmentResolutionError):
    """The locator kind is supported but nothing exists at that location."""

    def __init__(self, locator: str) -> None:
        super().__init__(locator, f"Attachment not found: {_shorten(locator)}")


class UnsupportedLocatorError(AttachmentResolutionError):
    """No resolver understands this kind of locator."""

    def __init__(self, locator: str) -> None:
        super().__init__(locator, f"Unsupported attachment locator: {_shorten(locator)}")


class ArchiveError(ImporterError):
    """The archive byte sink failed."""


class ArchiveAbortedError(ArchiveError):
    """The archive stream was aborted; no further entries are accepted."""


class ProviderFatalError(ImporterError):
    """A condition that invalidates the whole provider run."""


class GraphApiError(ProviderFatalError):
    """Microsoft Graph returned a non-success response."""

    def __init__(self, status_code: int, url: str, message: str = "") -> None:
        self.status_code = status_code
        self.url = url
        detail = f": {message}" if message else ""
        super().__init__(f"Graph API request failed with {status_code} for {url}{detail}")


class ResponseTooLargeError(ImporterError):
    """A response body exceeded the client's size limit."""

    def __init__(self, url: str, limit: int) -> None:
        self.url = url
        self.limit = limit
        super().__init__(f"Response from {_shorten(url)} exceeds {limit} bytes")


class UnknownProviderError(ImporterError, KeyError):
    """No provider is registered under the requested id."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Unknown provider"


def _shorten(locator: str, limit: int = 80) -> str:
    """Keep data URIs and long URLs readable in error messages."""
    if len(locator) <= limit:
        return locator
    return locator[: limit - 3] + "..."


class PageProcessingError(ImporterError):
    """A OneNote page could not be converted; carries enough context to retry it."""

    def __init__(self, page_id: str, title: str, cause: BaseException) -> None:
        self.page_id = page_id
        self.title = title
        self.cause = cause
        super().__init__(f"{cause} (page: {title})")
