"""Provider registry: lookup by id and detection by file extension."""

from __future__ import annotations

import logging
from typing import Optional, Union

from ..attachments.store import AttachmentStore
from ..errors import UnknownProviderError
from .base import BaseProvider, File, ProviderInfo, ProviderType
from .evernote import EvernoteProvider
from .html import HtmlProvider
from .markdown import MarkdownProvider
from .onenote import OneNoteProvider

logger = logging.getLogger(__name__)

PROVIDERS: dict[str, type[BaseProvider]] = {
    provider.id: provider for provider in (EvernoteProvider, OneNoteProvider, MarkdownProvider, HtmlProvider)
}


def get_provider(provider_id: str, store: Optional[AttachmentStore] = None) -> BaseProvider:
    """
    Create a fresh provider instance.

    Providers are single-use; call this once per run.

    Raises:
        UnknownProviderError: If no provider is registered under ``provider_id``
    """
    try:
        provider_class = PROVIDERS[provider_id]
    except KeyError:
        raise UnknownProviderError(f"Unknown provider: {provider_id}") from None
    return provider_class(store=store)


def detect(file: Union[File, str], store: Optional[AttachmentStore] = None) -> Optional[BaseProvider]:
    """
    Pick the file provider that accepts ``file``.

    Returns:
        A fresh provider instance, or None if no provider supports the file
    """
    if not isinstance(file, File):
        file = File.from_path(file)
    for provider_class in PROVIDERS.values():
        if provider_class.type != ProviderType.FILE:
            continue
        provider = provider_class(store=store)
        if provider.filter(file):
            return provider
    logger.debug(f"No provider for {file.name}")
    return None


def available_providers() -> list[ProviderInfo]:
    """Static metadata of every registered provider."""
    return [provider.info() for provider in PROVIDERS.values()]
