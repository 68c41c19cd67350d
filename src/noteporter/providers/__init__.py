"""Source format providers."""

from .base import (
    BaseProvider,
    File,
    FileProvider,
    NetworkProvider,
    ProviderInfo,
    ProviderResult,
    ProviderType,
)
from .registry import PROVIDERS, available_providers, detect, get_provider

__all__ = [
    "BaseProvider",
    "File",
    "FileProvider",
    "NetworkProvider",
    "PROVIDERS",
    "ProviderInfo",
    "ProviderResult",
    "ProviderType",
    "available_providers",
    "detect",
    "get_provider",
]
