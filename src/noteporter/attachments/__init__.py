"""Attachment hashing, resolution and per-run registry."""

from .hasher import Hasher, Sha256Hasher
from .store import AttachmentStore
from .resolver import (
    AttachmentResolver,
    CompositeResolver,
    DataUriResolver,
    HttpResolver,
    LocalFileResolver,
    parse_data_uri,
)

__all__ = [
    "AttachmentResolver",
    "AttachmentStore",
    "CompositeResolver",
    "DataUriResolver",
    "Hasher",
    "HttpResolver",
    "LocalFileResolver",
    "Sha256Hasher",
    "parse_data_uri",
]
