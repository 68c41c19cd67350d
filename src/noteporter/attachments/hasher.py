"""Content hashing for attachment identity."""

from __future__ import annotations

import hashlib
from typing import Protocol, Union


class Hasher(Protocol):
    """
    Deterministic content-addressing of attachment bytes.

    Implementations must return equal hashes for byte-identical input.
    """

    def hash(self, data: bytes) -> str:
        """Return the content hash of ``data``."""
        ...


class Sha256Hasher:
    """Hex-encoded SHA-256, the default hasher."""

    name = "sha256"

    def hash(self, data: Union[bytes, bytearray, memoryview, str]) -> str:
        if isinstance(data, str):
            data = data.encode("utf-8")
        return hashlib.sha256(data).hexdigest()
