"""Zip archive output."""

from .packer import attachment_path, pack, sanitize
from .storage import MemoryStorage
from .zip_stream import ZipEntry, ZipStreamWriter, save_archive, stream_archive

__all__ = [
    "MemoryStorage",
    "ZipEntry",
    "ZipStreamWriter",
    "attachment_path",
    "pack",
    "sanitize",
    "save_archive",
    "stream_archive",
]
