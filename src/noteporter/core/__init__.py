"""Core orchestration."""

from .importer import Importer, import_blocking

__all__ = ["Importer", "import_blocking"]
