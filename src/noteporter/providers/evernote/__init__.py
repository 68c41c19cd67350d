"""Evernote (.enex) support."""

from .enex import EnexNote, EnexResource, EnexTask, iter_enex, parse_enex_date
from .handler import EvernoteElementHandler, NoteIds
from .provider import EvernoteProvider

__all__ = [
    "EnexNote",
    "EnexResource",
    "EnexTask",
    "EvernoteElementHandler",
    "EvernoteProvider",
    "NoteIds",
    "iter_enex",
    "parse_enex_date",
]
