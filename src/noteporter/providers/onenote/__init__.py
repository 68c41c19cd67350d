"""OneNote import through Microsoft Graph."""

from .client import (
    GraphClient,
    OneNoteNotebook,
    OneNotePage,
    OneNoteSection,
    OneNoteSectionGroup,
    parse_graph_date,
)
from .progress import ProgressTracker, progress_to_string
from .provider import OneNoteProvider, flattened_section_groups, get_notebooks, page_title

__all__ = [
    "GraphClient",
    "OneNoteNotebook",
    "OneNotePage",
    "OneNoteProvider",
    "OneNoteSection",
    "OneNoteSectionGroup",
    "ProgressTracker",
    "flattened_section_groups",
    "get_notebooks",
    "page_title",
    "parse_graph_date",
    "progress_to_string",
]
