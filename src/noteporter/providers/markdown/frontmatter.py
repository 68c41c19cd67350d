"""YAML front matter with per-field fallback keys."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

_FRONT_MATTER = re.compile(r"\A\ufeff?---[ \t]*\r?\n(.*?)\r?\n(?:---|\.\.\.)[ \t]*(?:\r?\n|\Z)", re.DOTALL)

# First key present wins
TITLE_KEYS = ("title",)
TAG_KEYS = ("tags", "keywords", "categories")
CREATED_KEYS = ("created", "created_at", "date created")
EDITED_KEYS = ("updated", "updated_at", "modified", "date modified", "date edited")
PINNED_KEYS = ("pinned", "pin")
FAVORITE_KEYS = ("favorite", "favourite", "starred")
COLOR_KEYS = ("color", "colour")


@dataclass
class FrontMatter:
    """Note properties overridden by a front matter block; None means absent."""

    title: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    created: Optional[datetime] = None
    edited: Optional[datetime] = None
    pinned: Optional[bool] = None
    favorite: Optional[bool] = None
    color: Optional[str] = None


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """
    Separate a leading ``---`` YAML block from the document body.

    Invalid YAML, or YAML that is not a mapping, is treated as part of the
    body.

    Returns:
        Tuple of (front matter mapping, remaining body)
    """
    match = _FRONT_MATTER.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.warning(f"Ignoring malformed front matter: {e}")
        return {}, text
    if not isinstance(data, dict):
        return {}, text
    return {str(k).lower(): v for k, v in data.items()}, text[match.end() :]


def _first(data: dict[str, Any], keys: tuple[str, ...]) -> Any:
    """Value of the first key that is present and not null; ``created:`` alone does not count."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time())
    elif isinstance(value, (int, float)):
        # Epoch milliseconds for large values, seconds otherwise
        seconds = value / 1000 if value > 10**11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Ignoring unparseable front matter date: {value!r}")
            return None
    else:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    if isinstance(value, int):
        return bool(value)
    return None


def _as_tags(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = [t.strip() for t in value.split(",")]
    elif isinstance(value, (list, tuple)):
        items = [str(t).strip() for t in value if t is not None]
    else:
        items = [str(value).strip()]
    return [t.lstrip("#") for t in items if t]


def parse_front_matter(data: dict[str, Any]) -> FrontMatter:
    """Pick note properties out of a front matter mapping."""
    title = _first(data, TITLE_KEYS)
    color = _first(data, COLOR_KEYS)
    return FrontMatter(
        title=str(title).strip() or None if title is not None else None,
        tags=_as_tags(_first(data, TAG_KEYS)),
        created=_as_datetime(_first(data, CREATED_KEYS)),
        edited=_as_datetime(_first(data, EDITED_KEYS)),
        pinned=_as_bool(_first(data, PINNED_KEYS)),
        favorite=_as_bool(_first(data, FAVORITE_KEYS)),
        color=str(color) if color is not None else None,
    )
