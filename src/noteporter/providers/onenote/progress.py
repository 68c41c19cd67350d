"""Human-readable rendering of OneNote fetch progress."""

from __future__ import annotations

from typing import Optional

from ...models.messages import ItemType, ProgressOp, ProgressPayload

SEQUENCE = (ItemType.NOTEBOOK, ItemType.SECTION_GROUP, ItemType.SECTION, ItemType.PAGE)

_OPS = {ProgressOp.FETCH: "Fetching", ProgressOp.PROCESS: "Processing"}
_UNITS = {
    ItemType.NOTEBOOK: "notebooks",
    ItemType.SECTION_GROUP: "section groups",
    ItemType.SECTION: "sections",
    ItemType.PAGE: "pages",
}


def progress_to_string(payload: ProgressPayload) -> str:
    """``Fetching sections (2/5)``; ``current`` is zero-based."""
    return f"{_OPS[payload.op]} {_UNITS[payload.type]} ({payload.current + 1}/{payload.total})"


class ProgressTracker:
    """
    Latest payload per hierarchy level, rendered outermost-first.

    Example:
        tracker = ProgressTracker()
        tracker.update(ProgressPayload(ItemType.NOTEBOOK, ProgressOp.FETCH, 0, 2))
        tracker.update(ProgressPayload(ItemType.SECTION, ProgressOp.FETCH, 1, 4))
        tracker.message()  # "Fetching notebooks (1/2) => Fetching sections (2/4)"
    """

    def __init__(self) -> None:
        self._cache: dict[ItemType, ProgressPayload] = {}

    def update(self, payload: ProgressPayload) -> bool:
        """
        Record a payload.

        A payload that would move the same unit backwards (same op and total,
        smaller count) is ignored.

        Returns:
            True if the payload was recorded
        """
        previous: Optional[ProgressPayload] = self._cache.get(payload.type)
        if (
            previous is not None
            and previous.op == payload.op
            and previous.total == payload.total
            and payload.current < previous.current
        ):
            return False

        # A new outer unit restarts everything nested inside it
        for item_type in SEQUENCE[SEQUENCE.index(payload.type) + 1 :]:
            self._cache.pop(item_type, None)
        self._cache[payload.type] = payload
        return True

    def message(self) -> str:
        parts = []
        for item_type in SEQUENCE:
            value = self._cache.get(item_type)
            if value is None or value.total == value.current:
                continue
            parts.append(progress_to_string(value))
        return " => ".join(parts)
