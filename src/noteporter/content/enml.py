"""Transformer for Evernote ENML note bodies."""

from __future__ import annotations

import logging
from typing import Optional

from bs4 import Tag

from .protocols import ClipSource, ElementHandler
from .transformer import CODEBLOCK, IMG_DATAURL, TASK_GROUP, WEBCLIP, ContentTransformer

logger = logging.getLogger(__name__)

INTERNAL_LINK = "internal-link"
WEBCLIPPER_APPLICATION = "webclipper.evernote"

# Evernote-only elements that never survive as-is
ENML_ELEMENTS = (
    "en-media",
    "en-crypt",
    "en-todo",
    # Produced by the newer Evernote editor
    "en-codeblock",
    "en-task-group",
)


class EnmlTransformer(ContentTransformer):
    """
    ENML to HTML.

    Besides the special ``en-*`` tags, Evernote encodes semantics in custom
    style declarations (``--en-codeblock``, ``--en-task-group``,
    ``--en-clipped-content``); those are migrated to attributes and the
    element is classified accordingly. Notes captured by the web clipper
    without an explicit clip marker are handed to the handler as one
    full-page ``en-webclip`` element.
    """

    root_tag = "en-note"
    special_tags = ENML_ELEMENTS
    extra_selectors = ('a[href^="evernote:"]',)
    first_pass_types = (
        CODEBLOCK,
        TASK_GROUP,
        "en-crypt",
        "en-todo",
        WEBCLIP,
        INTERNAL_LINK,
    )
    media_types = (IMG_DATAURL, "en-media")
    priority = (WEBCLIP, CODEBLOCK, TASK_GROUP, IMG_DATAURL, INTERNAL_LINK)

    def _classify_style(
        self,
        element: Tag,
        name: str,
        value: str,
        styles: dict[str, str],
    ) -> Optional[str]:
        if name in ("--en-clipped-source-url", "--en-clipped-source-title"):
            element[name[len("--en-") :]] = value
        elif name == "--en-clipped-content":
            element["clipped-content"] = value
            return WEBCLIP
        elif name == "--en-codeblock":
            return CODEBLOCK
        elif name == "--en-task-group":
            task_group_id = styles.get("--en-id")
            if task_group_id:
                element["task-group-id"] = task_group_id
            return TASK_GROUP
        return None

    def _classify_extra(self, element: Tag) -> set[str]:
        if element.name == "a" and str(element.get("href", "")).startswith("evernote:"):
            return {INTERNAL_LINK}
        return set()

    async def _process_clipped_page(
        self,
        markup: str,
        handler: Optional[ElementHandler],
        note: Optional[ClipSource],
    ) -> Optional[Tag]:
        if note is None or handler is None:
            return None
        source_url = getattr(note, "source_url", None)
        if not source_url or getattr(note, "source_application", None) != WEBCLIPPER_APPLICATION:
            return None

        root = self._find_root(self._parse(markup))
        root["clipped-content"] = "fullPage"
        root["clipped-source-url"] = source_url

        logger.debug(f"Treating note body as a full-page clip of {source_url}")
        result = await handler.process(WEBCLIP, root)
        if not result:
            return None
        return self._parse(result)
