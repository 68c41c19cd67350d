"""Streaming ENEX (Evernote export) parser."""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import IO, Optional, Union
from xml.etree.ElementTree import Element, ParseError

from defusedxml.ElementTree import iterparse

from ...errors import ProviderFatalError

logger = logging.getLogger(__name__)

ENEX_DATE_FORMAT = "%Y%m%dT%H%M%SZ"


def parse_enex_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an ENEX timestamp (``20230102T030405Z``) as an aware UTC datetime."""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), ENEX_DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        logger.debug(f"Ignoring malformed ENEX date: {value!r}")
        return None


@dataclass
class EnexResource:
    """A binary resource embedded in an ENEX note."""

    data: bytes = field(repr=False)
    mime: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    filename: Optional[str] = None
    source_url: Optional[str] = None
    is_attachment: bool = False

    @property
    def hash(self) -> str:
        """MD5 hex digest, the key ``<en-media hash=...>`` refers to."""
        return hashlib.md5(self.data).hexdigest()


@dataclass
class EnexTask:
    """A task from the newer Evernote editor, grouped by ``group_id``."""

    title: str
    status: str = "open"
    group_id: Optional[str] = None
    sort_weight: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.status == "completed"


@dataclass
class EnexNote:
    """One ``<note>`` element of an ENEX export."""

    title: str = ""
    content: Optional[str] = None
    created: Optional[datetime] = None
    updated: Optional[datetime] = None
    tags: list[str] = field(default_factory=list)
    author: Optional[str] = None
    source: Optional[str] = None
    source_url: Optional[str] = None
    source_application: Optional[str] = None
    resources: list[EnexResource] = field(default_factory=list)
    tasks: list[EnexTask] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._by_hash: Optional[dict[str, EnexResource]] = None

    def resource_by_hash(self, content_hash: str) -> Optional[EnexResource]:
        if self._by_hash is None:
            self._by_hash = {r.hash: r for r in self.resources}
        return self._by_hash.get(content_hash.lower())


def _text(element: Optional[Element]) -> Optional[str]:
    if element is None or element.text is None:
        return None
    return element.text.strip() or None


def _int(element: Optional[Element]) -> Optional[int]:
    value = _text(element)
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def _parse_resource(element: Element) -> Optional[EnexResource]:
    data_element = element.find("data")
    raw = data_element.text if data_element is not None else None
    if not raw:
        return None
    try:
        data = base64.b64decode("".join(raw.split()), validate=True)
    except (binascii.Error, ValueError) as err:
        logger.warning(f"Skipping resource with undecodable data: {err}")
        return None

    attributes = element.find("resource-attributes")
    return EnexResource(
        data=data,
        mime=_text(element.find("mime")),
        width=_int(element.find("width")),
        height=_int(element.find("height")),
        filename=_text(attributes.find("file-name")) if attributes is not None else None,
        source_url=_text(attributes.find("source-url")) if attributes is not None else None,
        is_attachment=(_text(attributes.find("attachment")) == "true") if attributes is not None else False,
    )


def _parse_task(element: Element) -> EnexTask:
    return EnexTask(
        title=_text(element.find("title")) or "",
        status=_text(element.find("taskStatus")) or "open",
        group_id=_text(element.find("taskGroupNoteLevelID")),
        sort_weight=_text(element.find("sortWeight")),
    )


def parse_note(element: Element) -> EnexNote:
    """Build an EnexNote from a fully parsed ``<note>`` element."""
    attributes = element.find("note-attributes")

    def attribute(name: str) -> Optional[str]:
        return _text(attributes.find(name)) if attributes is not None else None

    content_element = element.find("content")
    resources = [r for r in (_parse_resource(e) for e in element.findall("resource")) if r is not None]
    tasks = sorted(
        (_parse_task(e) for e in element.findall("task")),
        key=lambda t: t.sort_weight or "",
    )

    return EnexNote(
        title=_text(element.find("title")) or "",
        content=content_element.text if content_element is not None else None,
        created=parse_enex_date(_text(element.find("created"))),
        updated=parse_enex_date(_text(element.find("updated"))),
        tags=[t for t in (_text(e) for e in element.findall("tag")) if t],
        author=attribute("author"),
        source=attribute("source"),
        source_url=attribute("source-url"),
        source_application=attribute("source-application"),
        resources=resources,
        tasks=tasks,
    )


def iter_enex(source: Union[str, IO[bytes]]) -> Iterator[EnexNote]:
    """
    Yield notes one at a time from an ENEX export.

    Each ``<note>`` is discarded from the tree once parsed, so memory use is
    bounded by the largest single note rather than the export size.

    Args:
        source: Path or binary file object

    Yields:
        EnexNote for every ``<note>`` in document order

    Raises:
        ProviderFatalError: If the XML is malformed
    """
    root: Optional[Element] = None
    try:
        for event, element in iterparse(source, events=("start", "end")):
            if event == "start":
                if root is None:
                    root = element
                continue

            if element.tag == "note":
                yield parse_note(element)
                element.clear()
                if root is not None:
                    root.clear()
    except ParseError as err:
        raise ProviderFatalError(f"Malformed ENEX file: {err}") from err
