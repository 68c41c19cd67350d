"""Element handler plumbing shared by the providers."""

from __future__ import annotations

import logging
import mimetypes
from typing import Any, Awaitable, Callable, ClassVar, Optional

from bs4 import BeautifulSoup, Tag

from ..attachments.hasher import Hasher
from ..attachments.resolver import AttachmentResolver, parse_data_uri
from ..attachments.store import AttachmentStore
from ..content.html import TASK
from ..content.transformer import IMG_DATAURL
from ..errors import AttachmentResolutionError
from ..models.note import Attachment, Note

logger = logging.getLogger(__name__)


def new_tag(name: str, attrs: Optional[dict[str, Any]] = None, string: Optional[str] = None) -> Tag:
    """Build a detached tag; attributes that are None or empty are left out."""
    clean = {k: str(v) for k, v in (attrs or {}).items() if v is not None and v != ""}
    tag = BeautifulSoup("", "html.parser").new_tag(name, attrs=clean)
    if string is not None:
        tag.string = string
    return tag


def image_markup(attachment: Attachment, **attrs: Any) -> str:
    """``<img>`` referencing an attachment by hash."""
    tag_attrs: dict[str, Any] = {
        "data-hash": attachment.hash,
        "data-filename": attachment.filename,
        "data-mime": attachment.mime or "application/octet-stream",
        "data-size": attachment.size or 0,
    }
    tag_attrs.update({k.replace("_", "-"): v for k, v in attrs.items() if v not in (None, "")})
    return str(new_tag("img", tag_attrs))


def file_markup(attachment: Attachment) -> str:
    """Inline attachment chip referencing an attachment by hash."""
    tag = new_tag(
        "span",
        {
            "class": "attachment",
            "data-hash": attachment.hash,
            "data-filename": attachment.filename,
            "data-mime": attachment.mime or "application/octet-stream",
            "data-size": attachment.size or 0,
        },
        string=attachment.filename,
    )
    return str(tag)


def checklist_markup(items: list[tuple[str, bool]], raw_html: bool = False) -> str:
    """``<ul class="checklist">`` with one ``<li>`` per (text, checked) item."""
    ul = new_tag("ul", {"class": "checklist"})
    for text, checked in items:
        li = new_tag("li", {"class": "checked"} if checked else None)
        if raw_html:
            for node in list(BeautifulSoup(text, "html.parser").contents):
                li.append(node)
        else:
            li.string = text
        ul.append(li)
    return str(ul)


class BaseElementHandler:
    """
    Base class for per-format element handlers.

    Subclasses map element types to coroutine methods in ``HANDLERS``.
    Types without an entry are deleted. Attachment payloads are hashed with
    the run's Hasher and registered in the run's AttachmentStore, so an
    identical binary referenced from many notes is stored once.

    Resolution failures are recorded in ``errors`` (and logged) rather than
    raised: the element is replaced by markup without the broken reference.
    """

    HANDLERS: ClassVar[dict[str, str]] = {IMG_DATAURL: "process_data_url_image"}

    def __init__(
        self,
        note: Note,
        hasher: Hasher,
        store: AttachmentStore,
        resolver: Optional[AttachmentResolver] = None,
    ) -> None:
        self.note = note
        self.hasher = hasher
        self.store = store
        self.resolver = resolver
        self.errors: list[Exception] = []

    async def process(self, element_type: str, element: Tag) -> Optional[str]:
        method_name = self.HANDLERS.get(element_type)
        if method_name is None:
            logger.debug(f"No handler for {element_type}, dropping element")
            return None
        method: Callable[[Tag], Awaitable[Optional[str]]] = getattr(self, method_name)
        return await method(element)

    async def add_attachment(
        self,
        data: bytes,
        filename: str,
        mime: Optional[str] = None,
        locator: Optional[str] = None,
    ) -> Attachment:
        """
        Hash, register and reference an attachment.

        Returns:
            The stored attachment (an earlier one if the hash was already known)
        """
        attachment = Attachment(
            hash=self.hasher.hash(data),
            filename=filename,
            mime=mime or mimetypes.guess_type(filename)[0],
            size=len(data),
            data=data,
            locator=locator if locator and not locator.startswith("data:") else None,
        )
        stored, _ = await self.store.register(attachment)
        self.note.add_attachment(stored)
        return stored

    async def resolve(self, locator: str) -> Optional[bytes]:
        """Fetch a payload, recording (not raising) resolution failures."""
        if self.resolver is None:
            self.record_error(AttachmentResolutionError(locator, f"No resolver available for {locator}"))
            return None
        try:
            return await self.resolver.resolve(locator)
        except AttachmentResolutionError as e:
            self.record_error(e)
            return None

    def record_error(self, exc: Exception) -> None:
        logger.warning(f"{exc} (note: {self.note.title})")
        self.errors.append(exc)

    async def process_data_url_image(self, element: Tag) -> Optional[str]:
        src = str(element.get("src", ""))
        try:
            mime, data = parse_data_uri(src)
        except AttachmentResolutionError as e:
            self.record_error(e)
            return None

        extension = mimetypes.guess_extension(mime) or ".bin"
        filename = str(element.get("data-filename") or f"image{extension}")
        attachment = await self.add_attachment(data, filename, mime)
        return image_markup(
            attachment,
            alt=element.get("alt"),
            width=element.get("width"),
            height=element.get("height"),
            style=element.get("style"),
        )


class HtmlElementHandler(BaseElementHandler):
    """
    Handler for HTML-rooted bodies: OneNote pages, Markdown and HTML files.

    Images and ``<object>`` attachments are resolved through the resolver
    (Graph resource URLs, relative paths next to the source file). Remote
    locators the resolver does not support are left untouched.
    """

    HANDLERS: ClassVar[dict[str, str]] = {
        IMG_DATAURL: "process_data_url_image",
        "img": "process_image",
        "object": "process_object",
        "iframe": "process_iframe",
        TASK: "process_task",
    }

    def _supported(self, locator: str) -> bool:
        return self.resolver is not None and self.resolver.supports(locator)

    async def process_image(self, element: Tag) -> Optional[str]:
        locator = str(element.get("data-fullres-src") or element.get("src") or "")
        if not locator:
            return None
        if not self._supported(locator):
            return str(element)

        data = await self.resolve(locator)
        if data is None:
            alt = element.get("alt")
            return str(new_tag("span", string=str(alt))) if alt else None

        mime = str(
            element.get("data-fullres-src-type")
            or element.get("data-src-type")
            or mimetypes.guess_type(locator.split("?", 1)[0])[0]
            or "image/png"
        )
        filename = _filename_from_locator(locator, mime, default_stem="image")
        attachment = await self.add_attachment(data, filename, mime, locator=locator)
        return image_markup(
            attachment,
            alt=element.get("alt"),
            width=element.get("width"),
            height=element.get("height"),
            style=element.get("style"),
        )

    async def process_object(self, element: Tag) -> Optional[str]:
        locator = str(element.get("data") or "")
        filename = str(element.get("data-attachment") or "")
        if not locator:
            return None
        if not self._supported(locator):
            return str(element)

        data = await self.resolve(locator)
        if data is None:
            return str(new_tag("span", string=filename)) if filename else None

        mime = str(element.get("type") or mimetypes.guess_type(filename)[0] or "application/octet-stream")
        if not filename:
            filename = _filename_from_locator(locator, mime, default_stem="attachment")
        attachment = await self.add_attachment(data, filename, mime, locator=locator)
        return file_markup(attachment)

    async def process_iframe(self, element: Tag) -> Optional[str]:
        src = str(element.get("data-original-src") or element.get("src") or "")
        if not src:
            return None
        return str(new_tag("a", {"href": src}, string=src))

    async def process_task(self, element: Tag) -> Optional[str]:
        data_tag = str(element.get("data-tag", ""))
        checked = "to-do:completed" in data_tag
        inner = "".join(str(child) for child in element.contents)
        return checklist_markup([(inner, checked)], raw_html=True)


def _filename_from_locator(locator: str, mime: str, default_stem: str) -> str:
    """Best-effort filename for a locator whose last path segment may be opaque."""
    path = locator.split("?", 1)[0].split("#", 1)[0].rstrip("/")
    name = path.rsplit("/", 1)[-1]
    if name == "$value":
        name = path.rsplit("/", 2)[-2] if path.count("/") >= 2 else ""
    if name and "." in name:
        return name
    extension = mimetypes.guess_extension(mime) or ".bin"
    return f"{name or default_stem}{extension}"
