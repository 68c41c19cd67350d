"""Element handler for ENML bodies."""

from __future__ import annotations

import base64
import logging
import mimetypes
from itertools import count
from typing import ClassVar, Optional

from bs4 import BeautifulSoup, Tag

from ...attachments.hasher import Hasher
from ...attachments.store import AttachmentStore
from ...content.enml import INTERNAL_LINK
from ...content.transformer import CODEBLOCK, IMG_DATAURL, TASK_GROUP, WEBCLIP
from ...errors import AttachmentNotFoundError
from ...models.note import Note
from ..handler import BaseElementHandler, checklist_markup, file_markup, image_markup, new_tag
from .enex import EnexNote, EnexResource

logger = logging.getLogger(__name__)


class NoteIds:
    """
    Sequential note ids keyed by title.

    Internal links and notes share one instance per provider run, so a link
    that names a note before the note itself is parsed still ends up pointing
    at the id that note receives.
    """

    def __init__(self) -> None:
        self._ids: dict[str, str] = {}
        self._counter = count(1)

    def get(self, title: str) -> str:
        if title not in self._ids:
            self._ids[title] = str(next(self._counter))
        return self._ids[title]

    def __contains__(self, title: object) -> bool:
        return title in self._ids


class EvernoteElementHandler(BaseElementHandler):
    """
    Rewrites ENML elements into HTML.

    Resources come from the note's own ``<resource>`` entries, looked up by
    the MD5 hash that ``<en-media>`` carries.
    """

    HANDLERS: ClassVar[dict[str, str]] = {
        IMG_DATAURL: "process_data_url_image",
        "en-media": "process_media",
        "en-todo": "process_todo",
        "en-crypt": "process_crypt",
        CODEBLOCK: "process_codeblock",
        TASK_GROUP: "process_task_group",
        WEBCLIP: "process_webclip",
        INTERNAL_LINK: "process_internal_link",
    }

    def __init__(
        self,
        note: Note,
        en_note: EnexNote,
        hasher: Hasher,
        store: AttachmentStore,
        ids: NoteIds,
    ) -> None:
        super().__init__(note, hasher, store)
        self.en_note = en_note
        self.ids = ids

    def _resource(self, element: Tag) -> Optional[EnexResource]:
        media_hash = str(element.get("hash", ""))
        resource = self.en_note.resource_by_hash(media_hash) if media_hash else None
        if resource is None:
            self.record_error(AttachmentNotFoundError(f"en-media:{media_hash}"))
        return resource

    async def process_media(self, element: Tag) -> Optional[str]:
        resource = self._resource(element)
        if resource is None:
            return None

        mime = resource.mime or str(element.get("type") or "") or None
        filename = resource.filename
        if not filename:
            extension = (mimetypes.guess_extension(mime) if mime else None) or ".bin"
            filename = f"{resource.hash}{extension}"

        attachment = await self.add_attachment(resource.data, filename, mime, locator=resource.source_url)
        if mime and mime.startswith("image/") and not resource.is_attachment:
            return image_markup(
                attachment,
                width=element.get("width") or resource.width,
                height=element.get("height") or resource.height,
                alt=element.get("alt"),
                style=element.get("style"),
            )
        return file_markup(attachment)

    async def process_todo(self, element: Tag) -> Optional[str]:
        attrs = {"type": "checkbox"}
        if str(element.get("checked", "")).lower() == "true":
            attrs["checked"] = "checked"
        return str(new_tag("input", attrs))

    async def process_crypt(self, element: Tag) -> Optional[str]:
        attrs = {
            "class": "encrypted",
            "data-cipher": element.get("cipher") or "AES",
            "data-length": element.get("length") or "128",
        }
        if element.get("hint"):
            attrs["data-hint"] = element.get("hint")
        return str(new_tag("pre", attrs, string=element.get_text(strip=True)))

    async def process_codeblock(self, element: Tag) -> Optional[str]:
        lines = element.find_all("div", recursive=False)
        if lines:
            text = "\n".join(line.get_text() for line in lines)
        else:
            text = element.get_text()
        pre = new_tag("pre", {"class": "codeblock"})
        pre.append(new_tag("code", string=text))
        return str(pre)

    async def process_task_group(self, element: Tag) -> Optional[str]:
        group_id = element.get("task-group-id")
        tasks = [t for t in self.en_note.tasks if t.group_id == group_id]
        if not tasks:
            return None
        return checklist_markup([(task.title, task.completed) for task in tasks])

    async def process_internal_link(self, element: Tag) -> Optional[str]:
        title = element.get_text(strip=True)
        if not title:
            return str(element)
        return str(new_tag("a", {"href": f"nn://note/{self.ids.get(title)}"}, string=title))

    async def process_webclip(self, element: Tag) -> Optional[str]:
        """
        Store a clipped page as a self-contained HTML attachment.

        Images referenced through ``<en-media>`` are inlined as data URIs so
        the stored page renders on its own.
        """
        source_url = element.get("clipped-source-url") or self.en_note.source_url or ""
        title = element.get("clipped-source-title") or self.en_note.title or "Web clip"

        clip = BeautifulSoup("".join(str(child) for child in element.contents), "html.parser")
        for media in clip.find_all("en-media"):
            resource = self.en_note.resource_by_hash(str(media.get("hash", "")))
            if resource is None or not (resource.mime or "").startswith("image/"):
                media.decompose()
                continue
            encoded = base64.b64encode(resource.data).decode("ascii")
            media.replace_with(
                new_tag(
                    "img",
                    {
                        "src": f"data:{resource.mime};base64,{encoded}",
                        "width": media.get("width") or resource.width or "",
                        "height": media.get("height") or resource.height or "",
                    },
                )
            )

        page = (
            '<!doctype html><html><head><meta charset="utf-8">'
            f"{new_tag('title', string=str(title))}</head>"
            f"<body>{clip}</body></html>"
        )
        attachment = await self.add_attachment(
            page.encode("utf-8"),
            "web-clip.html",
            "text/html",
            locator=str(source_url) or None,
        )

        container = new_tag(
            "div",
            {
                "class": "web-clip",
                "data-hash": attachment.hash,
                "data-src": source_url,
                "data-title": title,
            },
        )
        if source_url:
            container.append(new_tag("a", {"href": source_url}, string=str(title)))
        return str(container)
