"""Selector-driven markup transformation engine."""

from __future__ import annotations

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup, Tag

from ..errors import StructuralError
from .protocols import ClipSource, ElementHandler
from .styles import dict_to_styles, styles_to_dict

logger = logging.getLogger(__name__)

# Element type names shared by the formats
WEBCLIP = "en-webclip"
CODEBLOCK = "en-codeblock"
TASK_GROUP = "en-task-group"
IMG_DATAURL = "img-dataurl"

# Leading declaration of ENML bodies, dropped before HTML parsing
XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")

# Attributes removed from every element
DENIED_ATTRIBUTES = ("lang", "dir", "accesskey", "tabindex")

# Attributes inspected (and possibly rewritten) during classification
NORMALIZED_ATTRIBUTES = ("style", "src")

# Inline style declarations that survive normalization
ALLOWED_STYLES = frozenset(
    {
        "background-color",
        "color",
        "text-align",
        "font-family",
        "font-size",
    }
)


def _is_attached(element: Tag, root: Tag) -> bool:
    """Whether ``element`` is still inside ``root`` (not removed by an earlier replacement)."""
    if element.decomposed:
        return False
    return any(parent is root for parent in element.parents)


class ContentTransformer:
    """
    Rewrites foreign markup element by element through an ElementHandler.

    Subclasses describe a format with class attributes: the root tag, the
    special tag names, which element types are dispatched in the first pass
    and which in the media pass, and the priority order used when an element
    qualifies for several types.

    Algorithm:
        1. Parse markup and locate ``root_tag`` (StructuralError if missing)
        2. First pass: classify every selected element (stripping denied
           attributes, filtering styles) and dispatch ``first_pass_types``
        3. If no web clip was found, give the subclass a chance to treat the
           whole document as a full-page clip
        4. Otherwise (or if the handler declined the clip) run the media pass
           over ``media_types``
        5. Serialize the children of the resulting root

    Example:
        transformer = EnmlTransformer()
        html = await transformer.transform(enml, handler, note=enex_note)
    """

    root_tag: str = "body"
    special_tags: tuple[str, ...] = ()
    extra_selectors: tuple[str, ...] = ()
    first_pass_types: tuple[str, ...] = ()
    media_types: tuple[str, ...] = ()
    priority: tuple[str, ...] = (WEBCLIP, CODEBLOCK, TASK_GROUP, IMG_DATAURL)

    def __init__(self) -> None:
        selectors = [f"[{attr}]" for attr in NORMALIZED_ATTRIBUTES]
        selectors += [f"[{attr}]" for attr in DENIED_ATTRIBUTES]
        selectors += list(self.special_tags)
        selectors += list(self.extra_selectors)
        self._selector = ",".join(selectors)

    def _parse(self, markup: str) -> BeautifulSoup:
        return BeautifulSoup(XML_DECLARATION.sub("", markup, count=1), "html.parser")

    def _find_root(self, soup: BeautifulSoup) -> Tag:
        root = soup.find(self.root_tag)
        if not isinstance(root, Tag):
            raise StructuralError(f"Could not find a valid {self.root_tag} tag.")
        return root

    async def transform(
        self,
        markup: str,
        handler: Optional[ElementHandler] = None,
        note: Optional[ClipSource] = None,
    ) -> str:
        """
        Transform markup into target HTML.

        Args:
            markup: Raw source markup
            handler: Element handler (elements of handled types are deleted if None)
            note: Provenance metadata of the source note, used for clip detection

        Returns:
            Serialized children of the transformed root

        Raises:
            StructuralError: If the root content element is missing
        """
        soup = self._parse(markup)
        root = self._find_root(soup)

        found_types: set[str] = set()
        for element in root.select(self._selector):
            if not _is_attached(element, root):
                continue
            found_types.add(await self._process_element(element, self.first_pass_types, handler))

        clipped: Optional[Tag] = None
        if WEBCLIP not in found_types:
            clipped = await self._process_clipped_page(markup, handler, note)

        if clipped is None:
            for element in root.select(self._selector):
                if not _is_attached(element, root):
                    continue
                await self._process_element(element, self.media_types, handler)
            output = root
        else:
            output = clipped

        return "".join(str(child) for child in output.contents)

    async def _process_clipped_page(
        self,
        markup: str,
        handler: Optional[ElementHandler],
        note: Optional[ClipSource],
    ) -> Optional[Tag]:
        """Return a replacement root when the whole document is a web clip."""
        return None

    async def _process_element(
        self,
        element: Tag,
        element_types: tuple[str, ...],
        handler: Optional[ElementHandler],
    ) -> str:
        element_type = self.element_type(element)

        if element_type in element_types:
            replacement = await handler.process(element_type, element) if handler else None
            if replacement:
                self._replace(element, replacement)
            else:
                element.decompose()
        return element_type

    def _replace(self, element: Tag, markup: str) -> None:
        nodes = list(self._parse(markup).contents)
        if nodes:
            element.replace_with(*nodes)
        else:
            element.decompose()

    def element_type(self, element: Tag) -> str:
        """
        Classify an element, applying all attribute side effects.

        When several classifications apply, the first one in ``priority``
        wins; with none, the lowercased tag name is the type.
        """
        classifications = self.classify(element)
        for candidate in self.priority:
            if candidate in classifications:
                return candidate
        return element.name.lower()

    def classify(self, element: Tag) -> set[str]:
        """Normalize attributes and return every classification that applies."""
        found: set[str] = set()

        for attr in DENIED_ATTRIBUTES:
            if attr in element.attrs:
                del element[attr]

        for attr in NORMALIZED_ATTRIBUTES:
            if attr not in element.attrs:
                continue
            value = element.get(attr)
            if not value:
                del element[attr]
                continue

            if attr == "src":
                if value.startswith("data:image/"):
                    found.add(IMG_DATAURL)
            elif attr == "style":
                styles = styles_to_dict(value)
                kept: dict[str, str] = {}
                for name, declaration in styles.items():
                    marker = self._classify_style(element, name, declaration, styles)
                    if marker:
                        found.add(marker)
                    if name in ALLOWED_STYLES:
                        kept[name] = declaration
                if kept:
                    element["style"] = dict_to_styles(kept)
                else:
                    del element["style"]

        found.update(self._classify_extra(element))
        return found

    def _classify_style(
        self,
        element: Tag,
        name: str,
        value: str,
        styles: dict[str, str],
    ) -> Optional[str]:
        """Handle a format-specific marker declaration; return its element type."""
        return None

    def _classify_extra(self, element: Tag) -> set[str]:
        """Format-specific classifications that do not come from style or src."""
        return set()
