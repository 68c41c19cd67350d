"""Transformer for plain HTML bodies (OneNote pages, Markdown and HTML files)."""

from bs4 import Tag

from .transformer import IMG_DATAURL, ContentTransformer

TASK = "task"


class HtmlTransformer(ContentTransformer):
    """
    HTML to HTML, rooted at ``<body>``.

    Images and embedded objects are dispatched in the media pass so their
    payloads become attachments. OneNote marks to-do paragraphs with
    ``data-tag="to-do"`` (``to-do:completed`` once ticked); those are
    dispatched as ``task`` elements.
    """

    root_tag = "body"
    special_tags = ("img", "object", "iframe")
    extra_selectors = ("[data-tag]",)
    first_pass_types = (TASK, "iframe")
    media_types = ("img", IMG_DATAURL, "object")
    priority = (TASK, IMG_DATAURL)

    def _classify_extra(self, element: Tag) -> set[str]:
        data_tag = str(element.get("data-tag", ""))
        if any(tag.strip().startswith("to-do") for tag in data_tag.split(",")):
            return {TASK}
        return set()
