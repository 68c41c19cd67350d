"""Markdown and plain text import."""

from .frontmatter import FrontMatter, parse_front_matter, split_front_matter
from .provider import MarkdownProvider, markdown_to_html, text_to_html

__all__ = [
    "FrontMatter",
    "MarkdownProvider",
    "markdown_to_html",
    "parse_front_matter",
    "split_front_matter",
    "text_to_html",
]
