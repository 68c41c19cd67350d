"""HTML file import."""

from .provider import HtmlProvider

__all__ = ["HtmlProvider"]
