"""Markup transformation: selector dispatch to per-format element handlers."""

from .enml import INTERNAL_LINK, EnmlTransformer
from .html import TASK, HtmlTransformer
from .protocols import ClipSource, ElementHandler
from .transformer import (
    ALLOWED_STYLES,
    CODEBLOCK,
    DENIED_ATTRIBUTES,
    IMG_DATAURL,
    TASK_GROUP,
    WEBCLIP,
    ContentTransformer,
)

__all__ = [
    # Protocols
    "ClipSource",
    "ElementHandler",
    # Transformers
    "ContentTransformer",
    "EnmlTransformer",
    "HtmlTransformer",
    # Element types
    "CODEBLOCK",
    "IMG_DATAURL",
    "INTERNAL_LINK",
    "TASK",
    "TASK_GROUP",
    "WEBCLIP",
    # Normalization tables
    "ALLOWED_STYLES",
    "DENIED_ATTRIBUTES",
]
