"""Inline style parsing helpers."""

from __future__ import annotations


def styles_to_dict(value: str) -> dict[str, str]:
    """
    Parse an inline ``style`` attribute into an ordered mapping.

    Declarations without a colon are dropped; later duplicates win.

    Example:
        >>> styles_to_dict("color: red; --en-codeblock:true")
        {'color': 'red', '--en-codeblock': 'true'}
    """
    output: dict[str, str] = {}
    for declaration in value.split(";"):
        declaration = declaration.strip()
        if not declaration:
            continue
        name, sep, val = declaration.partition(":")
        if not sep:
            continue
        output[name.strip().lower()] = val.strip()
    return output


def dict_to_styles(styles: dict[str, str]) -> str:
    """Serialize a mapping back into an inline style string."""
    return ";".join(f"{name}:{val}" for name, val in styles.items())
