from __future__ import annotations

import html
from typing import Any, Iterable, Optional

from django.utils.html import strip_tags


def squish(value: Any) -> str:
    """
    Trim and collapse runs of whitespace to a single space.
    "Jane  " + " Doe" -> "Jane Doe"
    """
    if value is None:
        return ""
    return " ".join(str(value).split())


def strip_html(value: Any) -> Optional[str]:
    """
    Drops tags, then decodes entities: "<p>A &amp; B</p>" -> "A & B".
    None/empty stays None.
    """
    if value is None or value == "":
        return None
    return html.unescape(strip_tags(str(value)))


def join_values(values: Iterable[Any], sep: str = ", ") -> str:
    """Joins non-empty values; an empty iterable gives ""."""
    return sep.join(str(v) for v in values if v not in (None, ""))


def join_keywords(value: Any) -> Optional[str]:
    """Keywords are stored as a list, but older rows may hold a plain string."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return join_values(value, ", ")
    return str(value)
