"""
URL-safe slugs for groups and members.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Container

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(value: str, fallback: str = "item") -> str:
    """
    Lowercase ASCII words joined by hyphens. ``slugify(slugify(x)) == slugify(x)``.
    """
    ascii_value = (
        unicodedata.normalize("NFKD", value or "")
        .encode("ascii", "ignore")
        .decode("ascii")
    )
    slug = _NON_SLUG_CHARS.sub("-", ascii_value.lower()).strip("-")
    return slug or fallback


def unique_slug(base: str, taken: Container[str]) -> str:
    if base not in taken:
        return base
    suffix = 2
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"
