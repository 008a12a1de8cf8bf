"""Sanitisation helpers.

Free-text fields written by members (bios, meeting descriptions,
messages) are shown to other members and copied into outgoing emails.
Strip markup before storing them and trim surrounding whitespace.
"""
from __future__ import annotations

import re
from typing import Optional

TAG_RE = re.compile(r"<[^>]+>")


def strip_tags(text: Optional[str]) -> str:
    """Remove HTML tags from the given string.

    Parameters
    ----------
    text: str | None
        The input string that may contain HTML tags.

    Returns
    -------
    str
        The cleaned string with tags removed and whitespace trimmed.
    """
    if not text:
        return ""
    no_tags = TAG_RE.sub("", text)
    return no_tags.strip()


def clean_optional(text: Optional[str]) -> Optional[str]:
    """Like :func:`strip_tags` but keep ``None`` for empty results."""
    cleaned = strip_tags(text)
    return cleaned or None


def excerpt(text: Optional[str], length: int) -> str:
    """Return the first ``length`` characters, adding ``...`` when cut."""
    if not text:
        return ""
    if len(text) > length:
        return text[:length] + "..."
    return text
