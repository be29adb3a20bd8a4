"""Utilities to normalize user-entered titles and memos."""

from __future__ import annotations

import re
from typing import Optional

_WHITESPACE_PATTERN = re.compile(r"\s{2,}")
_CONTROL_PATTERN = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")


def normalize_title(title: Optional[str], fallback: str) -> str:
    """Collapse whitespace and strip control characters from a title."""
    if not title:
        return fallback
    normalized = _CONTROL_PATTERN.sub("", title)
    normalized = _WHITESPACE_PATTERN.sub(" ", normalized.replace("\n", " ")).strip()
    return normalized or fallback


def normalize_memo(memo: Optional[str]) -> Optional[str]:
    if memo is None:
        return None
    cleaned = _CONTROL_PATTERN.sub("", memo).strip()
    return cleaned or None


def normalize_duration(seconds: float) -> int:
    """Whole, non-negative seconds."""
    return max(int(round(seconds)), 0)
