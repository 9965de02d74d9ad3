"""Keyword normalization and matching logic (core domain)."""

from __future__ import annotations

from typing import Iterable, List, Optional


def normalize_keywords(keywords: Iterable[str]) -> List[str]:
    """Lower-case, trim and de-duplicate keywords, keeping first-seen order.

    Order matters: ``match_keyword`` reports the first keyword that hits, so
    the normalized list must be stable across runs for the same config.
    """

    normalized: List[str] = []
    seen: set[str] = set()
    for keyword in keywords:
        value = (keyword or "").strip().lower()
        if not value or value in seen:
            continue
        seen.add(value)
        normalized.append(value)
    return normalized


def match_keyword(text: str, keywords: Iterable[str]) -> Optional[str]:
    """Return the first keyword contained in ``text`` (case-insensitive).

    Keywords are expected to be normalized already. Empty text never matches.
    """

    if not text:
        return None
    lowered = text.lower()
    for keyword in keywords:
        if keyword and keyword in lowered:
            return keyword
    return None
