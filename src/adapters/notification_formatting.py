"""Shared notification formatting helpers.

Keeping formatting here prevents drift between transports and keeps messages
consistent regardless of delivery channel. Messages are plain text; the only
transformation applied to the hit text is truncation.
"""

from __future__ import annotations

from typing import Optional

from core.models import Hit
from core.source_keys import format_source_label

ELLIPSIS = "…"


def truncate_text(text: str, max_chars: int) -> str:
    """Clip ``text`` to ``max_chars`` code points, appending an ellipsis when cut.

    A non-positive limit disables truncation.
    """

    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[:max_chars] + ELLIPSIS


def format_notification(
    hit: Hit,
    max_text_chars: int,
    source_aliases: Optional[dict[str, str]] = None,
) -> str:
    """Return the plain-text notification body for one hit."""

    source = format_source_label(hit.source_key, source_aliases)
    excerpt = truncate_text(hit.text.strip(), max_text_chars)

    lines = [
        source,
        f"keyword: {hit.keyword.strip()}",
        "",
        excerpt,
        "",
        hit.link.strip(),
    ]
    return "\n".join(lines)
