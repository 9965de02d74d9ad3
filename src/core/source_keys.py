"""Helpers for working with channelwatch source keys.

A source is referenced in config either as ``@username`` or as a public
``t.me`` link. Internally the bare username is used for resolution and the
``@``-prefixed form is the key for cursors and hits.
"""

from __future__ import annotations

from typing import Optional

_LINK_PREFIXES = ("t.me/", "telegram.me/")


def normalize_source_name(reference: str) -> Optional[str]:
    """Return the bare channel username for a config reference.

    Returns ``None`` for references that are neither ``@username`` nor a
    public channel link.
    """

    value = (reference or "").strip()
    if not value:
        return None
    if value.startswith("@"):
        return value[1:].lower() or None

    for scheme in ("https://", "http://"):
        if value.startswith(scheme):
            value = value[len(scheme):]
            break
    for prefix in _LINK_PREFIXES:
        if value.startswith(prefix):
            username = value[len(prefix):].strip("/")
            # Private invite links (t.me/+hash, t.me/joinchat/...) and message
            # links (t.me/name/123) cannot be resolved by username.
            if not username or "/" in username or username.startswith("+"):
                return None
            return username.lower()
    return None


def source_key_for(username: str) -> str:
    """Build the storage key for a normalized username."""

    return f"@{username}"


def format_source_label(source_key: str, source_aliases: Optional[dict[str, str]] = None) -> str:
    """Return a human-friendly source label, using configured aliases."""

    key = (source_key or "").strip()
    if not key:
        return "@unknown"
    if not key.startswith("@"):
        key = f"@{key}"

    alias = (source_aliases or {}).get(key)
    if not alias:
        return key
    return f"{alias} ({key})"
