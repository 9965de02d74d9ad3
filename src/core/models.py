"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class SourceItem:
    """One message fetched from a source."""

    item_id: int
    timestamp: datetime
    text: str


@dataclass(frozen=True)
class ResolvedSource:
    """Fetch handle plus the base used to build per-item links."""

    handle: Any
    link_base: str


@dataclass(frozen=True)
class Hit:
    """A keyword match, either about to be stored or loaded from the store.

    ``id`` and ``discovered_at`` are assigned by the store on insert.
    ``delivered_at`` stays ``None`` until the dispatcher marks the hit.
    """

    source_key: str
    item_id: int
    item_timestamp: datetime
    text: str
    link: str
    keyword: str
    id: Optional[int] = None
    discovered_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


@dataclass(frozen=True)
class ScanReport:
    """Summary of a single per-source scan."""

    source_key: str
    scanned: int
    hits_new: int
    last_position: int
    new_position: int
    stop_reason: str


@dataclass
class DispatchResult:
    """Counters for one dispatch pass."""

    total: int = 0
    sent: int = 0
    marked: int = 0
