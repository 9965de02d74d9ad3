"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage, source and transport
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Any, Iterable, Protocol

from core.models import Hit, ResolvedSource, SourceItem


class CursorStore(Protocol):
    """Per-source checkpoint operations used by the scanner."""

    def get_cursor(self, source_key: str) -> int:
        ...

    def set_cursor(self, source_key: str, position: int) -> None:
        ...


class HitStore(Protocol):
    """Deduplicated hit queue used by the scanner and the dispatcher."""

    def save_hit(self, hit: Hit) -> bool:
        ...

    def list_undelivered(self, limit: int) -> list[Hit]:
        ...

    def mark_delivered(self, ids: Iterable[int]) -> int:
        ...

    def prune(self) -> int:
        ...


class SourcePort(Protocol):
    """Paginated read access to a content source."""

    async def resolve_source(self, name: str) -> ResolvedSource:
        ...

    async def fetch_page(self, handle: Any, before_item_id: int, limit: int) -> list[SourceItem]:
        ...


class TransportPort(Protocol):
    """Outbound delivery to a single recipient."""

    async def send_text(self, recipient: str, text: str) -> int:
        ...

    async def ping(self) -> None:
        ...
