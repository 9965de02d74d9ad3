"""Telethon-backed source adapter.

This keeps Telethon-specific details out of the core scanner: channels are
resolved to entities and history pages are mapped to core SourceItems.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from telethon import errors
from telethon.tl.custom import Message
from telethon.tl.types import Channel

from core.errors import FetchError, ResolutionError
from core.models import ResolvedSource, SourceItem

LOGGER = logging.getLogger(__name__)

PUBLIC_LINK_BASE = "https://t.me"


def item_from_message(message: Message) -> Optional[SourceItem]:
    """Map a Telethon message to a SourceItem.

    Media-only and service messages are kept with empty text so their ids
    still advance the cursor. Returns None for entries without an id.
    """

    message_id = getattr(message, "id", None)
    if not isinstance(message_id, int) or message_id <= 0:
        return None

    date = getattr(message, "date", None)
    if date is None:
        date = datetime.fromtimestamp(0, tz=timezone.utc)

    text = getattr(message, "raw_text", None) or getattr(message, "message", None) or ""
    if not isinstance(text, str):
        text = ""

    return SourceItem(item_id=message_id, timestamp=date, text=text)


class TelegramChannelSource:
    """SourcePort implementation for public Telegram channels."""

    def __init__(self, client) -> None:
        self._client = client

    async def resolve_source(self, name: str) -> ResolvedSource:
        """Resolve a channel username to a Telethon entity."""

        try:
            entity = await self._client.get_entity(name)
        except (ValueError, errors.RPCError) as exc:
            raise ResolutionError(f"resolve @{name}: {exc}") from exc

        if not isinstance(entity, Channel):
            raise ResolutionError(f"resolve @{name}: channel not found")

        username = getattr(entity, "username", None) or name
        return ResolvedSource(handle=entity, link_base=f"{PUBLIC_LINK_BASE}/{username}")

    async def fetch_page(self, handle: Any, before_item_id: int, limit: int) -> List[SourceItem]:
        """Fetch up to ``limit`` messages older than ``before_item_id`` (0 = newest)."""

        try:
            messages = await self._client.get_messages(handle, limit=limit, offset_id=before_item_id)
        except (errors.RPCError, ConnectionError) as exc:
            raise FetchError(f"history(offset={before_item_id}): {exc}") from exc

        items: List[SourceItem] = []
        for message in messages or []:
            item = item_from_message(message)
            if item is not None:
                items.append(item)
        LOGGER.debug("Fetched %s items before id %s", len(items), before_item_id)
        return items
