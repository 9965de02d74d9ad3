from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from telethon import errors

from adapters.telegram_source import TelegramChannelSource, item_from_message
from core.errors import FetchError, ResolutionError


class DummyMessage:
    def __init__(self, message_id, text="hello", date=None) -> None:
        self.id = message_id
        self.raw_text = text
        self.date = date or datetime(2024, 1, 1, tzinfo=timezone.utc)


class DummyClient:
    def __init__(self, messages=None, entity=None, error=None) -> None:
        self._messages = messages or []
        self._entity = entity
        self._error = error
        self.history_calls: list[tuple[object, int, int]] = []

    async def get_entity(self, name):
        if self._error is not None:
            raise self._error
        return self._entity

    async def get_messages(self, entity, limit, offset_id):
        if self._error is not None:
            raise self._error
        self.history_calls.append((entity, limit, offset_id))
        return self._messages


def test_item_from_message_keeps_media_only_messages() -> None:
    item = item_from_message(DummyMessage(10, text=None))
    assert item is not None
    assert item.item_id == 10
    assert item.text == ""


def test_item_from_message_skips_missing_ids() -> None:
    assert item_from_message(DummyMessage(None)) is None
    assert item_from_message(DummyMessage(0)) is None


def test_fetch_page_maps_messages_and_passes_offset() -> None:
    client = DummyClient(messages=[DummyMessage(12, "urgent"), DummyMessage(None), DummyMessage(11)])
    source = TelegramChannelSource(client)

    items = asyncio.run(source.fetch_page("entity", before_item_id=13, limit=50))

    assert [item.item_id for item in items] == [12, 11]
    assert items[0].text == "urgent"
    assert client.history_calls == [("entity", 50, 13)]


def test_fetch_page_wraps_rpc_errors() -> None:
    client = DummyClient(error=errors.RPCError(None, "CHANNEL_PRIVATE", 400))
    source = TelegramChannelSource(client)

    with pytest.raises(FetchError):
        asyncio.run(source.fetch_page("entity", before_item_id=0, limit=10))


def test_resolve_source_rejects_unknown_username() -> None:
    source = TelegramChannelSource(DummyClient(error=ValueError("No user has \"ghost\" as username")))

    with pytest.raises(ResolutionError):
        asyncio.run(source.resolve_source("ghost"))


def test_resolve_source_rejects_non_channel_entities() -> None:
    source = TelegramChannelSource(DummyClient(entity=object()))

    with pytest.raises(ResolutionError):
        asyncio.run(source.resolve_source("someuser"))
