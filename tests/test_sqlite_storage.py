from __future__ import annotations

import dataclasses
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from adapters.sqlite_storage import SQLiteStorage
from core.config import StorageConfig
from core.errors import StorageError
from core.models import Hit


def _storage(tmp_path, retention_days: int = 30) -> SQLiteStorage:
    storage = SQLiteStorage(StorageConfig(db_path=str(tmp_path / "data" / "test.db"), retention_days=retention_days))
    storage.init_db()
    return storage


def _hit(item_id: int, *, source_key: str = "@news", hour: int = 0, keyword: str = "urgent") -> Hit:
    return Hit(
        source_key=source_key,
        item_id=item_id,
        item_timestamp=datetime(2024, 1, 1, hour, tzinfo=timezone.utc),
        text=f"urgent item {item_id}",
        link=f"https://t.me/news/{item_id}",
        keyword=keyword,
    )


def test_init_db_is_idempotent(tmp_path) -> None:
    storage = _storage(tmp_path)
    storage.init_db()
    assert storage.list_cursors() == {}


def test_cursor_defaults_to_zero_and_upserts(tmp_path) -> None:
    storage = _storage(tmp_path)
    assert storage.get_cursor("@news") == 0

    storage.set_cursor("@news", 10)
    storage.set_cursor("@news", 25)
    storage.set_cursor("@other", 3)

    assert storage.get_cursor("@news") == 25
    assert storage.list_cursors() == {"@news": 25, "@other": 3}


def test_set_cursor_rejects_non_positive_position(tmp_path) -> None:
    storage = _storage(tmp_path)
    with pytest.raises(StorageError):
        storage.set_cursor("@news", 0)
    assert storage.get_cursor("@news") == 0


def test_save_hit_inserts_once_per_source_item(tmp_path) -> None:
    storage = _storage(tmp_path)

    assert storage.save_hit(_hit(5)) is True
    assert storage.save_hit(_hit(5, keyword="other")) is False
    # Same item id in another source is a different hit.
    assert storage.save_hit(_hit(5, source_key="@other")) is True

    assert storage.count_undelivered() == 2
    keywords = {(h.source_key, h.keyword) for h in storage.list_undelivered(10)}
    assert keywords == {("@news", "urgent"), ("@other", "urgent")}


@pytest.mark.parametrize(
    "field, value",
    [("source_key", ""), ("item_id", 0), ("text", ""), ("link", ""), ("keyword", "")],
)
def test_save_hit_requires_fields(tmp_path, field: str, value) -> None:
    storage = _storage(tmp_path)
    invalid = dataclasses.replace(_hit(1), **{field: value})
    with pytest.raises(StorageError):
        storage.save_hit(invalid)
    assert storage.count_undelivered() == 0


def test_list_undelivered_orders_by_item_timestamp_desc(tmp_path) -> None:
    storage = _storage(tmp_path)
    storage.save_hit(_hit(1, hour=5))
    storage.save_hit(_hit(2, hour=9))
    storage.save_hit(_hit(3, hour=1))

    hits = storage.list_undelivered(2)

    assert [h.item_id for h in hits] == [2, 1]
    assert all(h.id is not None and h.delivered_at is None for h in hits)
    assert hits[0].item_timestamp == datetime(2024, 1, 1, 9, tzinfo=timezone.utc)
    assert hits[0].discovered_at is not None


def test_mark_delivered_marks_exactly_given_ids(tmp_path) -> None:
    storage = _storage(tmp_path)
    for item_id in (1, 2, 3):
        storage.save_hit(_hit(item_id, hour=item_id))
    by_item = {h.item_id: h.id for h in storage.list_undelivered(10)}

    assert storage.mark_delivered([]) == 0
    assert storage.mark_delivered([0, -4]) == 0
    assert storage.mark_delivered([by_item[1], by_item[3]]) == 2

    remaining = storage.list_undelivered(10)
    assert [h.item_id for h in remaining] == [2]


def test_prune_removes_hits_older_than_retention(tmp_path) -> None:
    storage = _storage(tmp_path, retention_days=30)
    storage.save_hit(_hit(1))
    storage.save_hit(_hit(2))

    old = (datetime.now(timezone.utc) - timedelta(days=31)).isoformat(timespec="microseconds")
    conn = sqlite3.connect(str(tmp_path / "data" / "test.db"))
    with conn:
        conn.execute("UPDATE hits SET discovered_at = ? WHERE item_id = 1", (old,))
    conn.close()

    assert storage.prune() == 1
    assert [h.item_id for h in storage.list_undelivered(10)] == [2]


def test_prune_disabled_with_zero_retention(tmp_path) -> None:
    storage = _storage(tmp_path, retention_days=0)
    storage.save_hit(_hit(1))
    assert storage.prune() == 0


def test_io_failure_raises_storage_error(tmp_path) -> None:
    # A directory cannot be opened as a database file.
    storage = SQLiteStorage(StorageConfig(db_path=str(tmp_path)))
    with pytest.raises(StorageError):
        storage.get_cursor("@news")
