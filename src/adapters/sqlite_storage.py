"""SQLite storage adapter.

Implements the core CursorStore and HitStore ports using a simple SQLite
database. Every operation runs in its own short transaction on a fresh
connection, so writes from the scanner and the dispatcher are serialized by
SQLite's own locking.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterable, Iterator, Optional

from core.config import StorageConfig
from core.errors import StorageError
from core.models import Hit

LOGGER = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 20


def _to_db_time(value: datetime) -> str:
    # Fixed-width UTC strings keep lexicographic order equal to time order.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db_time(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the CursorStore and HitStore contracts."""

    def __init__(self, config: StorageConfig) -> None:
        self._config = config

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._config.db_path, timeout=self._config.busy_timeout)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self, action: str) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside one transaction, mapping failures to StorageError."""

        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StorageError(f"sqlite {action}: {exc}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise StorageError(f"sqlite {action}: {exc}") from exc
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - cursors: per-source highest item id already scanned
        - hits: deduplicated keyword matches with their delivery state
        """

        directory = os.path.dirname(os.path.abspath(self._config.db_path))
        os.makedirs(directory, exist_ok=True)

        with self._transaction("migrate") as conn:
            if self._config.wal:
                conn.execute("PRAGMA journal_mode=WAL")
            # cursors keeps a single counter per source so a restart resumes
            # where the previous pass stopped.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cursors (
                    source_key TEXT PRIMARY KEY,
                    last_item_id INTEGER NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
                """
            )
            # hits is the delivery queue. UNIQUE(source_key, item_id) is what
            # makes overlapping scans safe: re-inserting an item is ignored.
            # delivered_at stays NULL until the dispatcher marks the row.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS hits (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source_key TEXT NOT NULL,
                    item_id INTEGER NOT NULL,
                    item_timestamp TIMESTAMP NOT NULL,
                    text TEXT NOT NULL,
                    link TEXT NOT NULL,
                    keyword TEXT NOT NULL,
                    discovered_at TIMESTAMP NOT NULL,
                    delivered_at TIMESTAMP NULL,
                    UNIQUE(source_key, item_id)
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_hits_delivered ON hits(delivered_at)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_hits_item_timestamp ON hits(item_timestamp)")

    def get_cursor(self, source_key: str) -> int:
        """Return the last scanned item id for a source, 0 when unknown."""

        with self._transaction("get cursor") as conn:
            row = conn.execute(
                "SELECT last_item_id FROM cursors WHERE source_key = ?",
                (source_key,),
            ).fetchone()
        return int(row["last_item_id"]) if row else 0

    def set_cursor(self, source_key: str, position: int) -> None:
        """Upsert the last scanned item id for a source."""

        if not source_key:
            raise StorageError("sqlite set cursor: source_key is required")
        if position <= 0:
            LOGGER.error("Rejected cursor %s for %s: position must be > 0", position, source_key)
            raise StorageError(f"sqlite set cursor: position must be > 0, got {position}")

        now = datetime.now(timezone.utc)
        with self._transaction("set cursor") as conn:
            conn.execute(
                """
                INSERT INTO cursors (source_key, last_item_id, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(source_key) DO UPDATE SET
                    last_item_id = excluded.last_item_id,
                    updated_at = excluded.updated_at
                """,
                (source_key, position, _to_db_time(now)),
            )

    def list_cursors(self) -> dict[str, int]:
        """Return every tracked source with its cursor."""

        with self._transaction("list cursors") as conn:
            rows = conn.execute("SELECT source_key, last_item_id FROM cursors ORDER BY source_key").fetchall()
        return {row["source_key"]: int(row["last_item_id"]) for row in rows}

    def save_hit(self, hit: Hit) -> bool:
        """Insert a hit unless (source_key, item_id) is already stored.

        Returns True when a row was inserted and False for a duplicate.
        """

        if not hit.source_key or hit.item_id <= 0 or not hit.text or not hit.link or not hit.keyword:
            raise StorageError("sqlite save hit: source_key, item_id, text, link and keyword are required")

        now = datetime.now(timezone.utc)
        with self._transaction("save hit") as conn:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO hits (
                    source_key,
                    item_id,
                    item_timestamp,
                    text,
                    link,
                    keyword,
                    discovered_at,
                    delivered_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, NULL)
                """,
                (
                    hit.source_key,
                    hit.item_id,
                    _to_db_time(hit.item_timestamp),
                    hit.text,
                    hit.link,
                    hit.keyword,
                    _to_db_time(now),
                ),
            )
            return cur.rowcount > 0

    def list_undelivered(self, limit: int) -> list[Hit]:
        """Return undelivered hits, most recent item first."""

        if limit <= 0:
            limit = DEFAULT_LIST_LIMIT

        with self._transaction("list undelivered") as conn:
            rows = conn.execute(
                """
                SELECT id, source_key, item_id, item_timestamp, text, link, keyword,
                       discovered_at, delivered_at
                FROM hits
                WHERE delivered_at IS NULL
                ORDER BY item_timestamp DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()

        return [
            Hit(
                id=int(row["id"]),
                source_key=row["source_key"],
                item_id=int(row["item_id"]),
                item_timestamp=_from_db_time(row["item_timestamp"]),
                text=row["text"],
                link=row["link"],
                keyword=row["keyword"],
                discovered_at=_from_db_time(row["discovered_at"]),
                delivered_at=_from_db_time(row["delivered_at"]),
            )
            for row in rows
        ]

    def count_undelivered(self) -> int:
        with self._transaction("count undelivered") as conn:
            row = conn.execute("SELECT COUNT(*) AS pending FROM hits WHERE delivered_at IS NULL").fetchone()
        return int(row["pending"])

    def mark_delivered(self, ids: Iterable[int]) -> int:
        """Set delivered_at for exactly the given ids in one statement."""

        clean = sorted({int(hit_id) for hit_id in ids if hit_id and int(hit_id) > 0})
        if not clean:
            return 0

        placeholders = ",".join("?" for _ in clean)
        now = datetime.now(timezone.utc)
        with self._transaction("mark delivered") as conn:
            cur = conn.execute(
                f"UPDATE hits SET delivered_at = ? WHERE id IN ({placeholders})",
                (_to_db_time(now), *clean),
            )
            return cur.rowcount

    def prune(self) -> int:
        """Delete hits discovered before the retention window and return the count."""

        if self._config.retention_days <= 0:
            return 0

        cutoff = datetime.now(timezone.utc) - timedelta(days=self._config.retention_days)
        with self._transaction("prune hits") as conn:
            cur = conn.execute(
                "DELETE FROM hits WHERE discovered_at < ?",
                (_to_db_time(cutoff),),
            )
            return cur.rowcount
