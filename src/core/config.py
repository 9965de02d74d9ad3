"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional


@dataclass(frozen=True)
class ScanConfig:
    """Pacing and bounds for the incremental scanner."""

    lookback: Optional[timedelta] = timedelta(days=7)
    max_items_per_source: int = 500
    page_size: int = 100
    min_delay: float = 0.4
    between_sources_delay: float = 2.0


@dataclass(frozen=True)
class DispatchConfig:
    """Delivery settings for the dispatcher."""

    recipient: str
    batch_size: int = 20
    min_delay: float = 0.2
    max_text_chars: int = 900
    dry_run: bool = False


@dataclass(frozen=True)
class StorageConfig:
    """SQLite location and housekeeping settings."""

    db_path: str
    retention_days: int = 30
    busy_timeout: float = 5.0
    wal: bool = True
