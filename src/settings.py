"""Static configuration for channelwatch.

All user-editable settings (sources, keywords, scan pacing, delivery,
storage, logging) live in a single JSON file for quick edits without
touching Python. Secrets (API_ID, API_HASH, BOT_API) stay in the
environment / .env file.
"""

import json
import os
from datetime import timedelta

from dotenv import load_dotenv

from core.config import DispatchConfig, ScanConfig, StorageConfig
from core.matcher import normalize_keywords
from core.source_keys import normalize_source_name, source_key_for

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# config.json sits next to the project root unless overridden.
CONFIG_PATH = os.getenv("CHANNELWATCH_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")

NOTIFICATION_METHODS = {"bot", "saved_messages"}


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _number(section: dict, name: str, key: str, default, minimum=0, cast=int):
    """Read a numeric option and reject values below ``minimum``."""

    raw = section.get(key, default)
    try:
        value = cast(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name}.{key} must be a number, got {raw!r}") from exc
    if value < minimum:
        raise ValueError(f"{name}.{key} must be >= {minimum}, got {value}")
    return value


def _normalize_sources(raw_sources: list) -> tuple[list[str], dict[str, str]]:
    """Normalize enabled sources and build an alias map keyed by source key."""

    sources: list[str] = []
    aliases: dict[str, str] = {}
    for entry in raw_sources:
        if isinstance(entry, str):
            entry = {"source": entry}
        reference = entry.get("source")
        if not reference or not entry.get("enabled", True):
            continue
        username = normalize_source_name(reference)
        if username is None:
            raise ValueError(f"sources: expected @username or t.me link, got {reference!r}")
        if f"@{username}" in sources:
            continue
        sources.append(f"@{username}")
        alias = entry.get("alias")
        if alias:
            aliases[source_key_for(username)] = alias
    return sources, aliases


_CONFIG = _load_json_config()

# Enabled sources, scanned in config order.
SOURCES, SOURCE_ALIASES = _normalize_sources(_CONFIG.get("sources", []))
if not SOURCES:
    raise ValueError("sources must contain at least 1 enabled source")

# Keywords are matched case-insensitively against lower-cased text.
KEYWORDS = normalize_keywords(str(k) for k in _CONFIG.get("keywords", []))
if not KEYWORDS:
    raise ValueError("keywords must contain at least 1 keyword")

# Scanner pacing and bounds.
# - lookback_hours: how far back a first scan may reach (0 = unbounded)
# - max_items_per_source: per-pass budget of messages read per channel
_scan = _CONFIG.get("scan", {})
SCAN_INTERVAL = _number(_scan, "scan", "interval_minutes", 60, minimum=1, cast=float) * 60
_lookback_hours = _number(_scan, "scan", "lookback_hours", 168, cast=float)
SCAN = ScanConfig(
    lookback=timedelta(hours=_lookback_hours) if _lookback_hours > 0 else None,
    max_items_per_source=_number(_scan, "scan", "max_items_per_source", 500, minimum=1),
    page_size=_number(_scan, "scan", "page_size", 100, minimum=1),
    min_delay=_number(_scan, "scan", "min_delay_ms", 400, cast=float) / 1000,
    between_sources_delay=_number(_scan, "scan", "between_sources_delay_ms", 2000, cast=float) / 1000,
)

# Delivery settings. Notification method switches transports without
# changing core logic; the recipient is a bot chat id or "me".
_dispatch = _CONFIG.get("dispatch", {})
NOTIFICATION_METHOD = _dispatch.get("notification_method", "saved_messages")
if NOTIFICATION_METHOD not in NOTIFICATION_METHODS:
    raise ValueError("dispatch.notification_method must be 'saved_messages' or 'bot'")
_recipient = str(_dispatch.get("recipient") or ("me" if NOTIFICATION_METHOD == "saved_messages" else ""))
DISPATCH_INTERVAL = _number(_dispatch, "dispatch", "interval_seconds", 120, minimum=1, cast=float)
DISPATCH = DispatchConfig(
    recipient=_recipient,
    batch_size=_number(_dispatch, "dispatch", "batch_size", 20, minimum=1),
    min_delay=_number(_dispatch, "dispatch", "min_delay_ms", 200, cast=float) / 1000,
    max_text_chars=_number(_dispatch, "dispatch", "max_text_chars", 900, minimum=1),
    dry_run=bool(_dispatch.get("dry_run", False)),
)

# SQLite location and housekeeping.
_storage = _CONFIG.get("storage", {})
_db_path = _storage.get("db_path", "data/channelwatch.db")
if not os.path.isabs(_db_path):
    _db_path = os.path.join(PROJECT_ROOT, _db_path)
STORAGE = StorageConfig(
    db_path=_db_path,
    retention_days=_number(_storage, "storage", "retention_days", 30),
    busy_timeout=_number(_storage, "storage", "busy_timeout_ms", 5000, minimum=1, cast=float) / 1000,
    wal=bool(_storage.get("wal", True)),
)

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
