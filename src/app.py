"""Application entry point for the channelwatch pipeline."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
import time
from functools import partial
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint

import settings
from adapters.notification_formatting import format_notification
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_bot_notifier import TelegramBotTransport
from adapters.telegram_notifier import TelegramClientTransport
from adapters.telegram_source import TelegramChannelSource
from client import build_client
from core.config import DispatchConfig
from core.dispatcher import Dispatcher
from core.errors import PipelineError, StorageError
from core.periodic import run_periodic
from core.scanner import Scanner
from get_session import LOGIN_METHODS, authorize, default_login_method

NAME = "CHANNELWATCH"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/channelwatch.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at INFO about connections and updates.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


def _open_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.STORAGE)
    storage.init_db()
    return storage


def _prune(storage: SQLiteStorage) -> None:
    # Retention is housekeeping only; a failure must not block scanning or delivery.
    try:
        removed = storage.prune()
    except StorageError:
        LOGGER.exception("Hit retention cleanup failed")
        return
    if removed:
        LOGGER.info("Retention cleanup removed %s hits", removed)


def _build_transport(client):
    # Select the transport based on configuration to keep the core
    # dispatcher independent from delivery details.
    if settings.NOTIFICATION_METHOD == "bot":
        bot_token = os.getenv("BOT_API")
        if not bot_token:
            raise RuntimeError("BOT_API is required when notification_method=bot")
        if not settings.DISPATCH.recipient:
            raise RuntimeError("dispatch.recipient (bot chat id) is required for bot notifications")
        return TelegramBotTransport(bot_token=bot_token)
    return TelegramClientTransport(client)


def _build_dispatcher(storage: SQLiteStorage, transport, config: DispatchConfig) -> Dispatcher:
    formatter = partial(
        format_notification,
        max_text_chars=config.max_text_chars,
        source_aliases=settings.SOURCE_ALIASES,
    )
    return Dispatcher(hits=storage, transport=transport, config=config, formatter=formatter)


async def _connect_client():
    client = build_client()
    await client.connect()
    if not await client.is_user_authorized():
        await client.disconnect()
        raise RuntimeError("Telegram session is not authorized; run `channelwatch login` first")
    return client


async def _crawl_tick(scanner: Scanner, storage: SQLiteStorage, reason: str) -> None:
    started = time.monotonic()
    LOGGER.info("Crawl tick (%s): %s sources", reason, len(settings.SOURCES))
    await scanner.crawl(settings.SOURCES, settings.KEYWORDS)
    _prune(storage)
    LOGGER.info("Crawl tick done (%s) in %.1fs", reason, time.monotonic() - started)


async def _notify_tick(dispatcher: Dispatcher, config: DispatchConfig, reason: str) -> None:
    started = time.monotonic()
    result = await dispatcher.process(reason)
    elapsed = time.monotonic() - started

    if result.total == 0:
        LOGGER.info("Nothing to deliver (%s) in %.1fs", reason, elapsed)
        return

    if config.dry_run:
        LOGGER.warning(
            "dry_run enabled: delivered but NOT marked (%s): sent=%s, total_in_batch=%s",
            reason,
            result.sent,
            result.total,
        )
        return

    LOGGER.info(
        "Deliver batch done (%s): sent=%s, marked=%s, total_in_batch=%s, duration=%.1fs",
        reason,
        result.sent,
        result.marked,
        result.total,
        elapsed,
    )


async def _run_daemon() -> None:
    storage = _open_storage()
    client = await _connect_client()
    try:
        transport = _build_transport(client)
        await transport.ping()

        scanner = Scanner(
            source=TelegramChannelSource(client),
            cursors=storage,
            hits=storage,
            config=settings.SCAN,
        )
        dispatcher = _build_dispatcher(storage, transport, settings.DISPATCH)

        LOGGER.info(
            "Daemon started: sources=%s, keywords=%s, crawl every %.0fs, notify every %.0fs, dry_run=%s",
            len(settings.SOURCES),
            len(settings.KEYWORDS),
            settings.SCAN_INTERVAL,
            settings.DISPATCH_INTERVAL,
            settings.DISPATCH.dry_run,
        )
        await asyncio.gather(
            run_periodic("crawl", partial(_crawl_tick, scanner, storage), settings.SCAN_INTERVAL),
            run_periodic("notify", partial(_notify_tick, dispatcher, settings.DISPATCH), settings.DISPATCH_INTERVAL),
        )
    finally:
        await client.disconnect()


async def _crawl_once() -> None:
    storage = _open_storage()
    client = await _connect_client()
    try:
        scanner = Scanner(
            source=TelegramChannelSource(client),
            cursors=storage,
            hits=storage,
            config=settings.SCAN,
        )
        await _crawl_tick(scanner, storage, "manual")
    finally:
        await client.disconnect()


async def _notify_once(dry_run: bool) -> None:
    storage = _open_storage()
    config = settings.DISPATCH
    if dry_run:
        config = dataclasses.replace(config, dry_run=True)

    client = None
    if settings.NOTIFICATION_METHOD != "bot":
        client = await _connect_client()
    try:
        transport = _build_transport(client)
        await transport.ping()
        await _notify_tick(_build_dispatcher(storage, transport, config), config, "manual")
    finally:
        if client is not None:
            await client.disconnect()


async def _login(method: str) -> None:
    client = build_client()
    await client.connect()
    try:
        await authorize(client, method)
    finally:
        await client.disconnect()


def _status() -> None:
    storage = _open_storage()
    cursors = storage.list_cursors()
    print(f"Database: {settings.STORAGE.db_path}")
    print(f"Undelivered hits: {storage.count_undelivered()}")
    if not cursors:
        print("No sources scanned yet.")
        return
    for source_key in settings.SOURCES:
        print(f"{source_key} | last id {cursors.get(source_key, 0)}")
    for source_key, position in cursors.items():
        if source_key not in settings.SOURCES:
            print(f"{source_key} | last id {position} (not configured)")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="channelwatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Run the crawl and notify loops")
    subparsers.add_parser("crawl", help="Scan all sources once")
    notify_parser = subparsers.add_parser("notify", help="Deliver one batch of pending hits")
    notify_parser.add_argument("--dry-run", action="store_true", help="Send but do not mark hits delivered")
    subparsers.add_parser("status", help="Show cursors and pending hits")
    login_parser = subparsers.add_parser("login", help="Log in and store the Telegram session")
    login_parser.add_argument(
        "--method",
        choices=LOGIN_METHODS,
        default=default_login_method(),
        help="QR code (default, or LOGIN_METHOD) or phone code",
    )

    args = parser.parse_args(argv)
    if args.command == "status":
        _status()
        return

    _print_banner()
    _configure_logging()

    try:
        if args.command == "login":
            asyncio.run(_login(args.method))
        elif args.command == "crawl":
            asyncio.run(_crawl_once())
        elif args.command == "notify":
            asyncio.run(_notify_once(args.dry_run))
        else:
            _prune(_open_storage())
            asyncio.run(_run_daemon())
    except KeyboardInterrupt:
        LOGGER.info("Shutdown requested")
    except PipelineError:
        LOGGER.exception("%s failed", args.command or "run")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
