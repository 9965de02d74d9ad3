"""Incremental, checkpointed channel scanner.

Each source is walked backwards in time, page by page, from the newest item
until one of the stop conditions is hit. Matches are written to the hit
store as they are found; the per-source cursor is written once, after the
page loop, and only ever moves forward.

Restart safety relies on ``save_hit`` being idempotent: a crash before the
cursor write means the next pass re-reads the same items, which costs
fetch calls but never produces duplicate hits.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence

from core.config import ScanConfig
from core.errors import ResolutionError
from core.matcher import match_keyword, normalize_keywords
from core.models import Hit, ScanReport, SourceItem
from core.ports import CursorStore, HitStore, SourcePort
from core.source_keys import normalize_source_name, source_key_for

LOGGER = logging.getLogger(__name__)


class StopReason(str, Enum):
    """Outcome of one page iteration; anything but CONTINUE ends the scan."""

    CONTINUE = "continue"
    NO_MESSAGES = "no_messages"
    REACHED_LAST_ID = "reached_last_id"
    REACHED_CUTOFF = "reached_cutoff"
    NO_MESSAGE_IDS = "no_message_ids"
    STUCK_OFFSET = "stuck_offset"
    MAX_SCAN = "max_scan"


@dataclass
class _ScanState:
    source_key: str
    link_base: str
    last_position: int
    max_seen: int
    cutoff: Optional[datetime]
    offset: int = 0
    scanned: int = 0
    hits_new: int = 0


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Scanner:
    """Drives paginated fetches, matching, hit persistence and checkpoints."""

    def __init__(
        self,
        source: SourcePort,
        cursors: CursorStore,
        hits: HitStore,
        config: ScanConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._source = source
        self._cursors = cursors
        self._hits = hits
        self._config = config
        self._sleep = sleep
        self._clock = clock

    async def crawl(self, sources: Sequence[str], keywords: Iterable[str]) -> List[ScanReport]:
        """Scan every source once, strictly one after another.

        Any error aborts the whole pass; sources scanned before the failure
        keep their committed cursors and hits. An empty keyword list is
        rejected before anything is read.
        """

        normalized = normalize_keywords(keywords)
        if not normalized:
            raise ValueError("keywords must contain at least 1 keyword")
        references = [ref.strip() for ref in sources if ref and ref.strip()]
        reports: List[ScanReport] = []

        for index, reference in enumerate(references):
            username = normalize_source_name(reference)
            if username is None:
                raise ResolutionError(f"source must be @username or t.me link, got {reference!r}")

            LOGGER.info("Scan start for @%s (%s/%s)", username, index + 1, len(references))
            reports.append(await self.scan_source(username, normalized))

            if index < len(references) - 1:
                await self._pause(self._config.between_sources_delay)

        LOGGER.info(
            "Crawl finished: sources=%s, hits_new=%s",
            len(reports),
            sum(report.hits_new for report in reports),
        )
        return reports

    async def scan_source(self, username: str, keywords: Sequence[str]) -> ScanReport:
        """Scan one source from the newest item back to its stop condition.

        ``keywords`` must already be normalized and non-empty, since the
        cursor moves past every item read.
        """

        if not keywords:
            raise ValueError("keywords must contain at least 1 keyword")

        resolved = await self._source.resolve_source(username)
        source_key = source_key_for(username)

        last_position = self._cursors.get_cursor(source_key)
        cutoff = None
        if self._config.lookback:
            cutoff = self._clock() - self._config.lookback

        state = _ScanState(
            source_key=source_key,
            link_base=resolved.link_base.rstrip("/"),
            last_position=last_position,
            max_seen=last_position,
            cutoff=cutoff,
        )

        reason = StopReason.MAX_SCAN
        while state.scanned < self._config.max_items_per_source:
            await self._pause(self._config.min_delay)

            items = await self._source.fetch_page(
                resolved.handle,
                before_item_id=state.offset,
                limit=self._config.page_size,
            )
            if not items:
                reason = StopReason.NO_MESSAGES
                break

            verdict = self._process_page(state, items, keywords)
            if verdict is not StopReason.CONTINUE:
                reason = verdict
                break

        # Checkpoint once per source, after every page up to the stop point
        # has been fully written to the hit store.
        if state.max_seen > state.last_position:
            self._cursors.set_cursor(source_key, state.max_seen)

        report = ScanReport(
            source_key=source_key,
            scanned=state.scanned,
            hits_new=state.hits_new,
            last_position=state.last_position,
            new_position=state.max_seen,
            stop_reason=reason.value,
        )
        LOGGER.info(
            "Scan done for %s: scanned=%s, hits_new=%s, new_last_id=%s, stop_reason=%s",
            report.source_key,
            report.scanned,
            report.hits_new,
            report.new_position,
            report.stop_reason,
        )
        return report

    def _process_page(self, state: _ScanState, items: Sequence[SourceItem], keywords: Sequence[str]) -> StopReason:
        oldest_in_batch = 0

        for item in items:
            if item.item_id <= 0:
                continue

            state.scanned += 1
            if oldest_in_batch == 0 or item.item_id < oldest_in_batch:
                oldest_in_batch = item.item_id
            if item.item_id > state.max_seen:
                state.max_seen = item.item_id

            # Everything at or below the cursor was covered by an earlier pass.
            if state.last_position > 0 and item.item_id <= state.last_position:
                return StopReason.REACHED_LAST_ID

            timestamp = _as_utc(item.timestamp)
            if state.cutoff is not None and timestamp < state.cutoff:
                return StopReason.REACHED_CUTOFF

            keyword = match_keyword(item.text, keywords)
            if keyword is None:
                continue

            inserted = self._hits.save_hit(
                Hit(
                    source_key=state.source_key,
                    item_id=item.item_id,
                    item_timestamp=timestamp,
                    text=item.text,
                    link=f"{state.link_base}/{item.item_id}",
                    keyword=keyword,
                )
            )
            if inserted:
                state.hits_new += 1
                LOGGER.debug("New hit in %s #%s (%s)", state.source_key, item.item_id, keyword)

        if oldest_in_batch == 0:
            return StopReason.NO_MESSAGE_IDS
        if oldest_in_batch == state.offset:
            return StopReason.STUCK_OFFSET

        state.offset = oldest_in_batch
        return StopReason.CONTINUE

    async def _pause(self, delay: float) -> None:
        if delay > 0:
            await self._sleep(delay)
