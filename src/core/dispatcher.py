"""Delivery of stored hits to the configured recipient.

This module is integration-agnostic. It only relies on ports for storage and
the outbound transport, enabling other delivery channels without changes
here.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from core.config import DispatchConfig
from core.errors import MarkError, SendError, StorageError
from core.models import DispatchResult, Hit
from core.ports import HitStore, TransportPort

LOGGER = logging.getLogger(__name__)


class Dispatcher:
    """Sends undelivered hits and marks them delivered in one batch."""

    def __init__(
        self,
        hits: HitStore,
        transport: TransportPort,
        config: DispatchConfig,
        formatter: Callable[[Hit], str],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._hits = hits
        self._transport = transport
        self._config = config
        self._formatter = formatter
        self._sleep = sleep

    async def process(self, reason: str = "manual") -> DispatchResult:
        """Deliver one batch of undelivered hits, freshest first.

        A failed send only skips that hit. A failed mark raises ``MarkError``
        after the sends happened; the hits stay undelivered and are sent again
        on the next pass, so delivery is at-least-once.
        """

        hits = self._hits.list_undelivered(self._config.batch_size)
        result = DispatchResult(total=len(hits))
        if not hits:
            return result

        LOGGER.info("Deliver batch start (%s): %s hits", reason, result.total)

        delivered_ids: List[int] = []
        cancelled: Optional[asyncio.CancelledError] = None

        for hit in hits:
            message = self._formatter(hit)
            try:
                await self._transport.send_text(self._config.recipient, message)
            except SendError:
                LOGGER.exception(
                    "Send failed (%s) for hit %s from %s #%s",
                    reason,
                    hit.id,
                    hit.source_key,
                    hit.item_id,
                )
                continue

            result.sent += 1
            if hit.id is not None:
                delivered_ids.append(hit.id)

            try:
                await self._pause(self._config.min_delay)
            except asyncio.CancelledError as exc:
                LOGGER.warning("Delivery interrupted (%s) after %s sends", reason, result.sent)
                cancelled = exc
                break

        if cancelled is None:
            result.marked = self._mark(delivered_ids)
            return result

        # What was already sent is marked even when the batch was cut short,
        # and the cancellation wins over a mark failure.
        try:
            result.marked = self._mark(delivered_ids)
        except MarkError:
            LOGGER.exception("Mark failed (%s) while delivery was being cancelled", reason)
        finally:
            raise cancelled

    def _mark(self, delivered_ids: List[int]) -> int:
        if not delivered_ids:
            return 0
        if self._config.dry_run:
            return 0
        try:
            self._hits.mark_delivered(delivered_ids)
        except StorageError as exc:
            raise MarkError(f"mark delivered failed for {len(delivered_ids)} sent hits: {exc}") from exc
        return len(delivered_ids)

    async def _pause(self, delay: float) -> None:
        if delay > 0:
            await self._sleep(delay)
