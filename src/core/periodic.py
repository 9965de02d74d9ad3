"""Fixed-rate periodic execution without self-overlap.

Ticks fire on a fixed interval. A tick that arrives while the previous run of
the same job is still in flight is dropped, never run in parallel.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

LOGGER = logging.getLogger(__name__)

Job = Callable[[str], Awaitable[Any]]


class SingleFlight:
    """Wrap a job so at most one invocation runs at a time."""

    def __init__(self, name: str, job: Job) -> None:
        self._name = name
        self._job = job
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def __call__(self, reason: str) -> Optional[Any]:
        if self._running:
            LOGGER.warning("%s tick dropped (%s): previous run still in progress", self._name, reason)
            return None
        self._running = True
        try:
            return await self._job(reason)
        finally:
            self._running = False


async def _run_tick(name: str, job: SingleFlight, reason: str) -> None:
    loop = asyncio.get_running_loop()
    started = loop.time()
    try:
        await job(reason)
    except Exception:
        # Retries are the next tick's job; one failed run must not stop the loop.
        LOGGER.exception("%s tick failed (%s) after %.1fs", name, reason, loop.time() - started)
        return
    LOGGER.debug("%s tick done (%s) in %.1fs", name, reason, loop.time() - started)


async def run_periodic(
    name: str,
    job: Job,
    interval: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """Run ``job`` immediately and then every ``interval`` seconds until cancelled."""

    guarded = SingleFlight(name, job)
    in_flight: set[asyncio.Task] = set()
    tick = 0
    try:
        while True:
            reason = "startup" if tick == 0 else f"scheduled#{tick}"
            task = asyncio.create_task(_run_tick(name, guarded, reason))
            in_flight.add(task)
            task.add_done_callback(in_flight.discard)

            await sleep(interval)
            tick += 1
    finally:
        for task in list(in_flight):
            task.cancel()
        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)
        LOGGER.info("%s loop stopped after %s ticks", name, tick)
