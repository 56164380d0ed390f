"""Refresh scheduler -- asyncio loop that fires the nightly market refresh.

On start (optionally) runs one refresh, then repeats:
1. Computes the next instant matching the refresh cron in the local timezone
2. Waits until then, or until stop() sets the stop token
3. Runs the refresh, logging (not raising) any failure
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from core.schedule import resolve_timezone
from scheduler.cron import next_fire_after

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[str], Awaitable[Any]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshScheduler:
    """Self-rescheduling daily refresh.

    Usage:
        scheduler = RefreshScheduler(board.refresh, cron_expression="1 23 * * *")
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        refresh: RefreshCallback,
        cron_expression: str = "1 23 * * *",
        timezone_name: str = "Europe/London",
        run_on_start: bool = True,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._refresh = refresh
        self._cron = cron_expression
        self._tz = resolve_timezone(timezone_name)
        self._run_on_start = run_on_start
        self._clock = clock
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._next_run_at: datetime | None = None
        self._run_count = 0

    @property
    def next_run_at(self) -> datetime | None:
        return self._next_run_at

    @property
    def run_count(self) -> int:
        return self._run_count

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_fire_time(self, now: datetime | None = None) -> datetime:
        return next_fire_after(self._cron, now or self._clock(), self._tz)

    async def start(self) -> None:
        """Start the scheduler loop."""
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop())
        logger.info("Refresh scheduler started (cron '%s', %s)", self._cron, self._tz)

    async def stop(self) -> None:
        """Signal the loop to stop and wait for it to exit."""
        self._stop_event.set()
        if self._task:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Refresh scheduler stopped")

    async def _loop(self) -> None:
        if self._run_on_start:
            await self._run_once("startup")

        while not self._stop_event.is_set():
            now = self._clock()
            # Anchor on the previous fire time so an early wakeup can't fire twice
            anchor = now
            if self._next_run_at is not None and self._next_run_at > now:
                anchor = self._next_run_at
            try:
                self._next_run_at = self.next_fire_time(anchor)
            except ValueError:
                logger.exception("Cannot schedule refresh with cron '%s'; scheduler stopping", self._cron)
                self._next_run_at = None
                return
            delay = max((self._next_run_at - now).total_seconds(), 0.0)
            logger.info(
                "Next market refresh at %s (in %.0fs)",
                self._next_run_at.isoformat(), delay,
            )

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                break  # stop requested
            except asyncio.TimeoutError:
                pass

            await self._run_once("scheduled")

    async def _run_once(self, reason: str) -> None:
        self._run_count += 1
        try:
            await self._refresh(reason)
        except Exception:
            logger.exception("Scheduled refresh (%s) failed", reason)
