from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from app.core.logging import get_logger
from app.core.request_id import with_run_id

logger = get_logger()

IngestJob = Callable[[], Awaitable[Dict[str, Any]]]


def next_slot(now: datetime, interval_hours: int) -> datetime:
    """
    Next cron-style boundary: the first hour h > now (UTC) with h % interval == 0,
    i.e. `0 */6 * * *` for the default six hours.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    step = timedelta(hours=max(1, interval_hours))
    slot = day_start
    while slot <= now:
        slot += step
    # a step that does not divide 24 restarts at midnight, like cron
    next_midnight = day_start + timedelta(days=1)
    return min(slot, next_midnight)


class IngestScheduler:
    """
    Runs the ingestion job once at startup and then at every interval boundary.

    Both triggers call the same job. A trigger that fires while a run is still
    going is logged and skipped.
    """

    def __init__(
        self,
        job: IngestJob,
        *,
        interval_hours: int = 6,
        run_on_start: bool = True,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.job = job
        self.interval_hours = interval_hours
        self.run_on_start = run_on_start
        self._clock = clock
        self._stop_event = asyncio.Event()
        self._run_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task[None]] = None
        self._startup_task: Optional[asyncio.Task[Optional[Dict[str, Any]]]] = None

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None:
            return
        loop = asyncio.get_running_loop()
        self._stop_event.clear()
        if self.run_on_start:
            self._startup_task = loop.create_task(self.trigger("startup"), name="news-ingest-startup")
        self._task = loop.create_task(self._run(), name="news-ingest-scheduler")
        logger.info("ingest_scheduler_started", interval_hours=self.interval_hours)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        for task in (self._task, self._startup_task):
            if task is None or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._startup_task = None
        logger.info("ingest_scheduler_stopped")

    async def trigger(self, reason: str) -> Optional[Dict[str, Any]]:
        """Run the job now unless a run is already in progress."""
        if self._run_lock.locked():
            logger.warning("ingest_run_skipped", reason=reason, detail="previous run still in progress")
            return None
        async with self._run_lock:
            with with_run_id():
                logger.info("ingest_run_triggered", reason=reason)
                try:
                    return await self.job()
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("ingest_run_crashed", reason=reason)
                    return None

    def seconds_until_next_run(self) -> float:
        now = self._clock()
        return max(0.0, (next_slot(now, self.interval_hours) - now).total_seconds())

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            delay = self.seconds_until_next_run()
            logger.debug("ingest_next_run_scheduled", in_seconds=round(delay))
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                return
            except asyncio.TimeoutError:
                pass
            await self.trigger("schedule")
