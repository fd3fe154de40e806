"""
Time-based trigger for the matchmaking run
"""
import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

from matchmaker.utils.exceptions import retry_with_logging
from matchmaker.utils.logging_config import get_logger

logger = get_logger(__name__)


def next_run_at(now: datetime, interval_hours: float, anchor: datetime) -> datetime:
    """First tick of the ``anchor + k * interval`` grid strictly after ``now``."""
    interval = timedelta(hours=interval_hours)
    if now < anchor:
        return anchor
    elapsed = (now - anchor) // interval
    return anchor + (elapsed + 1) * interval


class MatchScheduler:
    """Fires ``run`` every ``interval_hours``, anchored at local midnight of ``timezone``."""

    def __init__(
        self,
        run: Callable[[], Awaitable],
        interval_hours: float = 24,
        timezone: str = "UTC",
        retries: int = 3,
        backoff_factor: float = 30.0,
    ):
        self.interval_hours = interval_hours
        self.tz = ZoneInfo(timezone)
        self._run = retry_with_logging(
            max_attempts=retries + 1,
            backoff_factor=backoff_factor,
            logger=logger,
        )(run)
        self._task: Optional[asyncio.Task] = None

    def anchor(self, now: datetime) -> datetime:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)

    def seconds_until_next_run(self, now: datetime = None) -> float:
        now = now or datetime.now(self.tz)
        target = next_run_at(now, self.interval_hours, self.anchor(now))
        return (target - now).total_seconds()

    async def tick(self):
        try:
            return await self._run()
        except Exception:
            # Give up on this tick; the next one is still scheduled
            logger.exception("Scheduled matchmaking run failed after all retries")
            return None

    async def _loop(self):
        while True:
            delay = self.seconds_until_next_run()
            logger.info(f"Next matchmaking run in {delay / 3600:.2f}h ({self.tz.key})")
            await asyncio.sleep(delay)
            await self.tick()

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(), name="matchmaking-scheduler")
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
