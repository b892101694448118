"""
Fixed-interval scheduling.

A Schedule is an interval expressed in whole seconds, minutes or hours.
IntervalScheduler runs an async job on that cadence in a background task.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class ScheduleUnit(str, enum.Enum):
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"


_UNIT_SECONDS = {
    ScheduleUnit.SECONDS: 1,
    ScheduleUnit.MINUTES: 60,
    ScheduleUnit.HOURS: 3600,
}

_SUFFIXES = {"s": ScheduleUnit.SECONDS, "m": ScheduleUnit.MINUTES, "h": ScheduleUnit.HOURS}


@dataclass(frozen=True)
class Schedule:
    every: int
    unit: ScheduleUnit = ScheduleUnit.SECONDS

    def __post_init__(self):
        if self.every < 1:
            raise ValueError("Schedule interval must be at least 1.")

    @classmethod
    def from_interval(cls, seconds: float) -> "Schedule":
        """
        Build a schedule from an interval in seconds, rounding down to whole units.

        Sub-minute intervals use seconds, sub-hour intervals use minutes and
        anything longer uses hours, so 90s becomes every 1 minute.
        """
        if seconds < 1:
            raise ValueError("Polling interval must be at least 1 second.")
        if seconds < 60:
            return cls(int(seconds), ScheduleUnit.SECONDS)
        if seconds < 3600:
            return cls(int(seconds // 60), ScheduleUnit.MINUTES)
        return cls(int(seconds // 3600), ScheduleUnit.HOURS)

    @classmethod
    def parse(cls, text: str) -> "Schedule":
        """Parse ``'30'``, ``'15s'``, ``'10m'`` or ``'1h'``."""
        match = re.fullmatch(r"\s*(\d+)\s*([smh]?)\s*", text or "")
        if not match:
            raise ValueError(f"Invalid schedule '{text}'")
        value, suffix = match.groups()
        if not suffix:
            return cls.from_interval(int(value))
        return cls(int(value), _SUFFIXES[suffix])

    @property
    def seconds(self) -> int:
        return self.every * _UNIT_SECONDS[self.unit]

    @property
    def cron_expression(self) -> str:
        """Six-field cron text equivalent to this schedule, for display."""
        if self.unit is ScheduleUnit.SECONDS:
            return f"*/{self.every} * * * * *"
        if self.unit is ScheduleUnit.MINUTES:
            return f"0 */{self.every} * * * *"
        return f"0 0 */{self.every} * * *"

    def __str__(self) -> str:
        unit = self.unit.value[:-1] if self.every == 1 else self.unit.value
        return f"every {self.every} {unit}"


class IntervalScheduler:
    """
    Runs ``job`` once immediately and then on every schedule tick.

    Cycles never overlap: a tick that falls while the job is still running
    is skipped. ``stop()`` prevents new cycles and waits for the running one.
    """

    def __init__(
        self,
        schedule: Schedule,
        job: Callable[[], Awaitable[Any]],
        *,
        name: str = "scheduler",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.schedule = schedule
        self.name = name
        self._job = job
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self._should_stop = asyncio.Event()
        self.cycles = 0
        self.skipped_ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the scheduler as a background task."""
        if self.running:
            logger.warning("Scheduler '%s' is already running.", self.name)
            return
        logger.info(f"Starting scheduler '{self.name}' {self.schedule} ({self.schedule.cron_expression})")
        self._should_stop.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop the scheduler.

        Args:
            timeout: Seconds to wait for an in-flight cycle. None waits until
                it finishes; after a timeout the cycle is cancelled.
        """
        if not self.running:
            return
        logger.info("Stopping scheduler '%s'", self.name)
        self._should_stop.set()
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("Scheduler '%s' did not stop within %ss, cancelling.", self.name, timeout)
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Scheduler '%s' stopped.", self.name)

    async def _run(self) -> None:
        period = self.schedule.seconds
        next_run = self._clock()
        while not self._should_stop.is_set():
            try:
                await self._job()
            except Exception:
                logger.exception("Scheduled job '%s' failed.", self.name)
            self.cycles += 1

            next_run += period
            now = self._clock()
            if next_run <= now:
                missed = int((now - next_run) // period) + 1
                self.skipped_ticks += missed
                next_run += missed * period
                logger.warning("Scheduler '%s' overran its interval, skipped %d tick(s).", self.name, missed)

            try:
                await asyncio.wait_for(self._should_stop.wait(), timeout=next_run - now)
            except asyncio.TimeoutError:
                pass
