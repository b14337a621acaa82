"""
BudgetPace - Scheduler Module.

Runs background jobs at fixed intervals: the campaign sync every few
minutes and the alert check once a day, first at local midnight.

A tick that comes due while the previous run of the same job is still
in flight is skipped, so runs of one job never overlap.

Classes:
    PeriodicTask: One job on a fixed interval.
    Scheduler: A group of periodic tasks started and stopped together.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[Any]]


def seconds_until_midnight(now: Optional[datetime] = None) -> float:
    """
    Returns the seconds from now until the next midnight.

    Args:
        now: Reference time. Defaults to the current local time.
    """
    now = now or datetime.now()
    next_midnight = datetime.combine(now.date() + timedelta(days=1), datetime.min.time())
    if now.tzinfo is not None:
        next_midnight = next_midnight.replace(tzinfo=now.tzinfo)
    return (next_midnight - now).total_seconds()


class PeriodicTask:
    """
    Runs a coroutine function on a fixed interval.

    Ticks are scheduled from the start time, not from the end of the
    previous run. Failures of a run are logged and do not stop the task.

    Attributes:
        name: Job name used in log messages.
        interval: Seconds between ticks.
        first_delay: Seconds before the first tick.
        run_count: Completed runs.
        skipped_count: Ticks skipped because a run was in flight.
    """

    def __init__(
        self,
        name: str,
        func: Job,
        interval: float,
        first_delay: float = 0.0
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.first_delay = first_delay
        self.run_count = 0
        self.skipped_count = 0
        self.error_count = 0
        self._func = func
        self._loop_task: Optional[asyncio.Task] = None
        self._current_run: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def in_flight(self) -> bool:
        return self._current_run is not None and not self._current_run.done()

    def start(self) -> None:
        """Starts ticking on the running event loop."""
        if self.is_running:
            return
        self._loop_task = asyncio.get_running_loop().create_task(self._tick_loop())
        logger.info(
            f"Started {self.name}: every {self.interval}s, first run in {self.first_delay:.0f}s"
        )

    async def stop(self) -> None:
        """Stops ticking and waits for an in-flight run to finish."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        if self.in_flight:
            await asyncio.gather(self._current_run, return_exceptions=True)
        logger.info(f"Stopped {self.name}")

    def tick(self) -> bool:
        """
        Launches one run unless the previous run is still in flight.

        Returns:
            True if a run was launched.
        """
        if self.in_flight:
            self.skipped_count += 1
            logger.warning(f"Skipped {self.name}: previous run still in progress")
            return False
        self._current_run = asyncio.get_running_loop().create_task(self._run_once())
        return True

    async def run_now(self) -> None:
        """Runs the job once and waits for it, ignoring the schedule."""
        if self.tick():
            await self._current_run

    async def _run_once(self) -> None:
        try:
            await self._func()
        except Exception:
            self.error_count += 1
            logger.exception(f"Job {self.name} failed")
        else:
            self.run_count += 1

    async def _tick_loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.first_delay
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            self.tick()
            next_tick += self.interval


class Scheduler:
    """Groups periodic tasks that are started and stopped together."""

    def __init__(self):
        self._tasks: Dict[str, PeriodicTask] = {}

    def add(
        self,
        name: str,
        func: Job,
        interval: float,
        first_delay: float = 0.0
    ) -> PeriodicTask:
        if name in self._tasks:
            raise ValueError(f"Task already registered: {name}")
        task = PeriodicTask(name, func, interval, first_delay)
        self._tasks[name] = task
        return task

    def get(self, name: str) -> PeriodicTask:
        return self._tasks[name]

    @property
    def tasks(self) -> List[PeriodicTask]:
        return list(self._tasks.values())

    def start(self) -> None:
        for task in self._tasks.values():
            task.start()

    async def stop(self) -> None:
        for task in self._tasks.values():
            await task.stop()
