"""
BudgetPace - Scheduler Tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from budgetpace.scheduler import PeriodicTask, Scheduler, seconds_until_midnight


class TestSecondsUntilMidnight:
    """Tests for seconds_until_midnight."""

    def test_one_hour_before(self) -> None:
        assert seconds_until_midnight(datetime(2025, 12, 1, 23, 0)) == 3600

    def test_at_midnight_waits_full_day(self) -> None:
        assert seconds_until_midnight(datetime(2025, 12, 1, 0, 0)) == 86400

    def test_year_end(self) -> None:
        assert seconds_until_midnight(datetime(2025, 12, 31, 23, 59, 30)) == 30

    def test_aware_time(self) -> None:
        kst = timezone(timedelta(hours=9))
        assert seconds_until_midnight(datetime(2025, 12, 1, 12, 0, tzinfo=kst)) == 43200


class TestPeriodicTask:
    """Tests for PeriodicTask."""

    def test_interval_must_be_positive(self) -> None:
        async def job():
            pass

        with pytest.raises(ValueError):
            PeriodicTask("job", job, 0)

    def test_tick_skips_while_in_flight(self) -> None:
        async def scenario():
            release = asyncio.Event()

            async def job():
                await release.wait()

            task = PeriodicTask("slow", job, interval=60)
            first = task.tick()
            await asyncio.sleep(0)
            second = task.tick()
            release.set()
            await task.stop()
            third = task.tick()
            await task.stop()
            return task, first, second, third

        task, first, second, third = asyncio.run(scenario())

        assert (first, second, third) == (True, False, True)
        assert task.skipped_count == 1
        assert task.run_count == 2

    def test_failures_are_counted_and_do_not_propagate(self) -> None:
        async def job():
            raise RuntimeError("boom")

        async def scenario():
            task = PeriodicTask("failing", job, interval=60)
            await task.run_now()
            await task.run_now()
            return task

        task = asyncio.run(scenario())

        assert task.error_count == 2
        assert task.run_count == 0

    def test_runs_on_interval_until_stopped(self) -> None:
        calls = []

        async def job():
            calls.append(1)

        async def scenario():
            task = PeriodicTask("fast", job, interval=0.01)
            task.start()
            assert task.is_running
            await asyncio.sleep(0.1)
            await task.stop()
            return task

        task = asyncio.run(scenario())

        assert not task.is_running
        assert len(calls) >= 3
        assert task.run_count == len(calls)

    def test_first_delay_postpones_first_run(self) -> None:
        calls = []

        async def job():
            calls.append(1)

        async def scenario():
            task = PeriodicTask("delayed", job, interval=10, first_delay=10)
            task.start()
            await asyncio.sleep(0.05)
            await task.stop()

        asyncio.run(scenario())
        assert calls == []


class TestScheduler:
    """Tests for Scheduler."""

    def test_duplicate_name_rejected(self) -> None:
        async def job():
            pass

        scheduler = Scheduler()
        scheduler.add("sync", job, 300)
        with pytest.raises(ValueError):
            scheduler.add("sync", job, 300)

    def test_start_and_stop_all(self) -> None:
        calls = {"sync": 0, "alerts": 0}

        def make_job(name):
            async def job():
                calls[name] += 1
            return job

        async def scenario():
            scheduler = Scheduler()
            scheduler.add("sync", make_job("sync"), 300)
            scheduler.add("alerts", make_job("alerts"), 86400, first_delay=3600)
            scheduler.start()
            await asyncio.sleep(0.05)
            running = [task.is_running for task in scheduler.tasks]
            await scheduler.stop()
            return scheduler, running

        scheduler, running = asyncio.run(scenario())

        assert running == [True, True]
        assert calls == {"sync": 1, "alerts": 0}
        assert scheduler.get("sync").run_count == 1
        assert not any(task.is_running for task in scheduler.tasks)
