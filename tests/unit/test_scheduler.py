"""
Unit tests for the sync scheduler loop
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.exceptions import DatabaseError
from ingestion.schedule_gate import ScheduleGate
from ingestion.scheduler import SyncScheduler

NOW = datetime(2024, 10, 19, 18, 0, tzinfo=timezone.utc)  # 12:00 in Denver


def make_scheduler(pipeline, gate=None, clock=lambda: NOW):
    scheduler = SyncScheduler(
        pipeline=pipeline,
        gate=gate or ScheduleGate(7, 22, "America/Denver"),
        interval_minutes=60,
        clock=clock,
    )
    scheduler._schedule_next = MagicMock()
    return scheduler


class TestSchedulerTick:
    """Test the decisions made on each tick"""

    @pytest.mark.asyncio
    async def test_runs_pass_and_reschedules_after_interval(self):
        pipeline = MagicMock()
        pipeline.run_pass = AsyncMock(return_value={"status": "success"})
        scheduler = make_scheduler(pipeline)

        await scheduler.tick()

        pipeline.run_pass.assert_awaited_once()
        scheduler._schedule_next.assert_called_once_with(NOW + timedelta(minutes=60))
        assert scheduler.last_result == {"status": "success"}

    @pytest.mark.asyncio
    async def test_outside_hours_waits_for_window(self):
        """Test no pass runs at night and the next tick lands on the window start"""
        pipeline = MagicMock()
        pipeline.run_pass = AsyncMock()
        night = datetime(2024, 10, 20, 5, 0, tzinfo=timezone.utc)  # 23:00 in Denver
        scheduler = make_scheduler(pipeline, clock=lambda: night)

        await scheduler.tick()

        pipeline.run_pass.assert_not_awaited()
        scheduler._schedule_next.assert_called_once_with(
            datetime(2024, 10, 20, 13, 0, tzinfo=timezone.utc)
        )

    @pytest.mark.asyncio
    async def test_pipeline_error_keeps_schedule(self):
        """Test an aborted pass is logged and the loop carries on"""
        pipeline = MagicMock()
        pipeline.run_pass = AsyncMock(side_effect=DatabaseError("warehouse unreachable"))
        scheduler = make_scheduler(pipeline)

        await scheduler.tick()

        scheduler._schedule_next.assert_called_once()
        assert scheduler._fatal is None

    @pytest.mark.asyncio
    async def test_unexpected_error_stops_scheduler(self):
        pipeline = MagicMock()
        pipeline.run_pass = AsyncMock(side_effect=RuntimeError("bug"))
        scheduler = make_scheduler(pipeline)

        await scheduler.tick()

        scheduler._schedule_next.assert_not_called()
        assert isinstance(scheduler._fatal, RuntimeError)
        assert scheduler._stopped.is_set()


class TestSchedulerLifecycle:
    """Test start, stop and fatal shutdown with a real AsyncIOScheduler"""

    @pytest.mark.asyncio
    async def test_stop_ends_run_until_stopped(self):
        pipeline = MagicMock()
        ran = asyncio.Event()

        async def run_pass():
            ran.set()
            return {"status": "success"}

        pipeline.run_pass = run_pass
        scheduler = SyncScheduler(pipeline=pipeline, gate=ScheduleGate(0, 24, "UTC"), interval_minutes=60)

        task = asyncio.create_task(scheduler.run_until_stopped())
        await asyncio.wait_for(ran.wait(), timeout=5)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=5)

        assert not scheduler.scheduler.running

    @pytest.mark.asyncio
    async def test_fatal_error_is_reraised(self):
        """Test an unexpected exception surfaces from run_until_stopped"""
        pipeline = MagicMock()
        pipeline.run_pass = AsyncMock(side_effect=RuntimeError("bug"))
        scheduler = SyncScheduler(pipeline=pipeline, gate=ScheduleGate(0, 24, "UTC"), interval_minutes=60)

        with pytest.raises(RuntimeError, match="bug"):
            await asyncio.wait_for(scheduler.run_until_stopped(), timeout=5)
