import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from core.config import settings
from core.exceptions import ETLException
from ingestion.pipeline import SyncPipeline
from ingestion.schedule_gate import ScheduleGate

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncScheduler:
    """
    Runs sync passes inside the allowed hours.

    A single job reschedules itself after every tick: at the next window start
    when outside the allowed hours, otherwise ``interval_minutes`` after the
    pass finished. Passes therefore never overlap.
    """

    JOB_ID = "report_sync"

    def __init__(
        self,
        pipeline: Optional[SyncPipeline] = None,
        gate: Optional[ScheduleGate] = None,
        interval_minutes: Optional[int] = None,
        clock: Callable[[], datetime] = _utc_now
    ):
        self.pipeline = pipeline or SyncPipeline()
        self.gate = gate or ScheduleGate()
        self.interval_minutes = interval_minutes or settings.SYNC_INTERVAL_MINUTES
        self.clock = clock
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.last_result: Optional[Dict[str, Any]] = None
        self._stopped = asyncio.Event()
        self._fatal: Optional[BaseException] = None

    def _schedule_next(self, run_at: datetime) -> None:
        self.scheduler.add_job(
            self.tick,
            trigger=DateTrigger(run_date=run_at),
            id=self.JOB_ID,
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=None,
        )
        logger.info(f"Next sync tick scheduled at {run_at.isoformat()}")

    async def tick(self) -> None:
        """Job to run one sync pass, or wait for the allowed hours"""
        now = self.clock()

        if not self.gate.is_within_allowed_window(now):
            wait = self.gate.time_until_next_allowed_start(now)
            logger.info(f"Outside allowed hours, sleeping {wait} until the next window")
            self._schedule_next(now + wait)
            return

        logger.info("Scheduler: Starting sync pass")
        try:
            self.last_result = await self.pipeline.run_pass()
        except ETLException as e:
            logger.error(
                f"Scheduler: sync pass aborted - {e.message}",
                extra={"error_context": e.to_dict()}
            )
        except Exception as e:
            logger.critical("Scheduler: unhandled exception in sync pass", exc_info=True)
            self._fatal = e
            self.stop()
            return

        if self._stopped.is_set():
            return
        self._schedule_next(self.clock() + timedelta(minutes=self.interval_minutes))

    def start(self):
        """Start the scheduler with an immediate first tick"""
        self._stopped.clear()
        self._fatal = None
        self.scheduler.start()
        self._schedule_next(self.clock())
        logger.info("Sync scheduler started")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self._stopped.set()
        logger.info("Sync scheduler stopped")

    async def run_until_stopped(self) -> None:
        """
        Start, then wait for ``stop()``.

        Raises:
            The exception that stopped the scheduler, if any
        """
        self.start()
        await self._stopped.wait()
        if self._fatal is not None:
            raise self._fatal
