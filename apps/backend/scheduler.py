"""
Interval scheduler for ingestion runs.

One instance is created by the application lifespan and owned by it. start()
runs immediately and then every interval_hours; stop() cancels the pending
wait but lets a run that is already in flight finish.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from app.config import SchedulerSettings
from orchestrator import ScrapeOrchestrator
from pipeline.models import RunLog, RunResult, utcnow
from pipeline.store import JobStore

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL = timedelta(hours=24)


class ScrapeScheduler:
    def __init__(
        self,
        orchestrator: ScrapeOrchestrator,
        store: JobStore,
        settings: Optional[SchedulerSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.orchestrator = orchestrator
        self.store = store
        self.settings = settings or SchedulerSettings()
        self.clock = clock
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._last_cleanup: Optional[datetime] = None
        self.last_run_at: Optional[datetime] = None
        self.next_run_at: Optional[datetime] = None
        self.last_result: Optional[RunResult] = None
        self.run_count = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> bool:
        """Start the loop. Returns False if disabled or already running."""
        if not self.settings.enabled:
            logger.info("[scheduler] Scheduler disabled by configuration")
            return False
        if self.is_running:
            logger.info("[scheduler] Scheduler already running")
            return False

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(self._stop_event))
        logger.info(f"[scheduler] Started, interval {self.settings.interval_hours}h")
        return True

    async def stop(self):
        """Stop the loop after any in-flight run completes"""
        if not self.is_running:
            return
        logger.info("[scheduler] Stopping...")
        self._stop_event.set()
        await self._task
        self._task = None
        self.next_run_at = None
        logger.info("[scheduler] Stopped")

    async def _loop(self, stop_event: asyncio.Event):
        interval = self.settings.interval_seconds
        while not stop_event.is_set():
            await self.run_once()
            self.next_run_at = self.clock() + timedelta(seconds=interval)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

    async def run_once(self) -> RunResult:
        """Run the pipeline once and record the run log. Never raises."""
        try:
            result = await self.orchestrator.run()
        except Exception as e:
            logger.error(f"[scheduler] Run crashed: {e}", exc_info=True)
            result = RunResult(success=False, errors=[f"Process failed: {e}"], finished_at=self.clock())

        self.run_count += 1
        self.last_run_at = result.finished_at or self.clock()
        self.last_result = result
        await self._record(result)
        await self._maybe_cleanup()
        return result

    async def _record(self, result: RunResult):
        log = RunLog.from_result(result)
        try:
            await asyncio.to_thread(self.store.insert_run_log, log)
        except Exception as e:
            logger.error(f"[scheduler] Failed to write run log {log.run_id}: {e}")

    async def _maybe_cleanup(self):
        now = self.clock()
        if self._last_cleanup is not None and now - self._last_cleanup < CLEANUP_INTERVAL:
            return
        try:
            deleted = await asyncio.to_thread(self.store.cleanup_expired_jobs)
            logger.info(f"[scheduler] Cleanup removed {deleted} expired jobs")
            self._last_cleanup = now
        except Exception as e:
            logger.error(f"[scheduler] Cleanup error: {e}")

    async def update_config(self, settings: SchedulerSettings):
        """Apply new scheduler settings, restarting the loop if the interval changed"""
        interval_changed = settings.interval_hours != self.settings.interval_hours
        was_running = self.is_running
        self.settings = settings

        if was_running and (interval_changed or not settings.enabled):
            await self.stop()
            if settings.enabled:
                await self.start()
        logger.info(f"[scheduler] Configuration updated: {settings.model_dump()}")

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.is_running,
            "enabled": self.settings.enabled,
            "interval_hours": self.settings.interval_hours,
            "run_in_progress": self.orchestrator.is_running,
            "run_count": self.run_count,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "next_run_at": self.next_run_at.isoformat() if self.next_run_at else None,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }
