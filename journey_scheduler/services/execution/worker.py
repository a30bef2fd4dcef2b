"""Resume worker: claims due journey runs and hands them back to the engine.

Each tick is two-phase so row locks are held only for the brief claim
transaction, never for the duration of node processing:

1. Claim: one transaction selects up to ``batch_size`` due WAITING_DELAY
   runs (oldest ``resume_at`` first) under a row lock and flips them to
   IN_PROGRESS. Commit releases the locks.
2. Process: outside any lock, resume each claimed run. A failure on one run
   marks that run FAILED and never aborts the batch.
"""

import asyncio
import time
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from journey_scheduler.constants import (
    DEFAULT_WORKER_BATCH_SIZE,
    DEFAULT_WORKER_INTERVAL_MS,
    RESUME_WORKER_JOB_ID,
)
from journey_scheduler.core.logging import get_logger, log_execution_time, run_log_context
from journey_scheduler.services.scheduler import register_interval_job, remove_job, start_scheduler

if TYPE_CHECKING:
    from apscheduler.schedulers.asyncio import AsyncIOScheduler
    from journey_scheduler.core.database import Database
    from .engine import JourneyEngine

logger = get_logger(__name__)


class ResumeWorker:
    """Timer-driven poller that resumes journey runs whose delay has expired."""

    def __init__(self, database: "Database", engine: "JourneyEngine",
                 scheduler: "AsyncIOScheduler",
                 batch_size: int = DEFAULT_WORKER_BATCH_SIZE):
        """Initialize resume worker.

        Args:
            database: Run store providing the claim primitive
            engine: Journey engine used to resume claimed runs
            scheduler: Scheduler that owns the polling timer
            batch_size: Max runs claimed per tick
        """
        self.database = database
        self.engine = engine
        self.scheduler = scheduler
        self.batch_size = batch_size
        self._running = False
        self._tick_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, interval_ms: int = DEFAULT_WORKER_INTERVAL_MS) -> None:
        """Start polling every ``interval_ms``. No-op if already started."""
        if self._running:
            logger.warning("Journey worker already running")
            return

        start_scheduler(self.scheduler)
        register_interval_job(self.scheduler, RESUME_WORKER_JOB_ID, interval_ms,
                              self.process_ready_runs)
        self._running = True
        logger.info("Journey worker started", interval_ms=interval_ms, batch_size=self.batch_size)

    def stop(self) -> None:
        """Cancel the polling timer. Safe to call repeatedly."""
        if self._running and self.scheduler.running:
            remove_job(self.scheduler, RESUME_WORKER_JOB_ID)
        self._running = False
        logger.info("Journey worker stopped")

    async def wait_idle(self) -> None:
        """Wait for an in-flight tick to finish. Call after ``stop``."""
        async with self._tick_lock:
            pass

    async def process_ready_runs(self, now: Optional[datetime] = None) -> List[str]:
        """Run one tick: claim due runs, then resume each of them.

        Args:
            now: Clock override for the due-time comparison

        Returns:
            Run ids claimed by this tick
        """
        async with self._tick_lock:
            return await self._process_batch(now)

    async def _process_batch(self, now: Optional[datetime]) -> List[str]:
        start_time = time.time()

        try:
            claimed = await self.database.claim_due_runs(self.batch_size, now)
        except Exception as e:
            # next tick retries
            logger.error("Failed to claim ready journey runs", error=str(e))
            return []

        if not claimed:
            return claimed

        for run_id in claimed:
            with run_log_context(run_id, source="resume_worker"):
                try:
                    await self.engine.resume(run_id)
                except Exception as e:
                    logger.error("Error processing journey run", run_id=run_id, error=str(e))
                    await self._mark_failed(run_id, str(e))

        log_execution_time(logger, "process_ready_runs", start_time, time.time(),
                           claimed=len(claimed))
        return claimed

    async def _mark_failed(self, run_id: str, reason: str) -> None:
        try:
            await self.engine.fail_run(run_id, reason)
        except Exception as e:
            # left IN_PROGRESS and owned; the recovery sweeper reclaims it
            logger.error("Could not mark journey run failed", run_id=run_id, error=str(e))
