"""Recovery sweeper for crash recovery.

Runs as background task to:
- Detect claimed journey runs that stopped making progress (e.g. the
  process died mid-step)
- Reset them to WAITING_DELAY so the next worker tick reclaims them
"""

import asyncio
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from journey_scheduler.constants import DEFAULT_RECOVERY_TIMEOUT_MINUTES
from journey_scheduler.core.logging import get_logger

if TYPE_CHECKING:
    from journey_scheduler.core.database import Database

logger = get_logger(__name__)


class RecoverySweeper:
    """Background task that recovers stuck journey runs.

    The sweep is a bulk, lock-free update guarded only by staleness; flipping
    an already recovered run again is harmless, so concurrent sweepers on
    several instances need no coordination.
    """

    def __init__(self, database: "Database",
                 timeout_minutes: int = DEFAULT_RECOVERY_TIMEOUT_MINUTES,
                 sweep_interval: int = 60):
        """Initialize recovery sweeper.

        Args:
            database: Run store
            timeout_minutes: Minutes without a write before a claimed run is stuck
            sweep_interval: Seconds between sweep runs
        """
        self.database = database
        self.timeout_minutes = timeout_minutes
        self.sweep_interval = sweep_interval
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the recovery sweeper background task."""
        if self._running:
            logger.warning("Recovery sweeper already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info("Recovery sweeper started",
                    timeout_minutes=self.timeout_minutes,
                    sweep_interval=self.sweep_interval)

    async def stop(self) -> None:
        """Stop the recovery sweeper."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Recovery sweeper stopped")

    async def _sweep_loop(self) -> None:
        """Main sweep loop - runs continuously."""
        while self._running:
            try:
                await self.recover()
            except Exception as e:
                logger.error("Sweep iteration failed", error=str(e))

            await asyncio.sleep(self.sweep_interval)

    async def recover(self, timeout_minutes: Optional[int] = None,
                      now: Optional[datetime] = None) -> int:
        """Reset stuck runs once.

        Args:
            timeout_minutes: Override of the configured staleness window
            now: Clock override

        Returns:
            Number of runs recovered
        """
        timeout = timeout_minutes if timeout_minutes is not None else self.timeout_minutes
        recovered = await self.database.recover_stuck_runs(timeout, now)
        if recovered > 0:
            logger.warning("Recovered stuck journey runs",
                           count=recovered,
                           timeout_minutes=timeout)
        return recovered
