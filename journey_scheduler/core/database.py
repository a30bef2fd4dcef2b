"""Async run store with SQLModel and SQLAlchemy 2.0.

The journey_runs table is the only shared mutable state between engine
instances. Every cross-instance mutation (claim, per-step status writes,
recovery sweep) goes through the transactional surface below.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional
from sqlmodel import SQLModel, select
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from contextlib import asynccontextmanager

from journey_scheduler.core.config import Settings
from journey_scheduler.models.database import Journey, JourneyRun, utcnow
from journey_scheduler.services.execution.models import RunStatus, TERMINAL_STATUSES
from journey_scheduler.core.logging import get_logger

logger = get_logger(__name__)

_TERMINAL_VALUES = [status.value for status in TERMINAL_STATUSES]


class Database:
    """Async database service with SQLModel."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = None
        self.async_session = None

    async def startup(self):
        """Initialize database connection and create tables."""
        try:
            logging.getLogger("aiosqlite").setLevel(logging.WARNING)
            logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

            engine_kwargs = {"echo": self.settings.database_echo}
            if not self.settings.is_sqlite:
                engine_kwargs.update(
                    pool_size=self.settings.database_pool_size,
                    max_overflow=self.settings.database_max_overflow,
                    pool_pre_ping=True,
                )

            self.engine = create_async_engine(self.settings.database_url, **engine_kwargs)

            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

            logger.info("Database initialized successfully")

        except Exception as e:
            logger.error("Database startup failed", error=str(e))
            raise

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")

    @asynccontextmanager
    async def get_session(self):
        """Get async database session."""
        if not self.async_session:
            raise RuntimeError("Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def transaction(self):
        """Session scoped to one transaction: commit on exit, rollback on exception."""
        async with self.get_session() as session:
            async with session.begin():
                yield session

    # ============================================================================
    # Journeys
    # ============================================================================

    async def save_journey(self, journey: Journey) -> Journey:
        """Insert or replace a journey definition."""
        async with self.transaction() as session:
            await session.merge(journey)
        return journey

    async def get_journey(self, journey_id: str) -> Optional[Journey]:
        """Get journey by ID."""
        async with self.get_session() as session:
            return await session.get(Journey, journey_id)

    # ============================================================================
    # Journey runs
    # ============================================================================

    async def create_run(self, run: JourneyRun) -> JourneyRun:
        """Persist a new run row."""
        async with self.transaction() as session:
            session.add(run)
        return run

    async def get_run(self, run_id: str) -> Optional[JourneyRun]:
        """Get run by ID."""
        async with self.get_session() as session:
            return await session.get(JourneyRun, run_id)

    async def update_run_status(self, run_id: str, status: RunStatus,
                                current_node_id: Optional[str],
                                resume_at: Optional[datetime] = None) -> bool:
        """Write a status transition for a non-terminal run.

        Keeps the row invariants: ``resume_at`` only while WAITING_DELAY,
        ``current_node_id`` cleared on terminal states, ownership released
        whenever the run stops being IN_PROGRESS. ``paused_at`` is stamped
        on WAITING_DELAY and cleared by every other transition.

        Returns:
            False if the run does not exist or is already COMPLETED/FAILED.
        """
        status = RunStatus(status)
        if status == RunStatus.WAITING_DELAY and resume_at is None:
            raise ValueError("WAITING_DELAY requires a resume time")

        now = utcnow()
        values = {
            "status": status.value,
            "current_node_id": None if status.is_terminal else current_node_id,
            "resume_at": resume_at if status == RunStatus.WAITING_DELAY else None,
            "paused_at": now if status == RunStatus.WAITING_DELAY else None,
            "updated_at": now,
        }
        if status != RunStatus.IN_PROGRESS:
            values["claimed_at"] = None

        stmt = (
            update(JourneyRun)
            .where(JourneyRun.run_id == run_id)
            .where(JourneyRun.status.not_in(_TERMINAL_VALUES))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self.transaction() as session:
            result = await session.execute(stmt)
        return result.rowcount > 0

    async def claim_due_runs(self, batch_size: int, now: Optional[datetime] = None) -> List[str]:
        """Atomically claim up to ``batch_size`` runs whose delay has expired.

        Selects due WAITING_DELAY rows oldest first under ``FOR UPDATE SKIP
        LOCKED`` and flips each to IN_PROGRESS inside the same transaction.
        The flip is a compare-and-set on the status so a row is only ever
        claimed once, including on SQLite where row locks are not rendered.
        Locks are released when the transaction commits.

        Returns:
            Run ids exclusively owned by the caller.
        """
        now = now or utcnow()
        select_stmt = (
            select(JourneyRun.run_id)
            .where(JourneyRun.status == RunStatus.WAITING_DELAY.value)
            .where(JourneyRun.resume_at <= now)
            .order_by(JourneyRun.resume_at.asc())
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )

        claimed: List[str] = []
        async with self.transaction() as session:
            result = await session.execute(select_stmt)
            ready_ids = list(result.scalars().all())
            if not ready_ids:
                return claimed

            logger.info("Found journey runs ready to resume", count=len(ready_ids))

            for run_id in ready_ids:
                claim_stmt = (
                    update(JourneyRun)
                    .where(JourneyRun.run_id == run_id)
                    .where(JourneyRun.status == RunStatus.WAITING_DELAY.value)
                    .values(
                        status=RunStatus.IN_PROGRESS.value,
                        resume_at=None,
                        claimed_at=now,
                        updated_at=utcnow(),
                    )
                    .execution_options(synchronize_session=False)
                )
                claim_result = await session.execute(claim_stmt)
                if claim_result.rowcount == 1:
                    claimed.append(run_id)

        return claimed

    async def recover_stuck_runs(self, timeout_minutes: int, now: Optional[datetime] = None) -> int:
        """Reset claimed runs that stopped making progress back to WAITING_DELAY.

        A run qualifies when it is IN_PROGRESS, owned (``claimed_at`` set) and
        has not been written for ``timeout_minutes``. It becomes due
        immediately so the next worker tick reclaims it. ``paused_at`` is
        left as is: resume uses it to tell an elapsed DELAY from one that
        was reached but never paused.

        Returns:
            Number of runs recovered.
        """
        now = now or utcnow()
        cutoff = now - timedelta(minutes=timeout_minutes)
        stmt = (
            update(JourneyRun)
            .where(JourneyRun.status == RunStatus.IN_PROGRESS.value)
            .where(JourneyRun.claimed_at.is_not(None))
            .where(JourneyRun.updated_at < cutoff)
            .values(
                status=RunStatus.WAITING_DELAY.value,
                resume_at=now,
                claimed_at=None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        async with self.transaction() as session:
            result = await session.execute(stmt)
        return result.rowcount or 0
