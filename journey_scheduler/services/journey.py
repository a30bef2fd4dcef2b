"""Journey service: journey catalogue, run lookup and the trigger path.

``trigger`` returns as soon as the run row is durably written. The first
nodes are processed by a background continuation whose failures are
logged and turned into a FAILED run, never raised to the caller.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set, TYPE_CHECKING

from journey_scheduler.core.logging import get_logger, run_log_context
from journey_scheduler.models.database import Journey, JourneyRun
from journey_scheduler.models.journey import JourneyDefinition
from journey_scheduler.services.execution.errors import JourneyNotFoundError, RunNotFoundError
from journey_scheduler.services.execution.models import RunStatus

if TYPE_CHECKING:
    from journey_scheduler.core.database import Database
    from journey_scheduler.services.execution.engine import JourneyEngine

logger = get_logger(__name__)


class JourneyService:
    """Creates journeys, triggers runs and exposes run status."""

    def __init__(self, database: "Database", engine: "JourneyEngine"):
        self.database = database
        self.engine = engine
        self._continuations: Set[asyncio.Task] = set()

    # =========================================================================
    # JOURNEYS
    # =========================================================================

    async def create_journey(self, definition: JourneyDefinition) -> str:
        """Store a new journey definition and return its id."""
        journey = Journey(
            id=str(uuid.uuid4()),
            name=definition.name,
            start_node_id=definition.start_node_id,
            nodes=[node.model_dump() for node in definition.nodes],
        )
        await self.database.save_journey(journey)
        logger.info("Created journey", journey_id=journey.id, node_count=len(journey.nodes))
        return journey.id

    async def get_journey(self, journey_id: str) -> Journey:
        journey = await self.database.get_journey(journey_id)
        if journey is None:
            raise JourneyNotFoundError(journey_id)
        return journey

    async def get_run(self, run_id: str) -> JourneyRun:
        run = await self.database.get_run(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    # =========================================================================
    # TRIGGER
    # =========================================================================

    async def trigger(self, journey_id: str, context: Dict[str, Any]) -> str:
        """Start a new run of ``journey_id`` for the patient in ``context``.

        Raises:
            JourneyNotFoundError: the journey does not exist
        """
        journey = await self.get_journey(journey_id)

        now = datetime.now(timezone.utc)
        run = JourneyRun(
            run_id=str(uuid.uuid4()),
            journey_id=journey.id,
            status=RunStatus.IN_PROGRESS.value,
            current_node_id=journey.start_node_id,
            patient_context=dict(context),
            resume_at=None,
            claimed_at=now,
            created_at=now,
            updated_at=now,
        )
        await self.database.create_run(run)
        logger.info("Started journey run", run_id=run.run_id, journey_id=journey.id)

        task = asyncio.create_task(self._continue(run, journey))
        self._continuations.add(task)
        task.add_done_callback(self._continuations.discard)

        return run.run_id

    async def _continue(self, run: JourneyRun, journey: Journey) -> Optional[RunStatus]:
        try:
            with run_log_context(run.run_id, source="trigger"):
                return await self.engine.advance(run, journey, journey.start_node_id)
        except asyncio.CancelledError:
            logger.warning("Journey run continuation cancelled", run_id=run.run_id)
            raise
        except Exception as e:
            logger.error("Error processing journey run", run_id=run.run_id, error=str(e))
            try:
                await self.engine.fail_run(run.run_id, str(e))
            except Exception as fail_error:
                # still owned; the recovery sweeper picks it up after the timeout
                logger.error("Could not mark journey run failed",
                             run_id=run.run_id, error=str(fail_error))
            return RunStatus.FAILED

    @property
    def pending_continuations(self) -> int:
        return len(self._continuations)

    async def drain(self) -> None:
        """Wait for every in-flight trigger continuation to finish."""
        while self._continuations:
            await asyncio.gather(*list(self._continuations), return_exceptions=True)
