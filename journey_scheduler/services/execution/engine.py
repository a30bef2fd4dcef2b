"""Journey execution engine.

Drives a run through consecutive nodes until it must pause (DELAY) or
terminate (no next node, or a fault). A status transition is persisted
after every step so any later invocation can pick the run up where it
stopped. Triggering and resuming both converge on ``advance``.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, TYPE_CHECKING

from journey_scheduler.constants import DEFAULT_MAX_STEPS_PER_ADVANCE
from journey_scheduler.core.logging import get_logger
from journey_scheduler.models.database import Journey, JourneyRun
from journey_scheduler.models.journey import DelayNode, MessageNode
from .errors import NodeEvaluationError
from .interpreter import NodeInterpreter, parse_node
from .models import Pause, RunStatus

if TYPE_CHECKING:
    from journey_scheduler.core.database import Database
    from journey_scheduler.services.delivery import MessageDelivery

logger = get_logger(__name__)


class JourneyEngine:
    """Executes journey runs node by node with durable pause/resume.

    Features:
    - Per-step persistence of status and position
    - DELAY realised as a persisted resume time, never a held task
    - Re-entrant: safe to call again on a run that already made progress
    """

    def __init__(self, database: "Database", delivery: "MessageDelivery",
                 interpreter: Optional[NodeInterpreter] = None,
                 max_steps: int = DEFAULT_MAX_STEPS_PER_ADVANCE):
        """Initialize engine.

        Args:
            database: Run store
            delivery: Message delivery backend for MESSAGE nodes
            interpreter: Node interpreter (default: non-strict operators)
            max_steps: Max nodes processed in one advance call before the run fails
        """
        self.database = database
        self.delivery = delivery
        self.interpreter = interpreter or NodeInterpreter()
        self.max_steps = max_steps

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    async def advance(self, run: JourneyRun, journey: Journey,
                      from_node_id: Optional[str]) -> Optional[RunStatus]:
        """Process ``run`` starting at ``from_node_id``.

        Returns:
            WAITING_DELAY, COMPLETED or FAILED; None if the run was finalised
            by someone else while this call was processing it
        """
        run_id = run.run_id
        context = run.patient_context or {}
        node_id = from_node_id
        steps = 0

        while True:
            if node_id is None:
                await self.complete_run(run_id)
                return RunStatus.COMPLETED

            if steps >= self.max_steps:
                await self.fail_run(run_id, f"Step limit of {self.max_steps} exceeded at node {node_id}")
                return RunStatus.FAILED
            steps += 1

            raw_node = journey.find_node(node_id)
            if raw_node is None:
                await self.fail_run(run_id, f"Node {node_id} not found in journey {journey.id}")
                return RunStatus.FAILED

            try:
                node = parse_node(raw_node)
                decision = self.interpreter.evaluate(node, context)
            except NodeEvaluationError as e:
                await self.fail_run(run_id, str(e))
                return RunStatus.FAILED

            if isinstance(decision, Pause):
                resume_at = datetime.now(timezone.utc) + timedelta(seconds=decision.delay_seconds)
                if not await self.database.update_run_status(
                    run_id, RunStatus.WAITING_DELAY, node.id, resume_at=resume_at
                ):
                    logger.warning("Run no longer active, stopping", run_id=run_id, node_id=node.id)
                    return None
                logger.info("DELAY node scheduled resume",
                            run_id=run_id,
                            node_id=node.id,
                            resume_at=resume_at.isoformat())
                return RunStatus.WAITING_DELAY

            if isinstance(node, MessageNode):
                try:
                    await self.delivery.deliver(run_id, node.id, node.message, context)
                except Exception as e:
                    await self.fail_run(run_id, f"Message delivery failed at node {node.id}: {e}")
                    return RunStatus.FAILED

            next_node_id = decision.next_node_id
            if next_node_id is None:
                await self.complete_run(run_id)
                return RunStatus.COMPLETED

            if not await self.database.update_run_status(run_id, RunStatus.IN_PROGRESS, next_node_id):
                logger.warning("Run no longer active, stopping", run_id=run_id, node_id=node.id)
                return None

            node_id = next_node_id

    async def resume(self, run_id: str) -> Optional[RunStatus]:
        """Resume a claimed run from the node it paused at.

        A DELAY node that was paused (``paused_at`` set) is stepped over to
        its ``next_node_id``. A DELAY the run reached but never paused is
        re-entered, which starts its full delay. Any other node is re-entered
        as-is with a warning so the run keeps moving.

        Returns:
            Outcome of the advance, the untouched status for runs that are not
            claimed, or None if the run does not exist
        """
        logger.info("Resuming journey run", run_id=run_id)

        run = await self.database.get_run(run_id)
        if run is None:
            logger.error("Journey run not found", run_id=run_id)
            return None

        status = RunStatus(run.status)
        if status != RunStatus.IN_PROGRESS:
            logger.warning("Journey run not claimed, skipping resume",
                           run_id=run_id, status=status.value)
            return status

        journey = await self.database.get_journey(run.journey_id)
        if journey is None:
            await self.fail_run(run_id, f"Journey {run.journey_id} not found")
            return RunStatus.FAILED

        if not run.current_node_id:
            await self.fail_run(run_id, "No current node ID found")
            return RunStatus.FAILED

        raw_node = journey.find_node(run.current_node_id)
        if raw_node is None:
            await self.fail_run(
                run_id, f"Current node {run.current_node_id} not found in journey {journey.id}"
            )
            return RunStatus.FAILED

        try:
            node = parse_node(raw_node)
        except NodeEvaluationError as e:
            await self.fail_run(run_id, str(e))
            return RunStatus.FAILED

        if isinstance(node, DelayNode) and run.paused_at is not None:
            logger.info("DELAY node completed, moving on",
                        run_id=run_id,
                        node_id=node.id,
                        next_node_id=node.next_node_id)
            if not await self.database.update_run_status(run_id, RunStatus.IN_PROGRESS, node.next_node_id):
                logger.warning("Run no longer active, stopping", run_id=run_id, node_id=node.id)
                return None
            return await self.advance(run, journey, node.next_node_id)

        if isinstance(node, DelayNode):
            # reached before a crash but never paused: start the delay now
            logger.warning("DELAY node was never paused, scheduling it",
                           run_id=run_id,
                           node_id=node.id)
        else:
            logger.warning("Expected DELAY node, continuing processing",
                           run_id=run_id,
                           node_id=node.id,
                           node_type=node.type)
        return await self.advance(run, journey, node.id)

    # =========================================================================
    # TERMINAL TRANSITIONS
    # =========================================================================

    async def complete_run(self, run_id: str) -> bool:
        """Mark the run COMPLETED and clear its position."""
        updated = await self.database.update_run_status(run_id, RunStatus.COMPLETED, None)
        if updated:
            logger.info("Journey run completed", run_id=run_id)
        return updated

    async def fail_run(self, run_id: str, reason: str) -> bool:
        """Mark the run FAILED and clear its position."""
        updated = await self.database.update_run_status(run_id, RunStatus.FAILED, None)
        logger.error("Journey run failed", run_id=run_id, reason=reason, updated=updated)
        return updated
