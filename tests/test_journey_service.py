import uuid

import pytest

from journey_scheduler.models.journey import JourneyDefinition
from journey_scheduler.services.execution import JourneyEngine, RunStatus
from journey_scheduler.services.execution.errors import JourneyNotFoundError, RunNotFoundError
from journey_scheduler.services.journey import JourneyService

from tests.conftest import delay, message


class TestJourneyService:
    @pytest.mark.asyncio
    async def test_create_journey_assigns_id(self, journey_service):
        definition = JourneyDefinition(
            name="Knee surgery", start_node_id="hello", nodes=[message("hello")]
        )

        journey_id = await journey_service.create_journey(definition)

        journey = await journey_service.get_journey(journey_id)
        assert journey.start_node_id == "hello"
        assert journey.nodes[0]["type"] == "MESSAGE"

    @pytest.mark.asyncio
    async def test_trigger_unknown_journey(self, journey_service):
        with pytest.raises(JourneyNotFoundError):
            await journey_service.trigger(str(uuid.uuid4()), {"id": "p1"})

    @pytest.mark.asyncio
    async def test_get_unknown_run(self, journey_service):
        with pytest.raises(RunNotFoundError):
            await journey_service.get_run(str(uuid.uuid4()))

    @pytest.mark.asyncio
    async def test_trigger_persists_run_before_returning(self, journey_service, make_journey):
        journey = await make_journey([delay("wait", 60, "done"), message("done")], start_node_id="wait")

        run_id = await journey_service.trigger(journey.id, {"id": "p1", "age": 50})
        assert journey_service.pending_continuations == 1

        run = await journey_service.get_run(run_id)
        assert run.journey_id == journey.id
        assert run.patient_context == {"id": "p1", "age": 50}

        await journey_service.drain()
        assert journey_service.pending_continuations == 0
        assert (await journey_service.get_run(run_id)).status == RunStatus.WAITING_DELAY.value

    @pytest.mark.asyncio
    async def test_continuation_error_fails_run(self, database, delivery, make_journey):
        class BrokenEngine(JourneyEngine):
            async def advance(self, run, journey, from_node_id):
                raise RuntimeError("engine crashed")

        service = JourneyService(database, BrokenEngine(database, delivery))
        journey = await make_journey([message("a")], start_node_id="a")

        run_id = await service.trigger(journey.id, {"id": "p1"})
        await service.drain()

        assert (await service.get_run(run_id)).status == RunStatus.FAILED.value
