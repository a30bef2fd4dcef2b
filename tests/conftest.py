import uuid
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from journey_scheduler.core.config import Settings
from journey_scheduler.core.database import Database
from journey_scheduler.models.database import Journey, JourneyRun
from journey_scheduler.services.execution import JourneyEngine, RunStatus
from journey_scheduler.services.execution.errors import DeliveryError
from journey_scheduler.services.journey import JourneyService


class RecordingDelivery:
    """In-memory delivery backend that records sends and can fail on demand."""

    def __init__(self, fail_on=None):
        self.sent = []
        self.fail_on = set(fail_on or [])

    async def deliver(self, run_id, node_id, message, context):
        if node_id in self.fail_on:
            raise DeliveryError(f"gateway down for {node_id}")
        self.sent.append((run_id, node_id, message))

    def messages_for(self, run_id):
        return [message for rid, _, message in self.sent if rid == run_id]


def as_utc(value):
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def message(node_id, next_node_id=None, text=None):
    return {"id": node_id, "type": "MESSAGE", "message": text or f"msg {node_id}", "next_node_id": next_node_id}


def delay(node_id, seconds, next_node_id=None):
    return {"id": node_id, "type": "DELAY", "duration_seconds": seconds, "next_node_id": next_node_id}


def conditional(node_id, field, operator, value, on_true=None, on_false=None):
    return {
        "id": node_id,
        "type": "CONDITIONAL",
        "condition": {"field": field, "operator": operator, "value": value},
        "on_true_next_node_id": on_true,
        "on_false_next_node_id": on_false,
    }


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'journeys.db'}",
        log_format="console",
    )


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings)
    await db.startup()
    yield db
    await db.shutdown()


@pytest.fixture
def delivery():
    return RecordingDelivery()


@pytest.fixture
def engine(database, delivery):
    return JourneyEngine(database, delivery)


@pytest_asyncio.fixture
async def journey_service(database, engine):
    service = JourneyService(database, engine)
    yield service
    await service.drain()


@pytest.fixture
def make_journey(database):
    async def _make(nodes, start_node_id, name="Test Journey"):
        journey = Journey(id=str(uuid.uuid4()), name=name, start_node_id=start_node_id, nodes=nodes)
        await database.save_journey(journey)
        return journey
    return _make


@pytest.fixture
def make_run(database):
    async def _make(journey, status=RunStatus.WAITING_DELAY, current_node_id=None,
                    resume_at=None, claimed_at=None, updated_at=None, context=None,
                    paused_at=None):
        now = datetime.now(timezone.utc)
        if paused_at is None and RunStatus(status) == RunStatus.WAITING_DELAY:
            paused_at = now
        run = JourneyRun(
            run_id=str(uuid.uuid4()),
            journey_id=journey.id,
            status=RunStatus(status).value,
            current_node_id=current_node_id,
            patient_context=context or {"id": "patient_1", "age": 72},
            resume_at=resume_at,
            claimed_at=claimed_at,
            paused_at=paused_at,
            created_at=now,
            updated_at=updated_at or now,
        )
        await database.create_run(run)
        return run
    return _make
