"""Journey definition, trigger and run status routes."""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from journey_scheduler.core.container import container
from journey_scheduler.core.logging import get_logger
from journey_scheduler.models.journey import (
    JourneyCreated,
    JourneyDefinition,
    JourneyRunView,
    PatientContext,
    RunTriggered,
)
from journey_scheduler.services.execution.errors import JourneyNotFoundError, RunNotFoundError
from journey_scheduler.services.journey import JourneyService

logger = get_logger(__name__)
router = APIRouter(prefix="/journeys", tags=["journeys"])


def get_journey_service() -> JourneyService:
    return container.journey_service()


@router.post("", status_code=status.HTTP_201_CREATED, response_model=JourneyCreated)
async def create_journey(
    definition: JourneyDefinition,
    journey_service: JourneyService = Depends(get_journey_service)
):
    """Create and store a new journey definition."""
    journey_id = await journey_service.create_journey(definition)
    return JourneyCreated(journey_id=journey_id)


@router.post("/{journey_id}/trigger", status_code=status.HTTP_202_ACCEPTED, response_model=RunTriggered)
async def trigger_journey(
    journey_id: str,
    patient_context: PatientContext,
    response: Response,
    journey_service: JourneyService = Depends(get_journey_service)
):
    """Start a new execution run of a journey for a patient."""
    try:
        run_id = await journey_service.trigger(journey_id, patient_context.to_context())
    except JourneyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    response.headers["Location"] = f"/journeys/runs/{run_id}"
    return RunTriggered(run_id=run_id)


@router.get("/runs/{run_id}", response_model=JourneyRunView)
async def get_journey_run(
    run_id: str,
    journey_service: JourneyService = Depends(get_journey_service)
):
    """Monitor the status of a journey run."""
    try:
        run = await journey_service.get_run(run_id)
    except RunNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return JourneyRunView.from_run(run)
