"""
FastAPI backend for the patient journey scheduler.

The HTTP surface accepts journey definitions and trigger requests; the
resume worker and recovery sweeper run independently of any request.
"""

from datetime import datetime, timezone
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from journey_scheduler.core.container import container
from journey_scheduler.core.logging import configure_logging, get_logger
from journey_scheduler.routers import journey
from journey_scheduler.services.scheduler import list_jobs, shutdown_scheduler

# Initialize settings and logging
settings = container.settings()
configure_logging(settings)
logger = get_logger(__name__)



@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the run store, then start the background timers of this process."""
    logger.info("Starting Patient Journey Scheduler",
                database=settings.database_url.split("://")[0],
                delivery_mode=settings.delivery_mode)

    database = container.database()
    resume_worker = container.resume_worker()
    recovery_sweeper = container.recovery_sweeper()

    await database.startup()
    if settings.recovery_enabled:
        await recovery_sweeper.start()
    if settings.worker_enabled:
        resume_worker.start(settings.worker_interval_ms)

    yield

    # stop producers of work before closing the store
    resume_worker.stop()
    await resume_worker.wait_idle()
    await recovery_sweeper.stop()
    shutdown_scheduler(container.scheduler())
    await container.journey_service().drain()
    await database.shutdown()
    logger.info("Patient Journey Scheduler stopped")


app = FastAPI(
    title="Patient Journey Scheduler API",
    version="1.0.0",
    description="Executes branching, time-delayed patient journeys",
    lifespan=lifespan,
)


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    """Turn unhandled errors into a JSON 500 instead of a dropped connection."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error("Unhandled exception",
                         path=request.url.path,
                         error=f"{type(e).__name__}: {e}",
                         exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"detail": "Internal server error"}
            )


app.add_middleware(CatchAllExceptionsMiddleware)
app.include_router(journey.router)


@app.get("/health")
async def health_check():
    """Liveness plus the state of this process's background machinery."""
    return {
        "status": "OK",
        "service": "journey-scheduler",
        "version": "1.0.0",
        "resume_worker": container.resume_worker().is_running,
        "recovery_sweeper": container.recovery_sweeper().is_running,
        "scheduled_jobs": list_jobs(container.scheduler()),
        "pending_continuations": container.journey_service().pending_continuations,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "journey_scheduler.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
