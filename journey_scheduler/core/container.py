"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from journey_scheduler.core.config import Settings
from journey_scheduler.core.database import Database
from journey_scheduler.services.delivery import create_delivery
from journey_scheduler.services.execution import (
    JourneyEngine,
    NodeInterpreter,
    RecoverySweeper,
    ResumeWorker,
)
from journey_scheduler.services.journey import JourneyService
from journey_scheduler.services.scheduler import create_scheduler


class Container(containers.DeclarativeContainer):
    """Application dependency injection container.

    Composition root: owns the single scheduler, worker and sweeper
    instances of this process.
    """

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Run store
    database = providers.Singleton(
        Database,
        settings=settings
    )

    scheduler = providers.Singleton(
        create_scheduler,
    )

    delivery = providers.Singleton(
        create_delivery,
        settings=settings
    )

    interpreter = providers.Singleton(
        NodeInterpreter,
        strict_operators=settings.provided.strict_operators
    )

    engine = providers.Singleton(
        JourneyEngine,
        database=database,
        delivery=delivery,
        interpreter=interpreter,
        max_steps=settings.provided.max_steps_per_advance
    )

    journey_service = providers.Singleton(
        JourneyService,
        database=database,
        engine=engine
    )

    resume_worker = providers.Singleton(
        ResumeWorker,
        database=database,
        engine=engine,
        scheduler=scheduler,
        batch_size=settings.provided.worker_batch_size
    )

    recovery_sweeper = providers.Singleton(
        RecoverySweeper,
        database=database,
        timeout_minutes=settings.provided.recovery_timeout_minutes,
        sweep_interval=settings.provided.recovery_interval_seconds
    )


# Global container instance
container = Container()
