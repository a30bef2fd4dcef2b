"""
Timer jobs on APScheduler's asyncio scheduler.

The container owns one ``AsyncIOScheduler`` per process; the resume worker
registers its polling tick here as a fixed-interval job.
"""
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.base import JobLookupError
from typing import Callable, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    return AsyncIOScheduler(timezone="UTC")


def start_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Start ``scheduler`` on the running event loop unless already started."""
    if scheduler.running:
        return
    scheduler.start()
    logger.info("[Scheduler] Started")


def shutdown_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Stop ``scheduler`` without waiting for in-flight ticks."""
    if not scheduler.running:
        return
    scheduler.shutdown(wait=False)
    logger.info("[Scheduler] Shutdown")


def register_interval_job(
    scheduler: AsyncIOScheduler,
    job_id: str,
    interval_ms: int,
    callback: Callable,
    **kwargs
) -> str:
    """
    Run ``callback`` every ``interval_ms`` milliseconds.

    Registering an existing ``job_id`` replaces it. At most one instance of
    the job runs at a time; ticks missed while one is running collapse into
    a single late run.

    Args:
        scheduler: Owning scheduler
        job_id: Unique identifier for the job
        interval_ms: Period between ticks
        callback: Coroutine function invoked on each tick
        **kwargs: Keyword arguments passed to the callback

    Returns:
        The job_id
    """
    scheduler.add_job(
        callback,
        trigger=IntervalTrigger(seconds=interval_ms / 1000.0, timezone="UTC"),
        id=job_id,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        kwargs=kwargs
    )

    logger.info(f"[Scheduler] Registered interval job: {job_id} every {interval_ms}ms")
    return job_id


def remove_job(scheduler: AsyncIOScheduler, job_id: str) -> bool:
    """Remove ``job_id``; False if it was not scheduled."""
    try:
        scheduler.remove_job(job_id)
    except JobLookupError:
        logger.warning(f"[Scheduler] Job not found: {job_id}")
        return False
    logger.info(f"[Scheduler] Removed job: {job_id}")
    return True


def _describe(job: Job) -> Dict:
    return {
        "id": job.id,
        "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        "trigger": str(job.trigger),
    }


def get_job_info(scheduler: AsyncIOScheduler, job_id: str) -> Optional[Dict]:
    """Describe a scheduled job, or None if it is not scheduled."""
    job = scheduler.get_job(job_id)
    return _describe(job) if job else None


def list_jobs(scheduler: AsyncIOScheduler) -> List[Dict]:
    return [_describe(job) for job in scheduler.get_jobs()]
