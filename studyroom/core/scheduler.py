"""
Cron wiring of the attendance jobs.

All cron expressions are evaluated in the civil timezone. Every run has a
fixed time budget; a run that exceeds it is cancelled. Every job is
idempotent, so a cancelled or failed run is repaired by the next tick.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Type

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker

from studyroom.core.config import (
    CIVIL_TIMEZONE,
    GENERATION_CRON,
    GENERATION_TIMEOUT,
    GRACE_PERIOD_CRON,
    GRACE_PERIOD_TIMEOUT,
    START_TIME_CRON,
    START_TIME_TIMEOUT,
)
from studyroom.core.exceptions import JobTimeoutError, NotFoundError
from studyroom.core.logging_utils import error_tracker
from studyroom.core.time_service import CivilClock
from studyroom.attendance.schemas.jobs import JobRunResult
from studyroom.attendance.services.grace_period_finalizer import GracePeriodFinalizer
from studyroom.attendance.services.record_generator import DailyRecordGenerator
from studyroom.attendance.services.start_time_transitioner import StartTimeTransitioner
from studyroom.attendance.services.tenant_jobs import TenantJob

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobDefinition:
    job_class: Type[TenantJob]
    cron: str
    timeout: int


JOBS: Dict[str, JobDefinition] = {
    DailyRecordGenerator.job_name: JobDefinition(
        DailyRecordGenerator, GENERATION_CRON, GENERATION_TIMEOUT
    ),
    StartTimeTransitioner.job_name: JobDefinition(
        StartTimeTransitioner, START_TIME_CRON, START_TIME_TIMEOUT
    ),
    GracePeriodFinalizer.job_name: JobDefinition(
        GracePeriodFinalizer, GRACE_PERIOD_CRON, GRACE_PERIOD_TIMEOUT
    ),
}


async def run_job(
    name: str,
    now: Optional[datetime] = None,
    session_factory: Optional[async_sessionmaker] = None,
    clock: Optional[CivilClock] = None,
) -> JobRunResult:
    """
    Run one job under its time budget.

    Raises:
        NotFoundError: unknown job name
        JobTimeoutError: the run was cancelled at its budget
    """
    definition = JOBS.get(name)
    if definition is None:
        raise NotFoundError("Job", name)

    job = definition.job_class(session_factory=session_factory, clock=clock)
    try:
        return await asyncio.wait_for(job.run(now), timeout=definition.timeout)
    except asyncio.TimeoutError:
        logger.error(
            f"Job {name} cancelled after {definition.timeout}s",
            extra={"job": name, "timeout": definition.timeout},
        )
        error_tracker.track_error("JOB_TIMEOUT", name, {"timeout": definition.timeout})
        raise JobTimeoutError(name, definition.timeout)


async def _scheduled_run(name: str):
    """Scheduler entry point; a failed run must not kill the scheduler"""
    try:
        result = await run_job(name)
        logger.info(
            f"Scheduled job {name} finished",
            extra={
                "job": name,
                "tenants_processed": result.tenants_processed,
                "tenants_failed": result.tenants_failed,
            },
        )
    except Exception as e:
        logger.error(f"Scheduled job {name} failed: {str(e)}", extra={"job": name})
        error_tracker.track_error("JOB_FAILED", str(e), {"job": name})


def create_scheduler(timezone: str = CIVIL_TIMEZONE) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(
        timezone=timezone,
        job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 300},
    )
    for name, definition in JOBS.items():
        scheduler.add_job(
            _scheduled_run,
            CronTrigger.from_crontab(definition.cron, timezone=timezone),
            args=[name],
            id=name,
            name=name,
            replace_existing=True,
        )
        logger.info(f"Scheduled {name} with cron '{definition.cron}' ({timezone})")
    return scheduler
