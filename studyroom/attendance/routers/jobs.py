"""Manual job triggers. Every job is idempotent, so re-running is safe."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from studyroom.core.database import async_session
from studyroom.core.dependencies import get_clock, get_current_operator
from studyroom.core.limits import limiter
from studyroom.core.scheduler import run_job
from studyroom.core.time_service import CivilClock
from studyroom.attendance.schemas.jobs import JobName, JobRunResult

router = APIRouter(prefix="/admin/jobs", tags=["Jobs"])


def get_session_factory() -> async_sessionmaker:
    return async_session


@router.post("/{job}/run", response_model=JobRunResult)
@limiter.limit("5/minute")
async def trigger_job(
    request: Request,
    job: JobName,
    operator: dict = Depends(get_current_operator),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    clock: CivilClock = Depends(get_clock),
):
    """
    Run a job now for every tenant.

    Jobs cover all tenants, the same as their scheduled runs, so only
    operators may trigger them.
    """
    return await run_job(job, session_factory=session_factory, clock=clock)
