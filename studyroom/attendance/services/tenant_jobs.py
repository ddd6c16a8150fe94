"""
Shared per-tenant loop of the scheduled jobs.

Each tenant is processed in its own session. A tenant that fails is rolled
back, logged with its id, tracked and skipped; the run carries on with the
next tenant. Only failing to reach the database at all aborts a run.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studyroom.core.database import acquire_session, async_session
from studyroom.core.logging_utils import error_tracker, log_business_event
from studyroom.core.time_service import CivilClock, clock as default_clock
from studyroom.attendance.schemas.jobs import JobRunResult

logger = logging.getLogger(__name__)


@dataclass
class TenantOutcome:
    created: int = 0
    updated: int = 0
    skipped: int = 0


class TenantJob:
    """Base class: subclasses pick the tenants and process one of them"""

    job_name = "tenant_job"

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        clock: Optional[CivilClock] = None,
    ):
        self.session_factory = session_factory or async_session
        self.clock = clock or default_clock

    async def list_tenants(self, session: AsyncSession, now: datetime) -> List[int]:
        raise NotImplementedError

    async def process_tenant(
        self, session: AsyncSession, tenant_id: int, now: datetime
    ) -> TenantOutcome:
        raise NotImplementedError

    async def run(self, now: Optional[datetime] = None) -> JobRunResult:
        now = self.clock.localize(now) if now else self.clock.now()
        result = JobRunResult(
            job=self.job_name,
            date=now.date(),
            clock=self.clock.clock_string(now),
        )

        async with acquire_session(self.session_factory) as session:
            tenant_ids = await self.list_tenants(session, now)

        logger.info(
            f"{self.job_name} started for {len(tenant_ids)} tenant(s)",
            extra={"job": self.job_name, "date": str(result.date), "clock": result.clock},
        )

        for tenant_id in tenant_ids:
            async with self.session_factory() as session:
                try:
                    outcome = await self.process_tenant(session, tenant_id, now)
                except Exception as e:
                    await session.rollback()
                    result.tenants_failed += 1
                    result.failed_tenant_ids.append(tenant_id)
                    logger.error(
                        f"{self.job_name} failed for tenant {tenant_id}: {str(e)}",
                        extra={
                            "job": self.job_name,
                            "tenant_id": tenant_id,
                            "exception_type": type(e).__name__,
                        },
                    )
                    error_tracker.track_error(
                        f"JOB_TENANT_FAILED_{self.job_name}",
                        str(e),
                        {"tenant_id": tenant_id, "date": str(result.date)},
                    )
                    continue

            result.tenants_processed += 1
            result.created += outcome.created
            result.updated += outcome.updated
            result.skipped += outcome.skipped

        log_business_event(
            "job_completed", "job", self.job_name, result.model_dump(mode="json")
        )
        return result
