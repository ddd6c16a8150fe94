"""Grace-Period Finalizer - not_arrived -> absent_unexcused after the deadline"""
import logging
from datetime import datetime, timedelta
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.config import BATCH_OPERATION_LIMIT
from studyroom.core.database import chunked
from studyroom.core.logging_utils import log_business_event
from studyroom.attendance.crud.attendance_records import (
    get_records_with_status,
    get_tenants_with_status,
    persist_transition,
)
from studyroom.attendance.models.records import AttendanceStatus
from studyroom.attendance.services.lifecycle import (
    AttendanceState,
    GraceDeadlinePassed,
    is_past_grace_deadline,
    transition,
)
from studyroom.attendance.services.tenant_jobs import TenantJob, TenantOutcome

logger = logging.getLogger(__name__)


class GracePeriodFinalizer(TenantJob):
    """
    Confirms absences whose departure + response window + grace has passed.

    The previous civil day is included so blocks ending late in the evening
    are still finalized after midnight. Records that are checked in but never
    checked out are left alone.
    """

    job_name = "finalize_absences"

    def _days(self, now: datetime) -> list:
        today = now.date()
        return [today - timedelta(days=1), today]

    async def list_tenants(self, session: AsyncSession, now: datetime) -> List[int]:
        return await get_tenants_with_status(
            session, AttendanceStatus.not_arrived, self._days(now)
        )

    async def process_tenant(
        self, session: AsyncSession, tenant_id: int, now: datetime
    ) -> TenantOutcome:
        outcome = TenantOutcome()
        records = await get_records_with_status(
            session, tenant_id, AttendanceStatus.not_arrived, self._days(now)
        )

        expired = []
        for record in records:
            if is_past_grace_deadline(AttendanceState.of(record), now, self.clock):
                expired.append(record)

        for batch in chunked(expired, BATCH_OPERATION_LIMIT):
            for record in batch:
                change = transition(
                    AttendanceState.of(record), GraceDeadlinePassed(at=now), self.clock
                )
                if await persist_transition(session, record, change):
                    outcome.updated += 1
                else:
                    outcome.skipped += 1
            await session.commit()

        if outcome.updated:
            log_business_event(
                "records_absent_unexcused",
                "attendance_record",
                None,
                {"count": outcome.updated},
                tenant_id=tenant_id,
            )
        return outcome
