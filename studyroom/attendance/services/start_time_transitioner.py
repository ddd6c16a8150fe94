"""Start-Time Transitioner - scheduled -> not_arrived at the expected arrival tick"""
import logging
from datetime import datetime
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.config import BATCH_OPERATION_LIMIT, START_TIME_LOOKBACK_MINUTES
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
    StartTimeReached,
    transition,
)
from studyroom.attendance.services.tenant_jobs import TenantJob, TenantOutcome

logger = logging.getLogger(__name__)


class StartTimeTransitioner(TenantJob):
    """
    Matches ``expected_arrival_time`` against the tick's clock string.

    With the default look-back of 0 only an exact match moves a record, so
    slot start times are expected on the tick grid (minute 0 or 30).
    """

    job_name = "mark_not_arrived"
    lookback_minutes = START_TIME_LOOKBACK_MINUTES

    def _tick(self, now: datetime) -> datetime:
        return self.clock.localize(now).replace(second=0, microsecond=0)

    def _arrival_times(self, now: datetime) -> List[str]:
        return self.clock.window_clock_strings(self._tick(now), self.lookback_minutes)

    async def list_tenants(self, session: AsyncSession, now: datetime) -> List[int]:
        return await get_tenants_with_status(
            session, AttendanceStatus.scheduled, [now.date()], self._arrival_times(now)
        )

    async def process_tenant(
        self, session: AsyncSession, tenant_id: int, now: datetime
    ) -> TenantOutcome:
        outcome = TenantOutcome()
        tick = self._tick(now)
        records = await get_records_with_status(
            session,
            tenant_id,
            AttendanceStatus.scheduled,
            [tick.date()],
            self._arrival_times(now),
        )

        for batch in chunked(records, BATCH_OPERATION_LIMIT):
            for record in batch:
                change = transition(
                    AttendanceState.of(record), StartTimeReached(at=tick), self.clock
                )
                if await persist_transition(session, record, change):
                    outcome.updated += 1
                else:
                    # checked in between the read and the write
                    outcome.skipped += 1
            await session.commit()

        if outcome.updated:
            log_business_event(
                "records_not_arrived",
                "attendance_record",
                None,
                {"count": outcome.updated, "tick": self.clock.clock_string(tick)},
                tenant_id=tenant_id,
            )
        return outcome
