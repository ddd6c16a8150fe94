"""
Daily Record Generator - pre-creates today's attendance records.

One ``scheduled`` record per continuous block, for every student holding an
active seat assignment. Re-running for the same day creates nothing.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.config import BATCH_OPERATION_LIMIT
from studyroom.core.time_service import day_of_week
from studyroom.attendance.crud.attendance_records import get_students_with_records
from studyroom.attendance.crud.seat_assignments import (
    get_tenants_with_active_assignments,
    list_active_assignments_with_names,
)
from studyroom.attendance.models.records import AttendanceRecord, AttendanceStatus
from studyroom.attendance.models.seat_assignments import SeatAssignment
from studyroom.attendance.models.timetables import StudentTimetable
from studyroom.attendance.schemas.timetables import DaySchedule
from studyroom.attendance.services.block_grouper import (
    group_slots_by_external_break,
    sort_slots,
)
from studyroom.attendance.services.tenant_jobs import TenantJob, TenantOutcome

logger = logging.getLogger(__name__)


def build_day_records(
    assignment: SeatAssignment,
    student_name: str,
    daily_schedules: Optional[Dict[str, Any]],
    day: date,
) -> Tuple[List[AttendanceRecord], Optional[str]]:
    """
    Records for one student and day from a weekly schedule.

    Returns (records, skip_reason); skip_reason is None when records were built.
    """
    day_name = day_of_week(day)
    entry = (daily_schedules or {}).get(day_name)
    if not entry:
        return [], "no_schedule_today"

    try:
        day_schedule = DaySchedule.model_validate(entry)
    except PydanticValidationError:
        return [], "malformed_schedule"

    if not day_schedule.is_active:
        return [], "day_inactive"

    slots = sort_slots(slot.model_dump() for slot in day_schedule.time_slots)
    blocks = group_slots_by_external_break(slots)
    if not blocks:
        return [], "no_obligation"

    records = []
    for index, block in enumerate(blocks, start=1):
        records.append(
            AttendanceRecord(
                tenant_id=assignment.tenant_id,
                student_id=assignment.student_id,
                student_name=student_name or "",
                seat_layout_id=assignment.seat_layout_id,
                seat_id=assignment.seat_id,
                seat_number=assignment.seat_number,
                timetable_id=assignment.timetable_id,
                date=day,
                day_of_week=day_name,
                expected_arrival_time=block.start_time,
                expected_departure_time=block.end_time,
                subjects=block.subjects,
                status=AttendanceStatus.scheduled.value,
                is_late=False,
                is_early_leave=False,
                session_number=index,
                is_latest_session=index == len(blocks),
            )
        )
    return records, None


class DailyRecordGenerator(TenantJob):
    job_name = "generate_daily_records"
    batch_size = BATCH_OPERATION_LIMIT

    async def list_tenants(self, session: AsyncSession, now: datetime) -> List[int]:
        return await get_tenants_with_active_assignments(session)

    async def _load_timetables(
        self, session: AsyncSession, tenant_id: int, timetable_ids: set
    ) -> Dict[int, StudentTimetable]:
        if not timetable_ids:
            return {}
        result = await session.execute(
            select(StudentTimetable).where(
                and_(
                    StudentTimetable.tenant_id == tenant_id,
                    StudentTimetable.id.in_(timetable_ids),
                )
            )
        )
        return {timetable.id: timetable for timetable in result.scalars().all()}

    async def _flush(self, session: AsyncSession, batch: List[AttendanceRecord]) -> int:
        if not batch:
            return 0
        session.add_all(batch)
        await session.commit()
        return len(batch)

    async def process_tenant(
        self, session: AsyncSession, tenant_id: int, now: datetime
    ) -> TenantOutcome:
        day = now.date()
        outcome = TenantOutcome()

        assignments = await list_active_assignments_with_names(session, tenant_id)
        generated = await get_students_with_records(session, tenant_id, day)
        timetables = await self._load_timetables(
            session,
            tenant_id,
            {a.timetable_id for a, _ in assignments if a.timetable_id is not None},
        )

        batch: List[AttendanceRecord] = []
        for assignment, student_name in assignments:
            if assignment.student_id in generated:
                outcome.skipped += 1
                continue

            reason = None
            timetable = None
            if assignment.timetable_id is None:
                reason = "no_timetable"
            else:
                timetable = timetables.get(assignment.timetable_id)
                if timetable is None:
                    reason = "timetable_missing"
                elif not timetable.is_active:
                    reason = "timetable_inactive"

            records = []
            if reason is None:
                records, reason = build_day_records(
                    assignment, student_name, timetable.daily_schedules, day
                )

            if reason:
                outcome.skipped += 1
                logger.info(
                    f"Skipped record generation for student {assignment.student_id}: {reason}",
                    extra={
                        "tenant_id": tenant_id,
                        "student_id": assignment.student_id,
                        "assignment_id": assignment.id,
                        "reason": reason,
                    },
                )
                continue

            # a student's records never straddle two batches
            if len(batch) + len(records) > self.batch_size:
                outcome.created += await self._flush(session, batch)
                batch = []
            batch.extend(records)
            generated.add(assignment.student_id)

        outcome.created += await self._flush(session, batch)
        return outcome
