"""Student Timetable CRUD. Every schedule write fires the propagator."""
from typing import List, Tuple
from sqlalchemy import and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.database import db_operation
from studyroom.core.exceptions import NotFoundError
from studyroom.core.logging_utils import log_business_event
from studyroom.attendance.crud.students import get_student
from studyroom.attendance.models.timetables import StudentTimetable
from studyroom.attendance.schemas.timetables import TimetableWrite
from studyroom.attendance.services.schedule_cache import snapshot
from studyroom.attendance.services.schedule_propagator import on_timetable_updated


def _schedules_payload(data: TimetableWrite) -> dict:
    return data.model_dump(mode="json", exclude_none=True)["daily_schedules"]


@db_operation
async def get_timetable(
    session: AsyncSession, tenant_id: int, timetable_id: int
) -> StudentTimetable:
    result = await session.execute(
        select(StudentTimetable).where(
            and_(
                StudentTimetable.id == timetable_id,
                StudentTimetable.tenant_id == tenant_id,
            )
        )
    )
    timetable = result.scalar_one_or_none()
    if not timetable:
        raise NotFoundError("Timetable", str(timetable_id))
    return timetable


@db_operation
async def list_student_timetables(
    session: AsyncSession, tenant_id: int, student_id: int
) -> List[StudentTimetable]:
    result = await session.execute(
        select(StudentTimetable)
        .where(
            and_(
                StudentTimetable.tenant_id == tenant_id,
                StudentTimetable.student_id == student_id,
            )
        )
        .order_by(StudentTimetable.id)
    )
    return list(result.scalars().all())


@db_operation
async def create_timetable(
    session: AsyncSession, tenant_id: int, data: TimetableWrite
) -> StudentTimetable:
    await get_student(session, tenant_id, data.student_id)

    timetable = StudentTimetable(
        tenant_id=tenant_id,
        student_id=data.student_id,
        name=data.name,
        is_active=True,
        daily_schedules=_schedules_payload(data),
    )
    session.add(timetable)
    await session.commit()
    await session.refresh(timetable)

    log_business_event(
        "timetable_created", "student_timetable", timetable.id,
        {"student_id": data.student_id}, tenant_id=tenant_id,
    )
    return timetable


@db_operation
async def replace_timetable(
    session: AsyncSession, tenant_id: int, timetable_id: int, data: TimetableWrite
) -> Tuple[StudentTimetable, bool, int]:
    """
    Replace a timetable's weekly schedule.

    Returns:
        (timetable, schedule_changed, assignments_refreshed)
    """
    timetable = await get_timetable(session, tenant_id, timetable_id)
    if timetable.student_id != data.student_id:
        raise NotFoundError("Timetable", f"{timetable_id} for student {data.student_id}")

    before = snapshot(timetable.daily_schedules)
    after = _schedules_payload(data)

    timetable.name = data.name
    timetable.daily_schedules = after
    await session.commit()
    await session.refresh(timetable)

    refreshed = await on_timetable_updated(session, tenant_id, timetable.id, before, after)
    changed = before != after

    log_business_event(
        "timetable_replaced", "student_timetable", timetable.id,
        {"schedule_changed": changed, "assignments_refreshed": refreshed},
        tenant_id=tenant_id,
    )
    return timetable, changed, refreshed
