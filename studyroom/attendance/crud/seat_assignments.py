"""Seat Assignment CRUD - the only place the schedule cache gets seeded"""
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.database import db_operation
from studyroom.core.exceptions import BusinessLogicError, DuplicateError, NotFoundError
from studyroom.core.logging_utils import log_business_event
from studyroom.core.time_service import as_utc
from studyroom.attendance.crud.students import get_student
from studyroom.attendance.crud.timetables import get_timetable
from studyroom.attendance.models.seat_assignments import AssignmentStatus, SeatAssignment
from studyroom.attendance.models.students import Student
from studyroom.attendance.schemas.seat_assignments import SeatAssignmentCreate
from studyroom.attendance.services.schedule_cache import seed_assignment


@db_operation
async def get_assignment(
    session: AsyncSession, tenant_id: int, assignment_id: int
) -> SeatAssignment:
    result = await session.execute(
        select(SeatAssignment).where(
            and_(
                SeatAssignment.id == assignment_id,
                SeatAssignment.tenant_id == tenant_id,
            )
        )
    )
    assignment = result.scalar_one_or_none()
    if not assignment:
        raise NotFoundError("Seat assignment", str(assignment_id))
    return assignment


@db_operation
async def get_active_assignment(
    session: AsyncSession, tenant_id: int, student_id: int, seat_layout_id: int
) -> Optional[SeatAssignment]:
    result = await session.execute(
        select(SeatAssignment)
        .where(
            and_(
                SeatAssignment.tenant_id == tenant_id,
                SeatAssignment.student_id == student_id,
                SeatAssignment.seat_layout_id == seat_layout_id,
                SeatAssignment.status == AssignmentStatus.active.value,
            )
        )
        .order_by(SeatAssignment.id)
    )
    return result.scalars().first()


@db_operation
async def list_active_assignments_with_names(
    session: AsyncSession, tenant_id: int
) -> List[Tuple[SeatAssignment, str]]:
    result = await session.execute(
        select(SeatAssignment, Student.name)
        .join(Student, Student.id == SeatAssignment.student_id)
        .where(
            and_(
                SeatAssignment.tenant_id == tenant_id,
                SeatAssignment.status == AssignmentStatus.active.value,
            )
        )
        .order_by(SeatAssignment.id)
    )
    return [(assignment, name) for assignment, name in result.all()]


@db_operation
async def get_tenants_with_active_assignments(session: AsyncSession) -> List[int]:
    result = await session.execute(
        select(SeatAssignment.tenant_id)
        .where(SeatAssignment.status == AssignmentStatus.active.value)
        .distinct()
        .order_by(SeatAssignment.tenant_id)
    )
    return list(result.scalars().all())


@db_operation
async def create_assignment(
    session: AsyncSession, tenant_id: int, data: SeatAssignmentCreate
) -> SeatAssignment:
    await get_student(session, tenant_id, data.student_id)

    daily_schedules = None
    if data.timetable_id is not None:
        timetable = await get_timetable(session, tenant_id, data.timetable_id)
        if timetable.student_id != data.student_id:
            raise BusinessLogicError("Timetable belongs to another student")
        daily_schedules = timetable.daily_schedules

    occupied = await session.execute(
        select(SeatAssignment.id).where(
            and_(
                SeatAssignment.tenant_id == tenant_id,
                SeatAssignment.seat_layout_id == data.seat_layout_id,
                SeatAssignment.seat_id == data.seat_id,
                SeatAssignment.status == AssignmentStatus.active.value,
            )
        )
    )
    if occupied.first():
        raise DuplicateError("Seat assignment", "seat_id", data.seat_id)

    if await get_active_assignment(session, tenant_id, data.student_id, data.seat_layout_id):
        raise DuplicateError("Seat assignment", "student_id", str(data.student_id))

    assignment = SeatAssignment(
        tenant_id=tenant_id,
        student_id=data.student_id,
        seat_layout_id=data.seat_layout_id,
        seat_id=data.seat_id,
        seat_number=data.seat_number,
        timetable_id=data.timetable_id,
        status=AssignmentStatus.active.value,
    )
    seed_assignment(assignment, daily_schedules)

    session.add(assignment)
    await session.commit()
    await session.refresh(assignment)

    log_business_event(
        "seat_assigned", "seat_assignment", assignment.id,
        {"student_id": data.student_id, "seat_id": data.seat_id},
        tenant_id=tenant_id,
    )
    return assignment


@db_operation
async def release_assignment(
    session: AsyncSession, tenant_id: int, assignment_id: int, now: datetime
) -> SeatAssignment:
    assignment = await get_assignment(session, tenant_id, assignment_id)
    if not assignment.is_active:
        raise BusinessLogicError("Seat assignment is already released")

    assignment.status = AssignmentStatus.released.value
    assignment.released_at = as_utc(now)
    await session.commit()
    await session.refresh(assignment)

    log_business_event(
        "seat_released", "seat_assignment", assignment.id,
        {"student_id": assignment.student_id}, tenant_id=tenant_id,
    )
    return assignment
