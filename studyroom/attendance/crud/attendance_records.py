"""Attendance Record CRUD - queries and compare-and-set status writes"""
import math
from datetime import date
from typing import Iterable, List, Optional, Set, Tuple
from sqlalchemy import and_, func, update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.database import db_operation
from studyroom.core.exceptions import InvalidTransitionError, NotFoundError
from studyroom.core.logging_utils import log_business_event
from studyroom.core.time_service import CivilClock, clock as default_clock
from studyroom.attendance.models.records import AttendanceRecord, AttendanceStatus
from studyroom.attendance.services.lifecycle import (
    AttendanceEvent,
    AttendanceState,
    Transition,
    transition,
)


@db_operation
async def get_record(
    session: AsyncSession, tenant_id: int, record_id: int
) -> AttendanceRecord:
    result = await session.execute(
        select(AttendanceRecord).where(
            and_(
                AttendanceRecord.id == record_id,
                AttendanceRecord.tenant_id == tenant_id,
            )
        )
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    if not record:
        raise NotFoundError("Attendance record", str(record_id))
    return record


@db_operation
async def get_student_records_for_date(
    session: AsyncSession, tenant_id: int, student_id: int, day: date
) -> List[AttendanceRecord]:
    """All sessions of one student on one civil day, by session number"""
    result = await session.execute(
        select(AttendanceRecord)
        .where(
            and_(
                AttendanceRecord.tenant_id == tenant_id,
                AttendanceRecord.student_id == student_id,
                AttendanceRecord.date == day,
            )
        )
        .order_by(AttendanceRecord.session_number)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


@db_operation
async def get_students_with_records(
    session: AsyncSession, tenant_id: int, day: date
) -> Set[int]:
    result = await session.execute(
        select(AttendanceRecord.student_id)
        .where(
            and_(
                AttendanceRecord.tenant_id == tenant_id,
                AttendanceRecord.date == day,
            )
        )
        .distinct()
    )
    return set(result.scalars().all())


@db_operation
async def get_tenants_with_status(
    session: AsyncSession,
    status: AttendanceStatus,
    days: Iterable[date],
    arrival_times: Optional[List[str]] = None,
) -> List[int]:
    """Tenants owning at least one record in ``status`` on the given days"""
    conditions = [
        AttendanceRecord.status == status.value,
        AttendanceRecord.date.in_(list(days)),
    ]
    if arrival_times is not None:
        conditions.append(AttendanceRecord.expected_arrival_time.in_(arrival_times))

    result = await session.execute(
        select(AttendanceRecord.tenant_id)
        .where(and_(*conditions))
        .distinct()
        .order_by(AttendanceRecord.tenant_id)
    )
    return list(result.scalars().all())


@db_operation
async def get_records_with_status(
    session: AsyncSession,
    tenant_id: int,
    status: AttendanceStatus,
    days: Iterable[date],
    arrival_times: Optional[List[str]] = None,
) -> List[AttendanceRecord]:
    conditions = [
        AttendanceRecord.tenant_id == tenant_id,
        AttendanceRecord.status == status.value,
        AttendanceRecord.date.in_(list(days)),
    ]
    if arrival_times is not None:
        conditions.append(AttendanceRecord.expected_arrival_time.in_(arrival_times))

    result = await session.execute(
        select(AttendanceRecord)
        .where(and_(*conditions))
        .order_by(AttendanceRecord.id)
    )
    return list(result.scalars().all())


@db_operation
async def list_records_for_layout(
    session: AsyncSession, tenant_id: int, seat_layout_id: int, day: date
) -> List[AttendanceRecord]:
    result = await session.execute(
        select(AttendanceRecord)
        .where(
            and_(
                AttendanceRecord.tenant_id == tenant_id,
                AttendanceRecord.seat_layout_id == seat_layout_id,
                AttendanceRecord.date == day,
            )
        )
        .order_by(
            AttendanceRecord.seat_id,
            AttendanceRecord.student_id,
            AttendanceRecord.session_number,
        )
    )
    return list(result.scalars().all())


@db_operation
async def list_records_for_student(
    session: AsyncSession,
    tenant_id: int,
    student_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = 1,
    size: int = 50,
) -> Tuple[List[AttendanceRecord], int, int]:
    """Returns (records, total, pages)"""
    base_query = select(AttendanceRecord).where(
        and_(
            AttendanceRecord.tenant_id == tenant_id,
            AttendanceRecord.student_id == student_id,
        )
    )
    if date_from:
        base_query = base_query.where(AttendanceRecord.date >= date_from)
    if date_to:
        base_query = base_query.where(AttendanceRecord.date <= date_to)

    count_query = select(func.count()).select_from(base_query.subquery())
    total = (await session.execute(count_query)).scalar() or 0

    query = (
        base_query.order_by(
            AttendanceRecord.date.desc(), AttendanceRecord.session_number
        )
        .offset((page - 1) * size)
        .limit(size)
    )
    result = await session.execute(query)
    pages = math.ceil(total / size) if total > 0 else 1
    return list(result.scalars().all()), total, pages


async def persist_transition(
    session: AsyncSession, record: AttendanceRecord, change: Transition
) -> bool:
    """
    Write a transition only if the record still has its source status.

    Returns False when another writer changed the record first. Does not
    commit.
    """
    result = await session.execute(
        update(AttendanceRecord)
        .where(
            and_(
                AttendanceRecord.id == record.id,
                AttendanceRecord.status == change.source.value,
            )
        )
        .values(**change.changes)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False

    await session.refresh(record)
    return True


@db_operation
async def apply_admin_event(
    session: AsyncSession,
    tenant_id: int,
    record_id: int,
    event: AttendanceEvent,
    clock: CivilClock = default_clock,
) -> AttendanceRecord:
    """Excuse / override a single record on behalf of an administrator"""
    record = await get_record(session, tenant_id, record_id)
    change = transition(AttendanceState.of(record), event, clock)

    if not await persist_transition(session, record, change):
        await session.rollback()
        await session.refresh(record)
        raise InvalidTransitionError(record.status, type(event).__name__)

    await session.commit()
    await session.refresh(record)

    log_business_event(
        "record_status_changed",
        "attendance_record",
        record.id,
        {
            "from": change.source.value,
            "to": change.status.value,
            "event": type(event).__name__,
            "by": getattr(event, "by", None),
        },
        tenant_id=tenant_id,
    )
    return record
