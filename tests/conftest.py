import os

# Must be set before any studyroom module reads its configuration
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"
os.environ["CIVIL_TIMEZONE"] = "Asia/Seoul"

from datetime import date, datetime, timezone

import jwt
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from studyroom.core.limits import limiter
from studyroom.core.logging_utils import error_tracker
from studyroom.core.time_service import CivilClock
from studyroom.attendance.models import (
    AssignmentStatus,
    AttendanceRecord,
    AttendanceStatus,
    Base,
    SeatAssignment,
    Student,
    StudentTimetable,
    Tenant,
)
from studyroom.attendance.services.schedule_cache import seed_assignment

# 2026-03-02 is a Monday
MONDAY = date(2026, 3, 2)

TWO_BLOCK_SCHEDULE = {
    "monday": {
        "is_active": True,
        "time_slots": [
            {"start_time": "09:00", "end_time": "12:00", "subject": "Math", "type": "class"},
            {"start_time": "12:00", "end_time": "14:00", "subject": "Lunch", "type": "external"},
            {"start_time": "14:00", "end_time": "18:00", "subject": "Study", "type": "self_study"},
        ],
    }
}


class FixedClock(CivilClock):
    """Civil clock whose current instant is set by the test"""

    def __init__(self, moment: datetime = None):
        super().__init__("Asia/Seoul", source=lambda: self.current)
        self.current = moment or datetime(2026, 3, 1, 17, 0, tzinfo=timezone.utc)

    def set(self, day: date, time_string: str) -> datetime:
        self.current = self.combine(day, time_string)
        return self.current


def at(day: date, time_string: str) -> datetime:
    """Civil (Asia/Seoul) instant"""
    return CivilClock("Asia/Seoul").combine(day, time_string)


@pytest.fixture(autouse=True)
def _isolation():
    limiter.enabled = False
    error_tracker.reset_stats()
    yield
    error_tracker.reset_stats()


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock()


def admin_token(tenant_id: int = 1, role: str = "admin", sub: str = "admin-1") -> str:
    return jwt.encode(
        {"sub": sub, "tenant_id": tenant_id, "role": role, "type": "access_token"},
        "test-secret",
        algorithm="HS256",
    )


async def ensure_tenant(session: AsyncSession, tenant_id: int) -> Tenant:
    tenant = await session.get(Tenant, tenant_id)
    if tenant is None:
        tenant = Tenant(id=tenant_id, name=f"Tenant {tenant_id}")
        session.add(tenant)
        await session.commit()
    return tenant


async def seed_student(
    session: AsyncSession,
    tenant_id: int = 1,
    name: str = "Minji",
    schedule: dict = None,
    seat_layout_id: int = 10,
    seat_id: str = "A1",
    with_timetable: bool = True,
    assignment_status: str = AssignmentStatus.active.value,
):
    """Tenant + student + timetable + seat assignment; returns (student, timetable, assignment)"""
    await ensure_tenant(session, tenant_id)

    student = Student(tenant_id=tenant_id, name=name)
    session.add(student)
    await session.flush()

    timetable = None
    if with_timetable:
        timetable = StudentTimetable(
            tenant_id=tenant_id,
            student_id=student.id,
            name="Default",
            daily_schedules=schedule if schedule is not None else TWO_BLOCK_SCHEDULE,
        )
        session.add(timetable)
        await session.flush()

    assignment = SeatAssignment(
        tenant_id=tenant_id,
        student_id=student.id,
        seat_layout_id=seat_layout_id,
        seat_id=seat_id,
        seat_number=seat_id,
        timetable_id=timetable.id if timetable else None,
        status=assignment_status,
    )
    seed_assignment(assignment, timetable.daily_schedules if timetable else None)
    session.add(assignment)
    await session.commit()
    return student, timetable, assignment


async def add_record(
    session: AsyncSession,
    student: Student,
    day: date = MONDAY,
    arrival: str = "09:00",
    departure: str = "12:00",
    status: AttendanceStatus = AttendanceStatus.scheduled,
    session_number: int = 1,
    is_latest_session: bool = True,
    **fields,
) -> AttendanceRecord:
    record = AttendanceRecord(
        tenant_id=student.tenant_id,
        student_id=student.id,
        student_name=student.name,
        seat_layout_id=10,
        seat_id="A1",
        date=day,
        day_of_week="monday",
        expected_arrival_time=arrival,
        expected_departure_time=departure,
        subjects=[],
        status=status.value,
        session_number=session_number,
        is_latest_session=is_latest_session,
        **fields,
    )
    session.add(record)
    await session.commit()
    return record
