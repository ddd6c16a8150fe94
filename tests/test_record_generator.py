import warnings

from sqlalchemy import select
from sqlalchemy.exc import SAWarning

from studyroom.attendance.crud.attendance_records import (
    get_students_with_records,
    get_tenants_with_status,
)
from studyroom.attendance.crud.seat_assignments import get_tenants_with_active_assignments
from studyroom.attendance.models import AssignmentStatus, AttendanceRecord, AttendanceStatus
from studyroom.attendance.services.record_generator import DailyRecordGenerator

from conftest import MONDAY, TWO_BLOCK_SCHEDULE, at, seed_student


async def all_records(session):
    result = await session.execute(
        select(AttendanceRecord).order_by(AttendanceRecord.student_id, AttendanceRecord.session_number)
    )
    return list(result.scalars().all())


async def test_one_record_per_block(session, session_factory, clock):
    student, timetable, assignment = await seed_student(session)

    result = await DailyRecordGenerator(session_factory, clock).run(at(MONDAY, "02:00"))

    assert result.created == 2
    assert result.tenants_processed == 1
    records = await all_records(session)
    assert [r.session_number for r in records] == [1, 2]
    assert [r.is_latest_session for r in records] == [False, True]
    assert [(r.expected_arrival_time, r.expected_departure_time) for r in records] == [
        ("09:00", "12:00"),
        ("14:00", "18:00"),
    ]
    assert records[0].subjects == ["Math"]
    assert all(r.status == "scheduled" for r in records)
    assert all(r.student_name == "Minji" for r in records)
    assert all(r.seat_id == "A1" and r.timetable_id == timetable.id for r in records)
    assert records[0].day_of_week == "monday"


async def test_second_run_on_the_same_day_creates_nothing(session, session_factory, clock):
    await seed_student(session)
    generator = DailyRecordGenerator(session_factory, clock)

    await generator.run(at(MONDAY, "02:00"))
    again = await generator.run(at(MONDAY, "02:00"))

    assert again.created == 0
    assert again.skipped == 1
    assert len(await all_records(session)) == 2


async def test_students_without_obligations_are_skipped(session, session_factory, clock):
    await seed_student(session, name="Inactive day", schedule={
        "monday": {"is_active": False, "time_slots": TWO_BLOCK_SCHEDULE["monday"]["time_slots"]}
    }, seat_id="A1")
    await seed_student(session, name="External only", schedule={
        "monday": {"is_active": True, "time_slots": [
            {"start_time": "09:00", "end_time": "18:00", "subject": "Academy", "type": "external"}
        ]}
    }, seat_id="A2")
    await seed_student(session, name="Weekend only", schedule={
        "saturday": TWO_BLOCK_SCHEDULE["monday"]
    }, seat_id="A3")
    await seed_student(session, name="No timetable", with_timetable=False, seat_id="A4")
    await seed_student(session, name="Malformed", schedule={
        "monday": {"is_active": True, "time_slots": [{"start_time": "9:00"}]}
    }, seat_id="A5")

    result = await DailyRecordGenerator(session_factory, clock).run(at(MONDAY, "02:00"))

    assert result.created == 0
    assert result.skipped == 5
    assert result.tenants_failed == 0
    assert await all_records(session) == []


async def test_released_assignments_are_ignored(session, session_factory, clock):
    await seed_student(session, assignment_status=AssignmentStatus.released.value)

    result = await DailyRecordGenerator(session_factory, clock).run(at(MONDAY, "02:00"))

    assert result.tenants_processed == 0
    assert await all_records(session) == []


async def test_failing_tenant_does_not_stop_the_others(session, session_factory, clock):
    await seed_student(session, tenant_id=1)
    await seed_student(session, tenant_id=2, name="Jisoo")

    class BrokenFirstTenant(DailyRecordGenerator):
        async def process_tenant(self, session, tenant_id, now):
            if tenant_id == 1:
                raise RuntimeError("storage hiccup")
            return await super().process_tenant(session, tenant_id, now)

    result = await BrokenFirstTenant(session_factory, clock).run(at(MONDAY, "02:00"))

    assert result.tenants_failed == 1
    assert result.failed_tenant_ids == [1]
    assert result.tenants_processed == 1
    records = await all_records(session)
    assert {r.tenant_id for r in records} == {2}


async def test_batches_never_split_a_student(session, session_factory, clock):
    for seat in ("A1", "A2", "A3"):
        await seed_student(session, name=f"Student {seat}", seat_id=seat)

    generator = DailyRecordGenerator(session_factory, clock)
    generator.batch_size = 3
    flushed = []
    original_flush = generator._flush

    async def recording_flush(session, batch):
        flushed.append(len(batch))
        return await original_flush(session, batch)

    generator._flush = recording_flush
    result = await generator.run(at(MONDAY, "02:00"))

    assert result.created == 6
    assert flushed == [2, 2, 2]


async def test_tenant_and_student_scans_return_each_id_once(session, session_factory, clock):
    first, _, _ = await seed_student(session, seat_id="A1")
    second, _, _ = await seed_student(session, name="Jisoo", seat_id="A2")
    await DailyRecordGenerator(session_factory, clock).run(at(MONDAY, "02:00"))

    with warnings.catch_warnings():
        warnings.simplefilter("error", SAWarning)
        students = await get_students_with_records(session, 1, MONDAY)
        tenants = await get_tenants_with_status(
            session, AttendanceStatus.scheduled, [MONDAY]
        )
        active = await get_tenants_with_active_assignments(session)

    assert students == {first.id, second.id}
    assert tenants == [1]
    assert active == [1]
