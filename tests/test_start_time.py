from datetime import timedelta

from studyroom.core.time_service import as_utc
from studyroom.attendance.models import AttendanceStatus
from studyroom.attendance.services.start_time_transitioner import StartTimeTransitioner

from conftest import MONDAY, add_record, at, seed_student


async def test_only_records_starting_exactly_at_the_tick_move(session, session_factory, clock):
    student, _, _ = await seed_student(session)
    early = await add_record(session, student, arrival="08:30", departure="09:00", session_number=1)
    on_tick = await add_record(session, student, arrival="09:00", departure="12:00", session_number=2)
    later = await add_record(session, student, arrival="09:30", departure="12:00", session_number=3)

    result = await StartTimeTransitioner(session_factory, clock).run(at(MONDAY, "09:00"))

    assert result.updated == 1
    for record in (early, on_tick, later):
        await session.refresh(record)
    assert early.status == "scheduled"
    assert on_tick.status == "not_arrived"
    assert as_utc(on_tick.not_arrived_at) == at(MONDAY, "09:00")
    assert later.status == "scheduled"


async def test_tick_instant_is_truncated_to_the_minute(session, session_factory, clock):
    student, _, _ = await seed_student(session)
    record = await add_record(session, student, arrival="09:30")

    await StartTimeTransitioner(session_factory, clock).run(
        at(MONDAY, "09:30") + timedelta(seconds=2, microseconds=500)
    )

    await session.refresh(record)
    assert record.status == "not_arrived"
    assert as_utc(record.not_arrived_at) == at(MONDAY, "09:30")


async def test_records_already_checked_in_or_from_other_days_are_untouched(
    session, session_factory, clock
):
    student, _, _ = await seed_student(session)
    checked_in = await add_record(
        session, student, status=AttendanceStatus.checked_in, session_number=1
    )
    yesterday = await add_record(
        session, student, day=MONDAY - timedelta(days=1), session_number=1
    )

    result = await StartTimeTransitioner(session_factory, clock).run(at(MONDAY, "09:00"))

    assert result.updated == 0
    assert result.tenants_processed == 0
    await session.refresh(checked_in)
    await session.refresh(yesterday)
    assert checked_in.status == "checked_in"
    assert yesterday.status == "scheduled"


async def test_lookback_catches_off_grid_start_times(session, session_factory, clock):
    student, _, _ = await seed_student(session)
    off_grid = await add_record(session, student, arrival="09:15")

    transitioner = StartTimeTransitioner(session_factory, clock)
    transitioner.lookback_minutes = 30
    result = await transitioner.run(at(MONDAY, "09:30"))

    assert result.updated == 1
    await session.refresh(off_grid)
    assert off_grid.status == "not_arrived"


async def test_each_tenant_is_processed_separately(session, session_factory, clock):
    first, _, _ = await seed_student(session, tenant_id=1)
    second, _, _ = await seed_student(session, tenant_id=2, name="Jisoo")
    await add_record(session, first)
    await add_record(session, second)

    result = await StartTimeTransitioner(session_factory, clock).run(at(MONDAY, "09:00"))

    assert result.tenants_processed == 2
    assert result.updated == 2
