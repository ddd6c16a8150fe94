import copy

from studyroom.core.logging_utils import error_tracker
from studyroom.attendance.crud.seat_assignments import create_assignment, release_assignment
from studyroom.attendance.crud.timetables import replace_timetable
from studyroom.attendance.schemas.seat_assignments import SeatAssignmentCreate
from studyroom.attendance.schemas.timetables import TimetableWrite
from studyroom.attendance.services import schedule_propagator
from studyroom.attendance.services.schedule_propagator import on_timetable_updated

from conftest import TWO_BLOCK_SCHEDULE, seed_student

NEW_SCHEDULE = {
    "monday": {
        "is_active": True,
        "time_slots": [
            {"start_time": "10:00", "end_time": "13:00", "subject": "Science", "type": "class"},
        ],
    }
}


def write(student_id, schedules):
    return TimetableWrite(student_id=student_id, name="Default", daily_schedules=schedules)


async def test_replacing_a_schedule_refreshes_only_its_active_assignments(session, clock):
    student, timetable, assignment = await seed_student(session)
    # a second, released assignment on the same timetable
    released = await create_assignment(
        session,
        1,
        SeatAssignmentCreate(
            student_id=student.id, seat_layout_id=20, seat_id="B1", timetable_id=timetable.id
        ),
    )
    await release_assignment(session, 1, released.id, clock.now())
    other, other_timetable, other_assignment = await seed_student(
        session, name="Jisoo", seat_id="A2"
    )

    _, changed, refreshed = await replace_timetable(
        session, 1, timetable.id, write(student.id, NEW_SCHEDULE)
    )

    assert changed is True
    assert refreshed == 1
    for item in (assignment, released, other_assignment):
        await session.refresh(item)
    assert assignment.expected_schedule == NEW_SCHEDULE
    assert released.expected_schedule == TWO_BLOCK_SCHEDULE
    assert other_assignment.expected_schedule == TWO_BLOCK_SCHEDULE


async def test_unchanged_schedule_is_a_no_op(session):
    student, timetable, assignment = await seed_student(session)
    reordered = {
        "monday": {
            "time_slots": copy.deepcopy(TWO_BLOCK_SCHEDULE["monday"]["time_slots"]),
            "is_active": True,
        }
    }

    refreshed = await on_timetable_updated(
        session, 1, timetable.id, TWO_BLOCK_SCHEDULE, reordered
    )

    assert refreshed == 0


async def test_propagation_failure_is_tracked_not_raised(session, monkeypatch):
    student, timetable, assignment = await seed_student(session)

    async def broken(*args, **kwargs):
        raise RuntimeError("write failed")

    monkeypatch.setattr(schedule_propagator, "overwrite_cached_schedules", broken)

    refreshed = await on_timetable_updated(
        session, 1, timetable.id, TWO_BLOCK_SCHEDULE, NEW_SCHEDULE
    )

    assert refreshed == 0
    assert error_tracker.error_counts["SCHEDULE_PROPAGATION_FAILED"] == 1
    await session.refresh(assignment)
    assert assignment.expected_schedule == TWO_BLOCK_SCHEDULE


async def test_new_assignment_caches_the_current_schedule(session):
    student, timetable, _ = await seed_student(session)

    assignment = await create_assignment(
        session,
        1,
        SeatAssignmentCreate(
            student_id=student.id, seat_layout_id=30, seat_id="C1", timetable_id=timetable.id
        ),
    )

    assert assignment.expected_schedule == timetable.daily_schedules
    assert assignment.status == "active"
