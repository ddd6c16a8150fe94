from datetime import datetime, timedelta, timezone

import pytest

from studyroom.core.exceptions import InvalidTransitionError
from studyroom.core.time_service import CivilClock
from studyroom.attendance.models.records import AttendanceStatus, CheckMethod
from studyroom.attendance.services.lifecycle import (
    AttendanceState,
    CheckIn,
    CheckOut,
    GraceDeadlinePassed,
    MarkExcused,
    StartTimeReached,
    StatusOverride,
    is_past_grace_deadline,
    transition,
)

from conftest import MONDAY, at

CLOCK = CivilClock("Asia/Seoul")


def state(status, arrival="09:00", departure="12:00", not_arrived_at=None):
    return AttendanceState(
        status=status,
        date=MONDAY,
        expected_arrival_time=arrival,
        expected_departure_time=departure,
        not_arrived_at=not_arrived_at,
    )


def test_check_in_fifteen_minutes_after_arrival_is_late():
    change = transition(
        state(AttendanceStatus.not_arrived), CheckIn(at=at(MONDAY, "09:15")), CLOCK
    )

    assert change.status == AttendanceStatus.checked_in
    assert change.changes["is_late"] is True
    assert change.changes["late_minutes"] == 15
    assert change.changes["check_in_method"] == "pin"


def test_check_out_ten_minutes_before_departure_is_early():
    change = transition(
        state(AttendanceStatus.checked_in, "14:00", "18:00"),
        CheckOut(at=at(MONDAY, "17:50")),
        CLOCK,
    )

    assert change.status == AttendanceStatus.checked_out
    assert change.changes["is_early_leave"] is True
    assert change.changes["early_leave_minutes"] == 10


def test_exact_times_are_neither_late_nor_early():
    check_in = transition(
        state(AttendanceStatus.scheduled), CheckIn(at=at(MONDAY, "09:00")), CLOCK
    )
    check_out = transition(
        state(AttendanceStatus.checked_in), CheckOut(at=at(MONDAY, "12:00")), CLOCK
    )

    assert check_in.changes["is_late"] is False
    assert check_in.changes["late_minutes"] == 0
    assert check_out.changes["is_early_leave"] is False
    assert check_out.changes["early_leave_minutes"] == 0


def test_seconds_inside_the_arrival_minute_are_not_late():
    moment = at(MONDAY, "09:00") + timedelta(seconds=45)
    change = transition(state(AttendanceStatus.scheduled), CheckIn(at=moment), CLOCK)

    assert change.changes["is_late"] is False


def test_instants_are_persisted_in_utc():
    change = transition(
        state(AttendanceStatus.scheduled), StartTimeReached(at=at(MONDAY, "09:00")), CLOCK
    )

    assert change.changes["not_arrived_at"] == datetime(2026, 3, 2, 0, 0, tzinfo=timezone.utc)
    assert change.changes["status"] == "not_arrived"


@pytest.mark.parametrize(
    "status",
    [
        AttendanceStatus.not_arrived,
        AttendanceStatus.checked_in,
        AttendanceStatus.checked_out,
        AttendanceStatus.absent_unexcused,
        AttendanceStatus.absent_excused,
    ],
)
def test_start_time_only_applies_to_scheduled_records(status):
    with pytest.raises(InvalidTransitionError):
        transition(state(status), StartTimeReached(at=at(MONDAY, "09:00")), CLOCK)


def test_grace_finalization_only_applies_to_not_arrived_records():
    with pytest.raises(InvalidTransitionError):
        transition(
            state(AttendanceStatus.checked_in), GraceDeadlinePassed(at=at(MONDAY, "18:40")), CLOCK
        )


def test_pin_check_in_cannot_revive_a_confirmed_absence():
    with pytest.raises(InvalidTransitionError):
        transition(
            state(AttendanceStatus.absent_unexcused), CheckIn(at=at(MONDAY, "13:00")), CLOCK
        )


def test_manual_check_in_can_revive_a_confirmed_absence():
    change = transition(
        state(AttendanceStatus.absent_unexcused),
        CheckIn(at=at(MONDAY, "13:00"), method=CheckMethod.manual),
        CLOCK,
    )

    assert change.status == AttendanceStatus.checked_in
    assert change.changes["check_in_method"] == "manual"


def test_check_out_requires_an_open_session():
    with pytest.raises(InvalidTransitionError):
        transition(state(AttendanceStatus.scheduled), CheckOut(at=at(MONDAY, "12:00")), CLOCK)


@pytest.mark.parametrize("status", list(AttendanceStatus))
def test_excuse_applies_from_any_status(status):
    change = transition(state(status), MarkExcused(reason="sick", by="admin-1", note="flu"), CLOCK)

    assert change.status == AttendanceStatus.absent_excused
    assert change.changes["excused_reason"] == "sick"
    assert change.changes["excused_by"] == "admin-1"


def test_status_override_sets_the_given_status():
    change = transition(
        state(AttendanceStatus.absent_unexcused),
        StatusOverride(status=AttendanceStatus.checked_out, by="admin-1", note="fixed"),
        CLOCK,
    )

    assert change.changes == {"status": "checked_out", "notes": "fixed"}


def test_grace_deadline_is_strictly_after_departure_plus_35_minutes():
    record = state(AttendanceStatus.not_arrived, "09:00", "12:00")

    assert not is_past_grace_deadline(record, at(MONDAY, "12:34"), CLOCK)
    assert not is_past_grace_deadline(record, at(MONDAY, "12:35"), CLOCK)
    assert is_past_grace_deadline(record, at(MONDAY, "12:36"), CLOCK)


def test_absence_confirmation_time_follows_not_arrived_time():
    not_arrived_at = at(MONDAY, "09:00")
    change = transition(
        state(AttendanceStatus.not_arrived, "09:00", "12:00", not_arrived_at),
        GraceDeadlinePassed(at=at(MONDAY, "12:40")),
        CLOCK,
    )

    assert change.changes["absent_confirmed_at"] == at(MONDAY, "12:35")
    assert change.changes["absent_marked_at"] == at(MONDAY, "12:40")


def test_absence_confirmation_falls_back_to_the_deadline():
    change = transition(
        state(AttendanceStatus.not_arrived, "14:00", "18:00"),
        GraceDeadlinePassed(at=at(MONDAY, "18:40")),
        CLOCK,
    )

    assert change.changes["absent_confirmed_at"] == at(MONDAY, "18:35")


def test_grace_deadline_can_fall_on_the_next_civil_day():
    record = state(AttendanceStatus.not_arrived, "21:00", "23:50")
    tuesday = MONDAY + timedelta(days=1)

    assert not is_past_grace_deadline(record, at(tuesday, "00:10"), CLOCK)
    assert not is_past_grace_deadline(record, at(tuesday, "00:25"), CLOCK)
    assert is_past_grace_deadline(record, at(tuesday, "00:26"), CLOCK)
