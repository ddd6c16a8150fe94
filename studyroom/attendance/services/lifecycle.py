"""
Attendance lifecycle.

Every status change of an attendance record goes through ``transition``.
It is pure: it validates the event against the current status and returns
the columns to persist. Callers persist with a compare-and-set on the
source status so a concurrent writer that got there first wins.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional, Union

from studyroom.core.config import GRACE_PERIOD_MINUTES, RESPONSE_WINDOW_MINUTES
from studyroom.core.exceptions import InvalidTransitionError
from studyroom.core.time_service import CivilClock, as_utc, clock as default_clock, parse_time_to_minutes
from studyroom.attendance.models.records import AttendanceStatus, CheckMethod

ABSENCE_BUFFER_MINUTES = RESPONSE_WINDOW_MINUTES + GRACE_PERIOD_MINUTES


@dataclass(frozen=True)
class AttendanceState:
    """The parts of a record the transition rules look at"""

    status: AttendanceStatus
    date: date
    expected_arrival_time: str
    expected_departure_time: str
    not_arrived_at: Optional[datetime] = None

    @classmethod
    def of(cls, record) -> "AttendanceState":
        return cls(
            status=AttendanceStatus(record.status),
            date=record.date,
            expected_arrival_time=record.expected_arrival_time,
            expected_departure_time=record.expected_departure_time,
            not_arrived_at=record.not_arrived_at,
        )


@dataclass(frozen=True)
class StartTimeReached:
    at: datetime


@dataclass(frozen=True)
class GraceDeadlinePassed:
    at: datetime


@dataclass(frozen=True)
class CheckIn:
    at: datetime
    method: CheckMethod = CheckMethod.pin


@dataclass(frozen=True)
class CheckOut:
    at: datetime
    method: CheckMethod = CheckMethod.pin


@dataclass(frozen=True)
class MarkExcused:
    reason: str
    by: str
    note: Optional[str] = None


@dataclass(frozen=True)
class StatusOverride:
    status: AttendanceStatus
    by: str
    note: Optional[str] = None


AttendanceEvent = Union[
    StartTimeReached, GraceDeadlinePassed, CheckIn, CheckOut, MarkExcused, StatusOverride
]


@dataclass
class Transition:
    source: AttendanceStatus
    status: AttendanceStatus
    changes: Dict[str, Any] = field(default_factory=dict)


CHECK_IN_SOURCES = {
    CheckMethod.pin: {AttendanceStatus.scheduled, AttendanceStatus.not_arrived},
    CheckMethod.manual: {
        AttendanceStatus.scheduled,
        AttendanceStatus.not_arrived,
        AttendanceStatus.absent_unexcused,
    },
    CheckMethod.admin: {
        AttendanceStatus.scheduled,
        AttendanceStatus.not_arrived,
        AttendanceStatus.absent_unexcused,
    },
}


def grace_deadline(state: AttendanceState, clock: CivilClock = default_clock) -> datetime:
    """Civil instant of departure + response window + grace"""
    return clock.combine(state.date, state.expected_departure_time) + timedelta(
        minutes=ABSENCE_BUFFER_MINUTES
    )


def is_past_grace_deadline(
    state: AttendanceState, now: datetime, clock: CivilClock = default_clock
) -> bool:
    """Strictly after the grace deadline, at minute resolution"""
    local = clock.localize(now).replace(second=0, microsecond=0)
    return local > grace_deadline(state, clock)


def _minutes_after(at: datetime, day: date, time_string: str, clock: CivilClock) -> int:
    """Whole civil minutes from day+time_string to at (negative when before)"""
    local = clock.localize(at).replace(second=0, microsecond=0)
    return int((local - clock.combine(day, time_string)).total_seconds() // 60)


def _absent_confirmed_at(state: AttendanceState, clock: CivilClock) -> datetime:
    if state.not_arrived_at is not None:
        duration = parse_time_to_minutes(state.expected_departure_time) - parse_time_to_minutes(
            state.expected_arrival_time
        )
        return as_utc(state.not_arrived_at) + timedelta(
            minutes=duration + ABSENCE_BUFFER_MINUTES
        )
    # Record was never stamped by the start-time sweep
    return as_utc(grace_deadline(state, clock))


def transition(
    state: AttendanceState, event: AttendanceEvent, clock: CivilClock = default_clock
) -> Transition:
    """
    Apply one event to a record state.

    Raises:
        InvalidTransitionError: event not allowed in the current status
    """
    status = state.status
    event_name = type(event).__name__

    if isinstance(event, StartTimeReached):
        if status != AttendanceStatus.scheduled:
            raise InvalidTransitionError(status.value, event_name)
        return Transition(
            status,
            AttendanceStatus.not_arrived,
            {
                "status": AttendanceStatus.not_arrived.value,
                "not_arrived_at": as_utc(event.at),
            },
        )

    if isinstance(event, GraceDeadlinePassed):
        if status != AttendanceStatus.not_arrived:
            raise InvalidTransitionError(status.value, event_name)
        return Transition(
            status,
            AttendanceStatus.absent_unexcused,
            {
                "status": AttendanceStatus.absent_unexcused.value,
                "absent_confirmed_at": _absent_confirmed_at(state, clock),
                "absent_marked_at": as_utc(event.at),
            },
        )

    if isinstance(event, CheckIn):
        method = CheckMethod(event.method)
        if status not in CHECK_IN_SOURCES[method]:
            raise InvalidTransitionError(status.value, event_name)
        late_minutes = max(
            0, _minutes_after(event.at, state.date, state.expected_arrival_time, clock)
        )
        return Transition(
            status,
            AttendanceStatus.checked_in,
            {
                "status": AttendanceStatus.checked_in.value,
                "actual_arrival_time": as_utc(event.at),
                "check_in_method": method.value,
                "is_late": late_minutes > 0,
                "late_minutes": late_minutes,
            },
        )

    if isinstance(event, CheckOut):
        if status != AttendanceStatus.checked_in:
            raise InvalidTransitionError(status.value, event_name)
        early_minutes = max(
            0, -_minutes_after(event.at, state.date, state.expected_departure_time, clock)
        )
        return Transition(
            status,
            AttendanceStatus.checked_out,
            {
                "status": AttendanceStatus.checked_out.value,
                "actual_departure_time": as_utc(event.at),
                "check_out_method": CheckMethod(event.method).value,
                "is_early_leave": early_minutes > 0,
                "early_leave_minutes": early_minutes,
            },
        )

    if isinstance(event, MarkExcused):
        return Transition(
            status,
            AttendanceStatus.absent_excused,
            {
                "status": AttendanceStatus.absent_excused.value,
                "excused_reason": event.reason,
                "excused_note": event.note,
                "excused_by": event.by,
            },
        )

    if isinstance(event, StatusOverride):
        changes = {"status": AttendanceStatus(event.status).value}
        if event.note:
            changes["notes"] = event.note
        return Transition(status, AttendanceStatus(event.status), changes)

    raise InvalidTransitionError(status.value, event_name)
