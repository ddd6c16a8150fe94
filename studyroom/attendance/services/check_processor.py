"""
Check Processor - turns a PIN entry or an administrator action into a
check-in or check-out on the right attendance record.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.exceptions import (
    AuthenticationError,
    InvalidTransitionError,
    NoApplicableSessionError,
)
from studyroom.core.logging_utils import error_tracker, log_business_event
from studyroom.core.security import verify_pin
from studyroom.core.time_service import CivilClock, clock as default_clock
from studyroom.attendance.crud.attendance_records import (
    get_student_records_for_date,
    persist_transition,
)
from studyroom.attendance.crud.check_links import increment_link_usage, resolve_check_link
from studyroom.attendance.crud.pins import (
    get_pin_for_student,
    list_active_pins,
    record_failed_attempt,
    record_successful_use,
)
from studyroom.attendance.crud.seat_assignments import get_active_assignment
from studyroom.attendance.crud.students import get_student
from studyroom.attendance.models.pins import PinCredential
from studyroom.attendance.models.records import AttendanceRecord, AttendanceStatus, CheckMethod
from studyroom.attendance.models.seat_assignments import SeatAssignment
from studyroom.attendance.services.lifecycle import (
    AttendanceState,
    CheckIn,
    CheckOut,
    transition,
)
from studyroom.attendance.services.record_generator import build_day_records

logger = logging.getLogger(__name__)

# Same text for unknown PIN, wrong PIN and locked PIN
PIN_REJECTED = "PIN verification failed"

ACTION_CHECKED_IN = "checked_in"
ACTION_CHECKED_OUT = "checked_out"


@dataclass
class CheckOutcome:
    action: str
    message: str
    record: AttendanceRecord


def open_session(records: List[AttendanceRecord]) -> Optional[AttendanceRecord]:
    """Checked-in session that takes a check-out, the day's latest first"""
    checked_in = [r for r in records if r.status == AttendanceStatus.checked_in.value]
    if not checked_in:
        return None
    latest = next((r for r in checked_in if r.is_latest_session), None)
    return latest or checked_in[-1]


def select_check_target(
    records: List[AttendanceRecord],
    now: datetime,
    clock: CivilClock = default_clock,
    allow_absent: bool = False,
) -> Optional[AttendanceRecord]:
    """
    Pick the record a check event applies to. Records come in session order.

    The earliest waiting session is checked in once it has started, or right
    away when nothing is open. Until then an open session is checked out.
    """
    waiting_statuses = {AttendanceStatus.scheduled.value, AttendanceStatus.not_arrived.value}
    if allow_absent:
        waiting_statuses.add(AttendanceStatus.absent_unexcused.value)

    waiting = next((r for r in records if r.status in waiting_statuses), None)
    current = open_session(records)

    if waiting is not None:
        started = clock.localize(now) >= clock.combine(
            waiting.date, waiting.expected_arrival_time
        )
        if current is None or started:
            return waiting
    return current


def check_message(name: str, action: str, record: AttendanceRecord) -> str:
    if action == ACTION_CHECKED_IN:
        if record.is_late:
            return f"{name}, check-in complete ({record.late_minutes} min late)"
        return f"{name}, check-in complete"
    if record.is_early_leave:
        return f"{name}, check-out complete ({record.early_leave_minutes} min early)"
    return f"{name}, check-out complete"


class CheckProcessor:
    """Check events for one request, bound to a session"""

    def __init__(self, session: AsyncSession, clock: Optional[CivilClock] = None):
        self.session = session
        self.clock = clock or default_clock

    async def apply_pin_check(
        self,
        link_token: str,
        pin: str,
        student_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> CheckOutcome:
        """
        Verify a PIN entered on a check link and apply the check event.

        Raises:
            NotFoundError: unknown or inactive link
            ValidationError: expired link
            AuthenticationError: PIN rejected (same message for every cause)
            NoApplicableSessionError: no seat or no open session today
        """
        now = self.clock.localize(now) if now else self.clock.now()

        link = await resolve_check_link(self.session, link_token, now)
        credential = await self._authenticate(link.tenant_id, pin, student_id, now)
        await record_successful_use(self.session, credential.id, now)
        await self.session.commit()

        outcome = await self._apply(
            link.tenant_id,
            credential.student_id,
            link.seat_layout_id,
            now,
            CheckMethod.pin,
        )

        await increment_link_usage(self.session, link.id)
        await self.session.commit()
        await self.session.refresh(outcome.record)
        return outcome

    async def manual_check_in(
        self,
        tenant_id: int,
        student_id: int,
        seat_layout_id: int,
        performed_by: str,
        now: Optional[datetime] = None,
    ) -> CheckOutcome:
        """Administrator check-in; may also revive an absent_unexcused session"""
        now = self.clock.localize(now) if now else self.clock.now()
        outcome = await self._apply(
            tenant_id, student_id, seat_layout_id, now, CheckMethod.manual,
            action=ACTION_CHECKED_IN, performed_by=performed_by,
        )
        await self.session.commit()
        await self.session.refresh(outcome.record)
        return outcome

    async def manual_check_out(
        self,
        tenant_id: int,
        student_id: int,
        seat_layout_id: int,
        performed_by: str,
        now: Optional[datetime] = None,
    ) -> CheckOutcome:
        now = self.clock.localize(now) if now else self.clock.now()
        outcome = await self._apply(
            tenant_id, student_id, seat_layout_id, now, CheckMethod.manual,
            action=ACTION_CHECKED_OUT, performed_by=performed_by,
        )
        await self.session.commit()
        await self.session.refresh(outcome.record)
        return outcome

    async def _authenticate(
        self, tenant_id: int, pin: str, student_id: Optional[int], now: datetime
    ) -> PinCredential:
        if student_id is not None:
            credential = await get_pin_for_student(self.session, tenant_id, student_id)
            if not credential or not credential.is_active:
                logger.warning(
                    "PIN check for a student without an active PIN",
                    extra={"tenant_id": tenant_id, "student_id": student_id},
                )
                raise AuthenticationError(PIN_REJECTED)
            candidates = [credential]
        else:
            candidates = await list_active_pins(self.session, tenant_id)

        matched = None
        for candidate in candidates:
            if verify_pin(pin, candidate.pin_hash):
                matched = candidate
                break

        if matched is None:
            if student_id is not None:
                await self._count_failure(tenant_id, candidates[0], now)
            else:
                logger.warning(
                    "PIN matched no active credential",
                    extra={"tenant_id": tenant_id},
                )
                error_tracker.track_error(
                    "PIN_NO_MATCH", "PIN matched no active credential", {"tenant_id": tenant_id}
                )
            raise AuthenticationError(PIN_REJECTED)

        if matched.is_locked:
            logger.warning(
                "PIN check on a locked credential",
                extra={"tenant_id": tenant_id, "student_id": matched.student_id},
            )
            raise AuthenticationError(PIN_REJECTED)

        return matched

    async def _count_failure(self, tenant_id: int, credential: PinCredential, now: datetime):
        already_locked = credential.is_locked
        failed_attempts, is_locked = await record_failed_attempt(
            self.session, credential.id, now
        )
        logger.warning(
            f"PIN mismatch for student {credential.student_id} ({failed_attempts} failed)",
            extra={"tenant_id": tenant_id, "student_id": credential.student_id},
        )
        if is_locked and not already_locked:
            log_business_event(
                "pin_locked",
                "pin_credential",
                credential.id,
                {"student_id": credential.student_id, "failed_attempts": failed_attempts},
                tenant_id=tenant_id,
            )

    async def _records_for_today(
        self, assignment: SeatAssignment, student_name: str, now: datetime
    ) -> List[AttendanceRecord]:
        day = now.date()
        records = await get_student_records_for_date(
            self.session, assignment.tenant_id, assignment.student_id, day
        )
        if records:
            return records

        # Daily generation has not covered this student yet
        generated, reason = build_day_records(
            assignment, student_name, assignment.expected_schedule, day
        )
        if reason:
            logger.info(
                f"No on-demand records for student {assignment.student_id}: {reason}",
                extra={"tenant_id": assignment.tenant_id, "student_id": assignment.student_id},
            )
            return []

        self.session.add_all(generated)
        try:
            await self.session.commit()
        except IntegrityError:
            # generated concurrently by someone else
            await self.session.rollback()
        return await get_student_records_for_date(
            self.session, assignment.tenant_id, assignment.student_id, day
        )

    async def _apply(
        self,
        tenant_id: int,
        student_id: int,
        seat_layout_id: int,
        now: datetime,
        method: CheckMethod,
        action: Optional[str] = None,
        performed_by: Optional[str] = None,
    ) -> CheckOutcome:
        student = await get_student(self.session, tenant_id, student_id)
        assignment = await get_active_assignment(
            self.session, tenant_id, student_id, seat_layout_id
        )
        if not assignment:
            raise NoApplicableSessionError("Student has no active seat in this room")

        records = await self._records_for_today(assignment, student.name, now)
        allow_absent = method != CheckMethod.pin

        if action == ACTION_CHECKED_IN:
            open_sessions = [r for r in records if r.status != AttendanceStatus.checked_in.value]
            record = select_check_target(open_sessions, now, self.clock, allow_absent)
        elif action == ACTION_CHECKED_OUT:
            record = open_session(records)
        else:
            record = select_check_target(records, now, self.clock, allow_absent)

        if record is None:
            raise NoApplicableSessionError()

        if record.status == AttendanceStatus.checked_in.value:
            action, event = ACTION_CHECKED_OUT, CheckOut(at=now, method=method)
        else:
            action, event = ACTION_CHECKED_IN, CheckIn(at=now, method=method)

        change = transition(AttendanceState.of(record), event, self.clock)
        if not await persist_transition(self.session, record, change):
            await self.session.rollback()
            await self.session.refresh(record)
            raise InvalidTransitionError(record.status, type(event).__name__)

        log_business_event(
            f"record_{action}",
            "attendance_record",
            record.id,
            {
                "student_id": student_id,
                "session_number": record.session_number,
                "method": method.value,
                "by": performed_by,
                "is_late": record.is_late,
                "late_minutes": record.late_minutes,
                "is_early_leave": record.is_early_leave,
                "early_leave_minutes": record.early_leave_minutes,
            },
            tenant_id=tenant_id,
        )
        return CheckOutcome(action, check_message(student.name, action, record), record)
