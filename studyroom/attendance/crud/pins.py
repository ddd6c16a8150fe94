"""PIN Credential CRUD"""
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import and_, case, update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.config import PIN_MAX_FAILED_ATTEMPTS
from studyroom.core.database import db_operation
from studyroom.core.exceptions import DuplicateError, NotFoundError
from studyroom.core.logging_utils import log_business_event
from studyroom.core.security import hash_pin, validate_pin_format
from studyroom.core.time_service import as_utc
from studyroom.attendance.models.pins import PinCredential
from studyroom.attendance.crud.students import get_student

PIN_HISTORY_LIMIT = 3


@db_operation
async def get_pin_for_student(
    session: AsyncSession, tenant_id: int, student_id: int
) -> Optional[PinCredential]:
    result = await session.execute(
        select(PinCredential).where(
            and_(
                PinCredential.tenant_id == tenant_id,
                PinCredential.student_id == student_id,
            )
        ).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


@db_operation
async def list_active_pins(session: AsyncSession, tenant_id: int) -> List[PinCredential]:
    result = await session.execute(
        select(PinCredential)
        .where(
            and_(
                PinCredential.tenant_id == tenant_id,
                PinCredential.is_active == True,
            )
        )
        .order_by(PinCredential.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _ensure_pin_unused(
    session: AsyncSession, tenant_id: int, pin: str, exclude_id: Optional[int] = None
):
    query = select(PinCredential.id).where(
        and_(
            PinCredential.tenant_id == tenant_id,
            PinCredential.is_active == True,
            PinCredential.actual_pin == pin,
        )
    )
    if exclude_id is not None:
        query = query.where(PinCredential.id != exclude_id)

    if (await session.execute(query)).first():
        raise DuplicateError("PIN", "pin", "****")


async def _require_pin(
    session: AsyncSession, tenant_id: int, student_id: int
) -> PinCredential:
    credential = await get_pin_for_student(session, tenant_id, student_id)
    if not credential:
        raise NotFoundError("PIN", f"student {student_id}")
    return credential


@db_operation
async def issue_pin(
    session: AsyncSession,
    tenant_id: int,
    student_id: int,
    pin: str,
    issued_by: str,
    now: datetime,
) -> PinCredential:
    """Create the first PIN of a student"""
    validate_pin_format(pin)
    await get_student(session, tenant_id, student_id)

    if await get_pin_for_student(session, tenant_id, student_id):
        raise DuplicateError("PIN", "student_id", str(student_id))
    await _ensure_pin_unused(session, tenant_id, pin)

    credential = PinCredential(
        tenant_id=tenant_id,
        student_id=student_id,
        pin_hash=hash_pin(pin),
        actual_pin=pin,
        is_active=True,
        is_locked=False,
        failed_attempts=0,
        last_changed_at=as_utc(now),
        change_history=[],
    )
    session.add(credential)
    await session.commit()
    await session.refresh(credential)

    log_business_event(
        "pin_issued", "pin_credential", credential.id,
        {"student_id": student_id, "by": issued_by}, tenant_id=tenant_id,
    )
    return credential


@db_operation
async def rotate_pin(
    session: AsyncSession,
    tenant_id: int,
    student_id: int,
    new_pin: str,
    changed_by: str,
    now: datetime,
) -> PinCredential:
    """Replace a PIN. Rotation also unlocks and resets the failure counter."""
    validate_pin_format(new_pin)
    credential = await _require_pin(session, tenant_id, student_id)
    await _ensure_pin_unused(session, tenant_id, new_pin, exclude_id=credential.id)

    history = list(credential.change_history or [])
    history.append({"changed_at": as_utc(now).isoformat(), "changed_by": changed_by})

    credential.pin_hash = hash_pin(new_pin)
    credential.actual_pin = new_pin
    credential.is_active = True
    credential.is_locked = False
    credential.failed_attempts = 0
    credential.last_changed_at = as_utc(now)
    credential.change_history = history[-PIN_HISTORY_LIMIT:]

    await session.commit()
    await session.refresh(credential)

    log_business_event(
        "pin_rotated", "pin_credential", credential.id,
        {"student_id": student_id, "by": changed_by}, tenant_id=tenant_id,
    )
    return credential


@db_operation
async def unlock_pin(
    session: AsyncSession, tenant_id: int, student_id: int, unlocked_by: str
) -> PinCredential:
    credential = await _require_pin(session, tenant_id, student_id)
    credential.is_locked = False
    credential.failed_attempts = 0

    await session.commit()
    await session.refresh(credential)

    log_business_event(
        "pin_unlocked", "pin_credential", credential.id,
        {"student_id": student_id, "by": unlocked_by}, tenant_id=tenant_id,
    )
    return credential


@db_operation
async def record_failed_attempt(
    session: AsyncSession,
    credential_id: int,
    now: datetime,
    max_attempts: int = PIN_MAX_FAILED_ATTEMPTS,
) -> Tuple[int, bool]:
    """
    Atomically count one failed verification and lock at the threshold.

    Returns (failed_attempts, is_locked) after the write. Commits, since the
    caller is about to fail the request.
    """
    await session.execute(
        update(PinCredential)
        .where(PinCredential.id == credential_id)
        .values(
            failed_attempts=PinCredential.failed_attempts + 1,
            is_locked=case(
                (PinCredential.failed_attempts + 1 >= max_attempts, True),
                else_=PinCredential.is_locked,
            ),
            last_failed_at=as_utc(now),
        )
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    row = (
        await session.execute(
            select(PinCredential.failed_attempts, PinCredential.is_locked).where(
                PinCredential.id == credential_id
            )
        )
    ).one()
    return row.failed_attempts, bool(row.is_locked)


@db_operation
async def record_successful_use(
    session: AsyncSession, credential_id: int, now: datetime
):
    """Reset the failure counter. Does not commit."""
    await session.execute(
        update(PinCredential)
        .where(PinCredential.id == credential_id)
        .values(failed_attempts=0, last_used_at=as_utc(now))
        .execution_options(synchronize_session=False)
    )
