"""PIN check endpoint used by the attendance kiosks"""
from fastapi import APIRouter, Depends, Path, Request
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.database import get_session
from studyroom.core.dependencies import get_clock
from studyroom.core.limits import limiter
from studyroom.core.time_service import CivilClock
from studyroom.attendance.schemas.checks import PinCheckRequest, PinCheckResponse
from studyroom.attendance.schemas.records import AttendanceRecordRead
from studyroom.attendance.services.check_processor import CheckProcessor

router = APIRouter(prefix="/attendance", tags=["Attendance Check"])


@router.post("/check/{link_token}", response_model=PinCheckResponse)
@limiter.limit("20/minute")
async def check_by_pin(
    request: Request,
    payload: PinCheckRequest,
    link_token: str = Path(..., min_length=1, max_length=64),
    db: AsyncSession = Depends(get_session),
    clock: CivilClock = Depends(get_clock),
):
    """
    Check in or out with a PIN.

    The first open session of the day is checked out if one exists,
    otherwise the earliest waiting session is checked in.
    """
    outcome = await CheckProcessor(db, clock).apply_pin_check(
        link_token, payload.pin, payload.student_id
    )
    return PinCheckResponse(
        success=True,
        action=outcome.action,
        message=outcome.message,
        record=AttendanceRecordRead.model_validate(outcome.record),
    )
