"""PIN administration"""
from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.database import get_session
from studyroom.core.dependencies import get_clock, get_current_admin_id, get_current_tenant_id
from studyroom.core.exceptions import NotFoundError
from studyroom.core.limits import limiter
from studyroom.core.time_service import CivilClock
from studyroom.attendance.crud.pins import (
    get_pin_for_student,
    issue_pin,
    rotate_pin,
    unlock_pin,
)
from studyroom.attendance.schemas.pins import PinIssueRequest, PinRead, PinRotateRequest

router = APIRouter(prefix="/admin/pins", tags=["PIN Administration"])


@router.post("/", response_model=PinRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_pin(
    request: Request,
    payload: PinIssueRequest,
    tenant_id: int = Depends(get_current_tenant_id),
    admin_id: str = Depends(get_current_admin_id),
    db: AsyncSession = Depends(get_session),
    clock: CivilClock = Depends(get_clock),
):
    """Issue the first PIN of a student (4-6 digits, unique in the tenant)"""
    return await issue_pin(db, tenant_id, payload.student_id, payload.pin, admin_id, clock.now())


@router.get("/{student_id}", response_model=PinRead)
@limiter.limit("60/minute")
async def get_pin(
    request: Request,
    student_id: int = Path(..., gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
):
    credential = await get_pin_for_student(db, tenant_id, student_id)
    if not credential:
        raise NotFoundError("PIN", f"student {student_id}")
    return credential


@router.put("/{student_id}", response_model=PinRead)
@limiter.limit("30/minute")
async def change_pin(
    request: Request,
    payload: PinRotateRequest,
    student_id: int = Path(..., gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    admin_id: str = Depends(get_current_admin_id),
    db: AsyncSession = Depends(get_session),
    clock: CivilClock = Depends(get_clock),
):
    """Rotate a PIN. Also unlocks it and clears the failure counter."""
    return await rotate_pin(db, tenant_id, student_id, payload.new_pin, admin_id, clock.now())


@router.post("/{student_id}/unlock", response_model=PinRead)
@limiter.limit("30/minute")
async def unlock(
    request: Request,
    student_id: int = Path(..., gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    admin_id: str = Depends(get_current_admin_id),
    db: AsyncSession = Depends(get_session),
):
    return await unlock_pin(db, tenant_id, student_id, admin_id)
