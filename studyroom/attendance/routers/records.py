"""Attendance record administration"""
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.database import get_session
from studyroom.core.dependencies import get_clock, get_current_admin_id, get_current_tenant_id
from studyroom.core.exceptions import ValidationError
from studyroom.core.limits import limiter
from studyroom.core.time_service import CivilClock
from studyroom.attendance.crud.attendance_records import (
    apply_admin_event,
    get_record,
    list_records_for_layout,
    list_records_for_student,
)
from studyroom.attendance.schemas.records import (
    AttendanceListResponse,
    AttendanceRecordRead,
    ExcuseRequest,
    ManualCheckRequest,
    RecordActionResponse,
    StatusOverrideRequest,
)
from studyroom.attendance.services.check_processor import CheckProcessor
from studyroom.attendance.services.lifecycle import MarkExcused, StatusOverride

router = APIRouter(prefix="/admin/records", tags=["Attendance Records"])


@router.get("/layouts/{seat_layout_id}", response_model=AttendanceListResponse)
@limiter.limit("60/minute")
async def get_layout_records(
    request: Request,
    seat_layout_id: int = Path(..., gt=0),
    day: Optional[date] = Query(None, description="Civil date, defaults to today"),
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
    clock: CivilClock = Depends(get_clock),
):
    """All sessions of one seat layout on one day"""
    records = await list_records_for_layout(db, tenant_id, seat_layout_id, day or clock.today())
    return AttendanceListResponse(
        records=[AttendanceRecordRead.model_validate(r) for r in records],
        total=len(records),
        size=max(len(records), 1),
    )


@router.get("/students/{student_id}", response_model=AttendanceListResponse)
@limiter.limit("60/minute")
async def get_student_records(
    request: Request,
    student_id: int = Path(..., gt=0),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
):
    if date_from and date_to and date_from > date_to:
        raise ValidationError("date_from must not be after date_to")

    records, total, pages = await list_records_for_student(
        db, tenant_id, student_id, date_from, date_to, page, size
    )
    return AttendanceListResponse(
        records=[AttendanceRecordRead.model_validate(r) for r in records],
        total=total,
        page=page,
        size=size,
        pages=pages,
    )


@router.get("/{record_id}", response_model=AttendanceRecordRead)
@limiter.limit("60/minute")
async def get_single_record(
    request: Request,
    record_id: int = Path(..., gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
):
    return await get_record(db, tenant_id, record_id)


@router.post("/check-in", response_model=RecordActionResponse)
@limiter.limit("30/minute")
async def manual_check_in(
    request: Request,
    payload: ManualCheckRequest,
    tenant_id: int = Depends(get_current_tenant_id),
    admin_id: str = Depends(get_current_admin_id),
    db: AsyncSession = Depends(get_session),
    clock: CivilClock = Depends(get_clock),
):
    outcome = await CheckProcessor(db, clock).manual_check_in(
        tenant_id, payload.student_id, payload.seat_layout_id, admin_id
    )
    return RecordActionResponse(
        message=outcome.message,
        record=AttendanceRecordRead.model_validate(outcome.record),
    )


@router.post("/check-out", response_model=RecordActionResponse)
@limiter.limit("30/minute")
async def manual_check_out(
    request: Request,
    payload: ManualCheckRequest,
    tenant_id: int = Depends(get_current_tenant_id),
    admin_id: str = Depends(get_current_admin_id),
    db: AsyncSession = Depends(get_session),
    clock: CivilClock = Depends(get_clock),
):
    outcome = await CheckProcessor(db, clock).manual_check_out(
        tenant_id, payload.student_id, payload.seat_layout_id, admin_id
    )
    return RecordActionResponse(
        message=outcome.message,
        record=AttendanceRecordRead.model_validate(outcome.record),
    )


@router.post("/{record_id}/excuse", response_model=RecordActionResponse)
@limiter.limit("30/minute")
async def excuse_record(
    request: Request,
    payload: ExcuseRequest,
    record_id: int = Path(..., gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    admin_id: str = Depends(get_current_admin_id),
    db: AsyncSession = Depends(get_session),
    clock: CivilClock = Depends(get_clock),
):
    """Mark a session as an excused absence"""
    record = await apply_admin_event(
        db,
        tenant_id,
        record_id,
        MarkExcused(reason=payload.reason, note=payload.note, by=admin_id),
        clock,
    )
    return RecordActionResponse(
        message="Absence excused",
        record=AttendanceRecordRead.model_validate(record),
    )


@router.post("/{record_id}/status", response_model=RecordActionResponse)
@limiter.limit("30/minute")
async def override_status(
    request: Request,
    payload: StatusOverrideRequest,
    record_id: int = Path(..., gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    admin_id: str = Depends(get_current_admin_id),
    db: AsyncSession = Depends(get_session),
    clock: CivilClock = Depends(get_clock),
):
    record = await apply_admin_event(
        db,
        tenant_id,
        record_id,
        StatusOverride(status=payload.status, note=payload.note, by=admin_id),
        clock,
    )
    return RecordActionResponse(
        message=f"Status set to {record.status}",
        record=AttendanceRecordRead.model_validate(record),
    )
