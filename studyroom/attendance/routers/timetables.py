"""Student timetable administration. Writes propagate to seat assignments."""
from typing import List
from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.database import get_session
from studyroom.core.dependencies import get_current_tenant_id
from studyroom.core.limits import limiter
from studyroom.attendance.crud.timetables import (
    create_timetable,
    get_timetable,
    list_student_timetables,
    replace_timetable,
)
from studyroom.attendance.schemas.timetables import (
    TimetableRead,
    TimetableWrite,
    TimetableWriteResponse,
)

router = APIRouter(prefix="/admin/timetables", tags=["Timetables"])


@router.post("/", response_model=TimetableRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create(
    request: Request,
    payload: TimetableWrite,
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
):
    return await create_timetable(db, tenant_id, payload)


@router.get("/students/{student_id}", response_model=List[TimetableRead])
@limiter.limit("60/minute")
async def get_for_student(
    request: Request,
    student_id: int = Path(..., gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
):
    return await list_student_timetables(db, tenant_id, student_id)


@router.get("/{timetable_id}", response_model=TimetableRead)
@limiter.limit("60/minute")
async def get_one(
    request: Request,
    timetable_id: int = Path(..., gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
):
    return await get_timetable(db, tenant_id, timetable_id)


@router.put("/{timetable_id}", response_model=TimetableWriteResponse)
@limiter.limit("30/minute")
async def replace(
    request: Request,
    payload: TimetableWrite,
    timetable_id: int = Path(..., gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
):
    """
    Replace the weekly schedule.

    Active seat assignments using this timetable get the new schedule in
    their cached copy.
    """
    timetable, changed, refreshed = await replace_timetable(db, tenant_id, timetable_id, payload)
    return TimetableWriteResponse(
        timetable=TimetableRead.model_validate(timetable),
        schedule_changed=changed,
        assignments_refreshed=refreshed,
    )
