from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.database import get_session
from studyroom.core.dependencies import get_clock, get_current_tenant_id
from studyroom.core.limits import limiter
from studyroom.core.time_service import CivilClock
from studyroom.attendance.crud.seat_assignments import (
    create_assignment,
    get_assignment,
    release_assignment,
)
from studyroom.attendance.schemas.seat_assignments import (
    SeatAssignmentCreate,
    SeatAssignmentRead,
)

router = APIRouter(prefix="/admin/seat-assignments", tags=["Seat Assignments"])


@router.post("/", response_model=SeatAssignmentRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def assign_seat(
    request: Request,
    payload: SeatAssignmentCreate,
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
):
    """Assign a seat; the timetable's schedule is cached on the assignment"""
    return await create_assignment(db, tenant_id, payload)


@router.get("/{assignment_id}", response_model=SeatAssignmentRead)
@limiter.limit("60/minute")
async def get_seat_assignment(
    request: Request,
    assignment_id: int = Path(..., gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
):
    return await get_assignment(db, tenant_id, assignment_id)


@router.post("/{assignment_id}/release", response_model=SeatAssignmentRead)
@limiter.limit("30/minute")
async def release_seat(
    request: Request,
    assignment_id: int = Path(..., gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
    clock: CivilClock = Depends(get_clock),
):
    return await release_assignment(db, tenant_id, assignment_id, clock.now())
