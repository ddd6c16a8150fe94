"""Attendance check link administration"""
from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.database import get_session
from studyroom.core.dependencies import get_clock, get_current_admin_id, get_current_tenant_id
from studyroom.core.limits import limiter
from studyroom.core.time_service import CivilClock
from studyroom.attendance.crud.check_links import (
    create_check_link,
    delete_check_link,
    list_check_links,
    set_check_link_active,
)
from studyroom.attendance.schemas.check_links import (
    CheckLinkCreate,
    CheckLinkListResponse,
    CheckLinkRead,
)

router = APIRouter(prefix="/admin/check-links", tags=["Check Links"])


@router.post("/", response_model=CheckLinkRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_link(
    request: Request,
    payload: CheckLinkCreate,
    tenant_id: int = Depends(get_current_tenant_id),
    admin_id: str = Depends(get_current_admin_id),
    db: AsyncSession = Depends(get_session),
    clock: CivilClock = Depends(get_clock),
):
    return await create_check_link(db, tenant_id, payload, admin_id, clock.now())


@router.get("/", response_model=CheckLinkListResponse)
@limiter.limit("60/minute")
async def get_links(
    request: Request,
    seat_layout_id: Optional[int] = Query(None, gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
):
    links = await list_check_links(db, tenant_id, seat_layout_id)
    return CheckLinkListResponse(
        links=[CheckLinkRead.model_validate(link) for link in links],
        total=len(links),
    )


@router.post("/{link_id}/activate", response_model=CheckLinkRead)
@limiter.limit("30/minute")
async def activate_link(
    request: Request,
    link_id: int = Path(..., gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
):
    return await set_check_link_active(db, tenant_id, link_id, True)


@router.post("/{link_id}/deactivate", response_model=CheckLinkRead)
@limiter.limit("30/minute")
async def deactivate_link(
    request: Request,
    link_id: int = Path(..., gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
):
    return await set_check_link_active(db, tenant_id, link_id, False)


@router.delete("/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
async def remove_link(
    request: Request,
    link_id: int = Path(..., gt=0),
    tenant_id: int = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_session),
):
    await delete_check_link(db, tenant_id, link_id)
