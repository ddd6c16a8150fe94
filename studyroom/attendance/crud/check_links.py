"""Attendance Check Link CRUD"""
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy import and_, update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.database import db_operation
from studyroom.core.exceptions import NotFoundError, ValidationError
from studyroom.core.logging_utils import log_business_event
from studyroom.core.security import generate_link_token
from studyroom.core.time_service import as_utc
from studyroom.attendance.models.check_links import AttendanceCheckLink
from studyroom.attendance.schemas.check_links import CheckLinkCreate


@db_operation
async def create_check_link(
    session: AsyncSession,
    tenant_id: int,
    data: CheckLinkCreate,
    created_by: str,
    now: datetime,
) -> AttendanceCheckLink:
    expires_at = None
    if data.expires_in_days:
        expires_at = as_utc(now) + timedelta(days=data.expires_in_days)

    link = AttendanceCheckLink(
        tenant_id=tenant_id,
        link_token=generate_link_token(),
        seat_layout_id=data.seat_layout_id,
        title=data.title,
        description=data.description,
        is_active=True,
        expires_at=expires_at,
        usage_count=0,
    )
    session.add(link)
    await session.commit()
    await session.refresh(link)

    log_business_event(
        "check_link_created", "check_link", link.id,
        {"seat_layout_id": link.seat_layout_id, "by": created_by}, tenant_id=tenant_id,
    )
    return link


@db_operation
async def list_check_links(
    session: AsyncSession, tenant_id: int, seat_layout_id: Optional[int] = None
) -> List[AttendanceCheckLink]:
    query = select(AttendanceCheckLink).where(AttendanceCheckLink.tenant_id == tenant_id)
    if seat_layout_id is not None:
        query = query.where(AttendanceCheckLink.seat_layout_id == seat_layout_id)
    result = await session.execute(query.order_by(AttendanceCheckLink.id.desc()))
    return list(result.scalars().all())


@db_operation
async def get_check_link(
    session: AsyncSession, tenant_id: int, link_id: int
) -> AttendanceCheckLink:
    result = await session.execute(
        select(AttendanceCheckLink).where(
            and_(
                AttendanceCheckLink.id == link_id,
                AttendanceCheckLink.tenant_id == tenant_id,
            )
        )
    )
    link = result.scalar_one_or_none()
    if not link:
        raise NotFoundError("Attendance check link", str(link_id))
    return link


@db_operation
async def set_check_link_active(
    session: AsyncSession, tenant_id: int, link_id: int, is_active: bool
) -> AttendanceCheckLink:
    link = await get_check_link(session, tenant_id, link_id)
    link.is_active = is_active
    await session.commit()
    await session.refresh(link)
    return link


@db_operation
async def delete_check_link(session: AsyncSession, tenant_id: int, link_id: int):
    link = await get_check_link(session, tenant_id, link_id)
    await session.delete(link)
    await session.commit()

    log_business_event("check_link_deleted", "check_link", link_id, tenant_id=tenant_id)


@db_operation
async def resolve_check_link(
    session: AsyncSession, link_token: str, now: datetime
) -> AttendanceCheckLink:
    """
    Resolve a scope token to its tenant and seat layout.

    Raises:
        NotFoundError: unknown or deactivated token
        ValidationError: token has expired
    """
    result = await session.execute(
        select(AttendanceCheckLink).where(AttendanceCheckLink.link_token == link_token)
        .execution_options(populate_existing=True)
    )
    link = result.scalar_one_or_none()
    if not link or not link.is_active:
        raise NotFoundError("Attendance check link")

    if link.expires_at is not None and as_utc(link.expires_at) <= as_utc(now):
        raise ValidationError("Attendance check link has expired")

    return link


@db_operation
async def increment_link_usage(session: AsyncSession, link_id: int):
    """Does not commit"""
    await session.execute(
        update(AttendanceCheckLink)
        .where(AttendanceCheckLink.id == link_id)
        .values(usage_count=AttendanceCheckLink.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
