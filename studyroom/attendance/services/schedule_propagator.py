"""Schedule-Change Propagator - keeps assignment caches in step with timetables"""
import logging
from typing import Any, Dict, Optional
from sqlalchemy import and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.config import BATCH_OPERATION_LIMIT
from studyroom.core.logging_utils import error_tracker, log_business_event
from studyroom.attendance.models.seat_assignments import AssignmentStatus, SeatAssignment
from studyroom.attendance.services.schedule_cache import (
    canonical_schedule,
    overwrite_cached_schedules,
)

logger = logging.getLogger(__name__)


async def on_timetable_updated(
    session: AsyncSession,
    tenant_id: int,
    timetable_id: int,
    before: Optional[Dict[str, Any]],
    after: Optional[Dict[str, Any]],
) -> int:
    """
    Refresh ``expected_schedule`` on every active assignment of a timetable.

    Runs after the timetable write has been committed. A failure here is
    logged and tracked but never raised back to the writer; the cache is
    fixed by the next successful write.

    Returns:
        Number of assignments refreshed (0 when the schedule did not change)
    """
    if canonical_schedule(before) == canonical_schedule(after):
        logger.debug(f"Timetable {timetable_id} schedule unchanged, nothing to propagate")
        return 0

    try:
        result = await session.execute(
            select(SeatAssignment.id)
            .where(
                and_(
                    SeatAssignment.tenant_id == tenant_id,
                    SeatAssignment.timetable_id == timetable_id,
                    SeatAssignment.status == AssignmentStatus.active.value,
                )
            )
            .order_by(SeatAssignment.id)
        )
        assignment_ids = list(result.scalars().all())

        if not assignment_ids:
            return 0

        if len(assignment_ids) > BATCH_OPERATION_LIMIT:
            logger.warning(
                f"Timetable {timetable_id} affects {len(assignment_ids)} assignments, "
                f"writing in batches of {BATCH_OPERATION_LIMIT}",
                extra={"tenant_id": tenant_id, "timetable_id": timetable_id},
            )

        refreshed = await overwrite_cached_schedules(session, assignment_ids, after or {})

    except Exception as e:
        await session.rollback()
        logger.error(
            f"Schedule propagation failed for timetable {timetable_id}: {str(e)}",
            extra={"tenant_id": tenant_id, "timetable_id": timetable_id},
        )
        error_tracker.track_error(
            "SCHEDULE_PROPAGATION_FAILED",
            str(e),
            {"tenant_id": tenant_id, "timetable_id": timetable_id},
        )
        return 0

    log_business_event(
        "expected_schedule_propagated",
        "student_timetable",
        timetable_id,
        {"assignments": refreshed},
        tenant_id=tenant_id,
    )
    return refreshed
