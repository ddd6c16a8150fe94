"""
The ``SeatAssignment.expected_schedule`` cache.

This module is the only writer of that column. It is seeded when an
assignment is created and overwritten by the schedule-change propagator.
"""
import copy
import json
import logging
from typing import Any, Dict, Optional, Sequence
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.config import BATCH_OPERATION_LIMIT
from studyroom.core.database import chunked
from studyroom.attendance.models.seat_assignments import SeatAssignment

logger = logging.getLogger(__name__)


def canonical_schedule(daily_schedules: Optional[Dict[str, Any]]) -> str:
    """Key-order independent serialization used for change detection"""
    return json.dumps(daily_schedules or {}, sort_keys=True, separators=(",", ":"))


def snapshot(daily_schedules: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return copy.deepcopy(daily_schedules or {})


def seed_assignment(assignment: SeatAssignment, daily_schedules: Optional[Dict[str, Any]]):
    """Fill the cache of a new, not yet flushed assignment"""
    assignment.expected_schedule = (
        snapshot(daily_schedules) if daily_schedules is not None else None
    )


async def overwrite_cached_schedules(
    session: AsyncSession,
    assignment_ids: Sequence[int],
    daily_schedules: Dict[str, Any],
    batch_size: int = BATCH_OPERATION_LIMIT,
) -> int:
    """Overwrite the cache on the given assignments, committing per batch"""
    value = snapshot(daily_schedules)
    written = 0
    for batch in chunked(list(assignment_ids), batch_size):
        await session.execute(
            update(SeatAssignment)
            .where(SeatAssignment.id.in_(batch))
            .values(expected_schedule=value)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        written += len(batch)
        logger.debug(f"Expected schedule batch written: {len(batch)} assignment(s)")
    return written
