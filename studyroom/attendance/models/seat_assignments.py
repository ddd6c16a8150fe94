from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    JSON,
    Index,
)
from sqlalchemy.sql import func
from studyroom.core.database import Base


class AssignmentStatus(str, Enum):
    active = "active"
    released = "released"


class SeatAssignment(Base):
    """A student's seat in a seat layout.

    ``expected_schedule`` caches the timetable's ``daily_schedules``. It is
    written only through ``services.schedule_cache``.
    """

    __tablename__ = "seat_assignments"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    student_id = Column(
        Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )

    # Seat layouts and seats are managed elsewhere
    seat_layout_id = Column(Integer, nullable=False)
    seat_id = Column(String(64), nullable=False)
    seat_number = Column(String(20), nullable=True)

    timetable_id = Column(
        Integer,
        ForeignKey("student_timetables.id", ondelete="SET NULL"),
        nullable=True,
    )

    status = Column(String(20), default=AssignmentStatus.active.value, nullable=False)
    expected_schedule = Column(JSON, nullable=True)

    assigned_at = Column(DateTime(timezone=True), server_default=func.now())
    released_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_seat_assignments_tenant_status", "tenant_id", "status"),
        Index("ix_seat_assignments_timetable_status", "timetable_id", "status"),
        Index("ix_seat_assignments_student_layout", "student_id", "seat_layout_id"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == AssignmentStatus.active.value

    def __repr__(self):
        return (
            f"<SeatAssignment(id={self.id}, student_id={self.student_id}, "
            f"seat_id='{self.seat_id}', status={self.status})>"
        )
