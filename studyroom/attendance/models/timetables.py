from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    Index,
)
from sqlalchemy.sql import func
from studyroom.core.database import Base


class StudentTimetable(Base):
    """Weekly schedule of one student.

    ``daily_schedules`` maps a day name ("monday".."sunday") to
    ``{"is_active": bool, "time_slots": [{start_time, end_time, subject, type}]}``.
    """

    __tablename__ = "student_timetables"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    student_id = Column(
        Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )

    name = Column(String(100), nullable=False, default="Default")
    is_active = Column(Boolean, default=True, nullable=False)
    daily_schedules = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_student_timetables_tenant_student", "tenant_id", "student_id"),
    )

    def __repr__(self):
        return f"<StudentTimetable(id={self.id}, student_id={self.student_id})>"
