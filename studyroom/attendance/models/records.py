"""Attendance Record Model - one row per student, civil day and session block"""
from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    JSON,
    Text,
    Index,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from studyroom.core.database import Base


class AttendanceStatus(str, Enum):
    scheduled = "scheduled"  # generated, start time not reached
    not_arrived = "not_arrived"  # start time passed, no check-in yet
    checked_in = "checked_in"
    checked_out = "checked_out"
    absent_unexcused = "absent_unexcused"
    absent_excused = "absent_excused"


class CheckMethod(str, Enum):
    pin = "pin"
    manual = "manual"
    admin = "admin"


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    student_id = Column(
        Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    student_name = Column(String(100), nullable=False, default="")

    # Seat context copied from the assignment at generation time
    seat_layout_id = Column(Integer, nullable=False)
    seat_id = Column(String(64), nullable=False)
    seat_number = Column(String(20), nullable=True)
    timetable_id = Column(Integer, nullable=True)

    date = Column(Date, nullable=False)
    day_of_week = Column(String(10), nullable=False)

    expected_arrival_time = Column(String(5), nullable=False)
    expected_departure_time = Column(String(5), nullable=False)
    subjects = Column(JSON, nullable=False, default=list)

    status = Column(
        String(20), default=AttendanceStatus.scheduled.value, nullable=False
    )

    actual_arrival_time = Column(DateTime(timezone=True), nullable=True)
    actual_departure_time = Column(DateTime(timezone=True), nullable=True)

    is_late = Column(Boolean, default=False, nullable=False)
    late_minutes = Column(Integer, nullable=True)
    is_early_leave = Column(Boolean, default=False, nullable=False)
    early_leave_minutes = Column(Integer, nullable=True)

    check_in_method = Column(String(10), nullable=True)
    check_out_method = Column(String(10), nullable=True)

    excused_reason = Column(String(255), nullable=True)
    excused_note = Column(Text, nullable=True)
    excused_by = Column(String(64), nullable=True)

    session_number = Column(Integer, nullable=False)
    is_latest_session = Column(Boolean, default=False, nullable=False)

    not_arrived_at = Column(DateTime(timezone=True), nullable=True)
    absent_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    absent_marked_at = Column(DateTime(timezone=True), nullable=True)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "student_id",
            "date",
            "session_number",
            name="uq_attendance_records_session",
        ),
        # start-time sweep: status + date + exact arrival string
        Index(
            "ix_attendance_records_sweep",
            "tenant_id",
            "date",
            "status",
            "expected_arrival_time",
        ),
        Index("ix_attendance_records_student_date", "student_id", "date"),
        Index("ix_attendance_records_layout_date", "seat_layout_id", "date"),
    )

    def __repr__(self):
        return (
            f"<AttendanceRecord(id={self.id}, student_id={self.student_id}, "
            f"date={self.date}, session={self.session_number}, status={self.status})>"
        )
