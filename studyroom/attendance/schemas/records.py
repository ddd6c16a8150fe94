"""Attendance Record Schemas"""
from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from studyroom.attendance.models.records import AttendanceStatus


class AttendanceRecordRead(BaseModel):
    id: int
    student_id: int
    student_name: str
    seat_layout_id: int
    seat_id: str
    seat_number: Optional[str] = None

    date: date
    day_of_week: str
    expected_arrival_time: str
    expected_departure_time: str
    subjects: List[str] = Field(default_factory=list)

    status: AttendanceStatus
    actual_arrival_time: Optional[datetime] = None
    actual_departure_time: Optional[datetime] = None
    is_late: bool = False
    late_minutes: Optional[int] = None
    is_early_leave: bool = False
    early_leave_minutes: Optional[int] = None
    check_in_method: Optional[str] = None
    check_out_method: Optional[str] = None

    excused_reason: Optional[str] = None
    excused_note: Optional[str] = None

    session_number: int
    is_latest_session: bool
    not_arrived_at: Optional[datetime] = None
    absent_confirmed_at: Optional[datetime] = None
    absent_marked_at: Optional[datetime] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AttendanceListResponse(BaseModel):
    records: List[AttendanceRecordRead]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


class ManualCheckRequest(BaseModel):
    """Administrator check-in / check-out without a PIN"""

    student_id: int = Field(..., gt=0)
    seat_layout_id: int = Field(..., gt=0)


class ExcuseRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255)
    note: Optional[str] = Field(None, max_length=1000)


class StatusOverrideRequest(BaseModel):
    status: AttendanceStatus
    note: Optional[str] = Field(None, max_length=1000)


class RecordActionResponse(BaseModel):
    success: bool = True
    message: str
    record: AttendanceRecordRead
