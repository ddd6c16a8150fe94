from studyroom.core.database import Base
from .tenants import Tenant
from .students import Student
from .timetables import StudentTimetable
from .seat_assignments import SeatAssignment, AssignmentStatus
from .records import AttendanceRecord, AttendanceStatus, CheckMethod
from .pins import PinCredential
from .check_links import AttendanceCheckLink

__all__ = [
    "Base",
    "Tenant",
    "Student",
    "StudentTimetable",
    "SeatAssignment",
    "AssignmentStatus",
    "AttendanceRecord",
    "AttendanceStatus",
    "CheckMethod",
    "PinCredential",
    "AttendanceCheckLink",
]
