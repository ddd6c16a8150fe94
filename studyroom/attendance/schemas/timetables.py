from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator

CLOCK_REGEX = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"

DayName = Literal[
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"
]


class SlotType(str, Enum):
    class_ = "class"
    self_study = "self_study"
    external = "external"  # excusable break, never an obligation


class TimeSlot(BaseModel):
    """One slot of a day. Times are zero-padded so string order is time order."""

    id: Optional[str] = None
    start_time: str = Field(..., pattern=CLOCK_REGEX)
    end_time: str = Field(..., pattern=CLOCK_REGEX)
    subject: str = Field("", max_length=100)
    type: SlotType

    model_config = ConfigDict(use_enum_values=True)

    @model_validator(mode="after")
    def validate_range(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class DaySchedule(BaseModel):
    is_active: bool = True
    time_slots: List[TimeSlot] = Field(default_factory=list)


class TimetableWrite(BaseModel):
    """Create or replace a student's weekly schedule"""

    student_id: int = Field(..., gt=0)
    name: str = Field("Default", min_length=1, max_length=100)
    daily_schedules: Dict[DayName, DaySchedule] = Field(default_factory=dict)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "student_id": 1,
                "name": "Spring term",
                "daily_schedules": {
                    "monday": {
                        "is_active": True,
                        "time_slots": [
                            {"start_time": "09:00", "end_time": "12:00", "subject": "Math", "type": "class"},
                            {"start_time": "12:00", "end_time": "14:00", "subject": "Lunch", "type": "external"},
                            {"start_time": "14:00", "end_time": "18:00", "subject": "Study", "type": "self_study"},
                        ],
                    }
                },
            }
        }
    )


class TimetableRead(BaseModel):
    id: int
    student_id: int
    name: str
    is_active: bool
    daily_schedules: Dict[str, DaySchedule]
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TimetableWriteResponse(BaseModel):
    timetable: TimetableRead
    schedule_changed: bool
    assignments_refreshed: int
