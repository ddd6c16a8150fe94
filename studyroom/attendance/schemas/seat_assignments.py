from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict


class SeatAssignmentCreate(BaseModel):
    student_id: int = Field(..., gt=0)
    seat_layout_id: int = Field(..., gt=0)
    seat_id: str = Field(..., min_length=1, max_length=64)
    seat_number: Optional[str] = Field(None, max_length=20)
    timetable_id: Optional[int] = Field(None, gt=0)


class SeatAssignmentRead(BaseModel):
    id: int
    student_id: int
    seat_layout_id: int
    seat_id: str
    seat_number: Optional[str] = None
    timetable_id: Optional[int] = None
    status: str
    expected_schedule: Optional[Dict[str, Any]] = None
    assigned_at: Optional[datetime] = None
    released_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
