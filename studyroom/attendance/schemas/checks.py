from typing import Literal, Optional
from pydantic import BaseModel, Field, ConfigDict

from studyroom.attendance.schemas.records import AttendanceRecordRead


class PinCheckRequest(BaseModel):
    """PIN entered on a check-in kiosk"""

    pin: str = Field(..., pattern=r"^\d{4,6}$")
    student_id: Optional[int] = Field(
        None, gt=0, description="Set when the kiosk already knows who is checking"
    )

    model_config = ConfigDict(json_schema_extra={"example": {"pin": "123456"}})


class PinCheckResponse(BaseModel):
    success: bool = True
    action: Literal["checked_in", "checked_out"]
    message: str
    record: AttendanceRecordRead
