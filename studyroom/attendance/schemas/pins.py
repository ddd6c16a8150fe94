from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class PinIssueRequest(BaseModel):
    student_id: int = Field(..., gt=0)
    pin: str = Field(..., pattern=r"^\d{4,6}$")


class PinRotateRequest(BaseModel):
    new_pin: str = Field(..., pattern=r"^\d{4,6}$")


class PinChange(BaseModel):
    changed_at: datetime
    changed_by: str


class PinRead(BaseModel):
    """Administrative view, includes the escrowed PIN"""

    student_id: int
    actual_pin: str
    is_active: bool
    is_locked: bool
    failed_attempts: int
    last_failed_at: Optional[datetime] = None
    last_changed_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    change_history: List[PinChange] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
