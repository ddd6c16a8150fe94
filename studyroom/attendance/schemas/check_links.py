from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class CheckLinkCreate(BaseModel):
    seat_layout_id: int = Field(..., gt=0)
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    expires_in_days: Optional[int] = Field(None, ge=1, le=365)


class CheckLinkRead(BaseModel):
    id: int
    link_token: str
    link_url: str
    seat_layout_id: int
    title: str
    description: Optional[str] = None
    is_active: bool
    expires_at: Optional[datetime] = None
    usage_count: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CheckLinkListResponse(BaseModel):
    links: List[CheckLinkRead]
    total: int
