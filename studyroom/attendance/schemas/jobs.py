from datetime import date
from typing import Literal
from pydantic import BaseModel, Field

JobName = Literal["generate_daily_records", "mark_not_arrived", "finalize_absences"]


class JobRunResult(BaseModel):
    """Outcome of one scheduled job run"""

    job: str
    date: date
    clock: str = ""
    tenants_processed: int = 0
    tenants_failed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed_tenant_ids: list = Field(default_factory=list)
