import datetime as dt
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class TimeEntryCreate(BaseModel):
    date: dt.date
    project_id: Optional[UUID] = None
    hours: Decimal = Field(gt=0, le=24)  # per-day total is checked against stored entries
    description: str = ""


class TimeEntryUpdate(BaseModel):
    date: Optional[dt.date] = None
    project_id: Optional[UUID] = None
    hours: Optional[Decimal] = Field(default=None, gt=0, le=24)
    description: Optional[str] = None


class TimeEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: UUID
    user_id: UUID
    project_id: Optional[UUID] = None
    date: dt.date
    hours: Decimal
    description: Optional[str] = ""
    status: str
    submitted_at: Optional[dt.datetime] = None
    approved_by: Optional[UUID] = None
    approved_at: Optional[dt.datetime] = None
    approval_comment: Optional[str] = ""
    created_at: Optional[dt.datetime] = None


class TimeEntrySelection(BaseModel):
    entry_ids: list[UUID] = Field(min_length=1)


class TimeEntryDecision(TimeEntrySelection):
    action: Literal["approve", "reject"] = "approve"
    comment: str = ""
