from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Literal, Optional
from datetime import datetime
from uuid import UUID


WorkPaperStatus = Literal["not_started", "in_progress", "awaiting_review", "completed", "rejected"]
# statuses a preparer may set; completed and rejected come from a review
EditableStatus = Literal["not_started", "in_progress", "awaiting_review"]
ReviewOutcome = Literal["approved", "rejected", "commented"]


class ReviewEntry(BaseModel):
    id: str
    reviewer_id: str
    timestamp: datetime
    comment: Optional[str] = None
    status: ReviewOutcome


class WorkPaperCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=500)
    template_id: Optional[str] = None
    data: dict[str, Any] = {}
    assigned_to: Optional[str] = None
    reviewer_id: Optional[str] = None


class WorkPaperUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=500)
    status: Optional[EditableStatus] = None
    data: Optional[dict[str, Any]] = None
    assigned_to: Optional[str] = None
    reviewer_id: Optional[str] = None


class ReviewRequest(BaseModel):
    status: ReviewOutcome
    comment: Optional[str] = None


class WorkPaperResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: UUID
    project_id: UUID
    template_id: Optional[str] = None
    code: str
    name: str
    status: str
    data: dict[str, Any] = {}
    review_history: list[ReviewEntry] = []
    assigned_to: Optional[str] = None
    reviewer_id: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
