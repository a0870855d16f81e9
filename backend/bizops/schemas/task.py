from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID


TaskStatus = Literal["backlog", "todo", "in_progress", "in_review", "done", "blocked"]
TaskPriority = Literal["low", "med", "high", "critical"]


class ChecklistItem(BaseModel):
    text: str = Field(..., min_length=1)
    required: bool = False
    done: bool = False


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    status: TaskStatus = "backlog"
    priority: TaskPriority = "med"
    assignees: list[str] = []
    checklist: list[ChecklistItem] = []
    labels: list[str] = []
    due_at: Optional[datetime] = None
    estimate_hours: Optional[Decimal] = Field(default=None, ge=0)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignees: Optional[list[str]] = None
    checklist: Optional[list[ChecklistItem]] = None
    labels: Optional[list[str]] = None
    due_at: Optional[datetime] = None
    estimate_hours: Optional[Decimal] = Field(default=None, ge=0)
    spent_hours: Optional[Decimal] = Field(default=None, ge=0)


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: UUID
    project_id: UUID
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    assignees: list[str] = []
    reporter_id: Optional[UUID] = None
    checklist: list[ChecklistItem] = []
    labels: list[str] = []
    due_at: Optional[datetime] = None
    estimate_hours: Optional[Decimal] = None
    spent_hours: Optional[Decimal] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
