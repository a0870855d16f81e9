from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from uuid import UUID


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    message: str
    type: str
    is_read: bool
    action_url: Optional[str] = None
    created_at: Optional[datetime] = None


class NotificationList(BaseModel):
    unread: int
    items: list[NotificationResponse] = []
