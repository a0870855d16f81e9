import uuid

from sqlalchemy import Column, String, Text, Boolean, DateTime, Uuid
from sqlalchemy.sql import func

from bizops.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    org_id = Column(Uuid, nullable=False, index=True)
    user_id = Column(Uuid, nullable=False, index=True)

    title = Column(String(300), nullable=False)
    message = Column(Text, nullable=False, default="")
    # info / success / warning / error
    type = Column(String(20), nullable=False, default="info")
    is_read = Column(Boolean, nullable=False, default=False)
    action_url = Column(String(1000), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
