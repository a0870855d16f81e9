import uuid

from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.sql import func
from bizops.database import Base, JSONType


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(Uuid, nullable=False, index=True)
    user_id = Column(Uuid, nullable=True)
    action = Column(String(100), nullable=False)
    resource_type = Column(String(100), nullable=False)
    resource_id = Column(String(255), nullable=True)
    details = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
