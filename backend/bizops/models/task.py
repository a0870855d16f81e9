import uuid

from sqlalchemy import Column, String, Text, DateTime, Numeric, ForeignKey, Uuid
from sqlalchemy.sql import func

from bizops.database import Base, JSONType


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    org_id = Column(Uuid, nullable=False, index=True)
    project_id = Column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="backlog")
    priority = Column(String(10), nullable=False, default="med")

    # employee ids
    assignees = Column(JSONType, nullable=False, default=list)
    reporter_id = Column(Uuid, nullable=True)
    # [{"text", "required", "done"}]
    checklist = Column(JSONType, nullable=False, default=list)
    labels = Column(JSONType, nullable=False, default=list)

    due_at = Column(DateTime(timezone=True), nullable=True)
    estimate_hours = Column(Numeric(6, 1), nullable=True)
    spent_hours = Column(Numeric(6, 1), nullable=False, default=0)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
