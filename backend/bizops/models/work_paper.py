import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func

from bizops.database import Base, JSONType


class WorkPaper(Base):
    """
    Table: work_papers

    One audit working paper per project section (code "A1", "B2.3", ...).
    `data` holds the filled-in template; `review_history` is append-only.
    """

    __tablename__ = "work_papers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    org_id = Column(Uuid, nullable=False, index=True)
    project_id = Column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    template_id = Column(String(100), nullable=True)
    code = Column(String(50), nullable=False)
    name = Column(String(500), nullable=False)
    # not_started / in_progress / awaiting_review / completed / rejected
    status = Column(String(20), nullable=False, default="not_started")

    data = Column(JSONType, nullable=False, default=dict)
    # [{"id", "reviewer_id", "timestamp", "comment", "status"}]
    review_history = Column(JSONType, nullable=False, default=list)

    # employee ids
    assigned_to = Column(String(100), nullable=True)
    reviewer_id = Column(String(100), nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
