import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.sql import func

from bizops.database import Base


class TimesheetEntry(Base):
    """Hours one user logged on one day, optionally against a project."""

    __tablename__ = "timesheet_entries"
    __table_args__ = (
        Index("ix_timesheet_entries_user_day", "org_id", "user_id", "date"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(Uuid, nullable=False)
    user_id = Column(Uuid, nullable=False)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True)
    date = Column(Date, nullable=False)
    hours = Column(Numeric(4, 1), nullable=False)
    description = Column(Text, default="")

    # draft -> submitted -> approved | rejected
    status = Column(String(20), nullable=False, default="draft")
    submitted_at = Column(DateTime(timezone=True))
    approved_by = Column(Uuid)
    approved_at = Column(DateTime(timezone=True))
    approval_comment = Column(Text, default="")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
