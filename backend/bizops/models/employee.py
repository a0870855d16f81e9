import uuid

from sqlalchemy import Column, String, Text, Date, DateTime, Uuid, UniqueConstraint
from sqlalchemy.sql import func

from bizops.database import Base


class Employee(Base):
    """
    Table: employees

    HR record of a person in the group. Owned independently of projects;
    referenced by id from projects.team and tasks.assignees.
    """

    __tablename__ = "employees"

    __table_args__ = (
        UniqueConstraint("org_id", "email", name="uq_employees_org_email"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    org_id = Column(Uuid, nullable=False, index=True)

    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)

    # organisational role, e.g. "manager_2"
    role = Column(String(50), nullable=False, default="assistant_1")
    # active / trial / vacation / terminated
    status = Column(String(20), nullable=False, default="active")

    company = Column(String(200), nullable=True)
    department = Column(String(100), nullable=True)
    position = Column(String(200), nullable=True)

    hire_date = Column(Date, nullable=True)
    termination_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
