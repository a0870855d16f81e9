import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.sql import func

from bizops.database import Base


class Organization(Base):
    __tablename__ = "orgs"

    org_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    org_code = Column(String(50), nullable=False, unique=True, index=True)
    description = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Profile(Base):
    """
    A login known to the hosted auth provider.

    `id` is the auth subject. `role` is a role string such as "partner" or
    "manager_2" (see services.roles). `employee_id` links the login to the HR
    record that appears in project teams and task assignees.
    """

    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(Uuid, ForeignKey("orgs.org_id", ondelete="SET NULL"), index=True)
    email = Column(String(255), index=True)
    full_name = Column(String(200))
    role = Column(String(50), nullable=False, default="assistant_1")
    is_active = Column(Boolean, nullable=False, default=True)
    employee_id = Column(Uuid, ForeignKey("employees.id", ondelete="SET NULL"), unique=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
