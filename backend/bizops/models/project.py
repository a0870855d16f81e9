import uuid

from sqlalchemy import (
    Column, String, Text, Boolean, Date, DateTime, Integer, Numeric, BigInteger, ForeignKey, Uuid,
)
from sqlalchemy.sql import func

from bizops.database import Base, JSONType


class Project(Base):
    """
    Table: projects

    One normalised record per engagement. Contract terms live in typed
    columns; list-shaped data (team, amendments, yearly split, contractors)
    and the cached finance figures live in JSON columns.
    """

    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    org_id = Column(Uuid, nullable=False, index=True)

    name = Column(String(500), nullable=False)
    project_type = Column(String(50), nullable=False, default="other")
    status = Column(String(30), nullable=False, default="new", index=True)
    company_name = Column(String(200), nullable=True)
    completion_percent = Column(Integer, nullable=False, default=0)

    # ------------------------------------------------------------------
    # Client
    # ------------------------------------------------------------------

    client_name = Column(String(500), nullable=True)
    client_website = Column(String(500), nullable=True)
    client_activity = Column(Text, nullable=True)
    client_city = Column(String(200), nullable=True)

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    contract_number = Column(String(100), nullable=True, index=True)
    contract_date = Column(Date, nullable=True)
    contract_subject = Column(Text, nullable=True)
    service_start_date = Column(Date, nullable=True)
    service_end_date = Column(Date, nullable=True)
    amount_without_vat = Column(Numeric(18, 2), nullable=False, default=0)
    vat_rate = Column(Integer, nullable=False, default=12)
    currency = Column(String(3), nullable=False, default="KZT")

    is_multi_year = Column(Boolean, nullable=False, default=False)
    # [{"year": 2025, "amount": 1000000.0}, ...]
    yearly_amounts = Column(JSONType, nullable=False, default=list)
    # [{"id", "number", "date", "type", "description", "new_amount", "new_end_date", "created_by", "created_at"}]
    amendments = Column(JSONType, nullable=False, default=list)

    # ------------------------------------------------------------------
    # Team and cost basis
    # ------------------------------------------------------------------

    # [{"person_id", "name", "role", "bonus_percent", "assigned_at", "assigned_by"}]
    team = Column(JSONType, nullable=False, default=list)
    # [{"id", "name", "amount", "description"}]
    contractors = Column(JSONType, nullable=False, default=list)
    pre_expense_percent = Column(Numeric(5, 2), nullable=False, default=30)

    # [{"id", "name", "start_date", "end_date", "description"}]
    stages = Column(JSONType, nullable=False, default=list)
    # [{"id", "name", "description", "cost"}]
    additional_services = Column(JSONType, nullable=False, default=list)

    # {"enabled": bool, "visible_to": [person ids]}; NULL means unrestricted
    financial_visibility = Column(JSONType, nullable=True)
    # cached output of services.finance.calculate_finances
    finances = Column(JSONType, nullable=True)
    bonuses_computed_at = Column(DateTime(timezone=True), nullable=True)

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    created_by = Column(Uuid, nullable=True)
    approved_by = Column(Uuid, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class ProjectFile(Base):
    __tablename__ = "project_files"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    org_id = Column(Uuid, nullable=False, index=True)
    project_id = Column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_name = Column(String(500), nullable=False)
    file_type = Column(String(200), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    storage_path = Column(String(1000), nullable=False)
    # contract / scan / document / screenshot / other
    category = Column(String(30), nullable=False, default="other")
    uploaded_by = Column(Uuid, nullable=True)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
