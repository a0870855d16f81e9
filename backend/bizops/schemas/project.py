"""Project, contract, amendment and finance schemas."""

import uuid
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bizops.services.roles import parse_role


VAT_RATES = (0, 12, 16)
CURRENCIES = ("KZT", "USD", "EUR", "RUB")
PROJECT_TYPES = (
    "financial_audit", "tax_audit", "it_audit", "real_estate_valuation",
    "business_valuation", "due_diligence", "consulting", "outsourcing", "other",
)
PROJECT_STATUSES = (
    "new", "pending_approval", "approved", "team_assembled",
    "in_progress", "completed", "cancelled",
)
AMENDMENT_TYPES = ("prolongation", "amount_change", "scope_change", "other")
FILE_CATEGORIES = ("contract", "scan", "document", "screenshot", "other")

AmendmentType = Literal["prolongation", "amount_change", "scope_change", "other"]


def _check_vat_rate(v: int) -> int:
    if v not in VAT_RATES:
        raise ValueError(f"VAT rate must be one of {list(VAT_RATES)}")
    return v


def _check_currency(v: str) -> str:
    v = (v or "").upper()
    if v not in CURRENCIES:
        raise ValueError(f"Currency must be one of {list(CURRENCIES)}")
    return v


# ── Embedded structures ──


class Amendment(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    number: str = ""
    date: date
    type: AmendmentType
    description: str = ""
    new_amount: Optional[float] = Field(default=None, ge=0)
    new_end_date: Optional[date] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class AmendmentCreate(BaseModel):
    number: str = Field(..., min_length=1, max_length=100)
    date: date
    type: AmendmentType
    description: str = ""
    new_amount: Optional[float] = Field(default=None, ge=0)
    new_end_date: Optional[date] = None


class TeamMember(BaseModel):
    person_id: str
    name: Optional[str] = None
    role: str
    # None means "use the default percent for this project role"
    bonus_percent: Optional[float] = Field(default=None, ge=0, le=100)
    assigned_at: Optional[datetime] = None
    assigned_by: Optional[str] = None

    @field_validator("role")
    @classmethod
    def _valid_role(cls, v: str) -> str:
        return str(parse_role(v))


class Contractor(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    amount: float = Field(default=0, ge=0)
    description: Optional[str] = None


class YearlyAmount(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    amount: float = Field(..., ge=0)


class FinancialVisibility(BaseModel):
    enabled: bool = True
    visible_to: list[str] = []


class ProjectStage(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str = Field(..., min_length=1, max_length=500)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    description: Optional[str] = None


class AdditionalService(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    cost: Optional[float] = Field(default=None, ge=0)


# ── Finance output ──


class TeamBonus(BaseModel):
    role: Optional[str] = None
    percent: float
    amount: float


class ProjectFinances(BaseModel):
    currency: str = "KZT"
    amount_without_vat: float = 0
    vat_rate: int = 0
    vat_amount: float = 0
    amount_with_vat: float = 0
    pre_expense_percent: float = 0
    pre_expense_amount: float = 0
    contractors_amount: float = 0
    cost_basis: float = 0
    bonus_base: float = 0
    total_bonus_amount: float = 0
    team_bonuses: dict[str, TeamBonus] = {}
    gross_profit: float = 0
    profit_margin: float = 0


class YearlyBreakdownCheck(BaseModel):
    yearly_total: float
    contract_amount: float
    difference: float
    mismatch: bool


# ── Project payloads ──


class ProjectBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=500)
    project_type: str = "other"
    company_name: Optional[str] = None

    client_name: Optional[str] = None
    client_website: Optional[str] = None
    client_activity: Optional[str] = None
    client_city: Optional[str] = None

    contract_number: Optional[str] = None
    contract_date: Optional[date] = None
    contract_subject: Optional[str] = None
    service_start_date: Optional[date] = None
    service_end_date: Optional[date] = None
    amount_without_vat: float = Field(default=0, ge=0)
    vat_rate: int = 12
    currency: str = "KZT"

    is_multi_year: bool = False
    yearly_amounts: list[YearlyAmount] = []
    contractors: list[Contractor] = []
    pre_expense_percent: float = Field(default=30, ge=0, le=100)
    financial_visibility: Optional[FinancialVisibility] = None
    stages: list[ProjectStage] = []
    additional_services: list[AdditionalService] = []

    @field_validator("project_type")
    @classmethod
    def _valid_type(cls, v: str) -> str:
        if v not in PROJECT_TYPES:
            raise ValueError(f"project_type must be one of {list(PROJECT_TYPES)}")
        return v

    @field_validator("vat_rate")
    @classmethod
    def _valid_vat(cls, v: int) -> int:
        return _check_vat_rate(v)

    @field_validator("currency")
    @classmethod
    def _valid_currency(cls, v: str) -> str:
        return _check_currency(v)


class ProjectCreate(ProjectBase):
    submit_for_approval: bool = False


class ProjectUpdate(BaseModel):
    # financial_visibility is set at creation or approval, never by the people it restricts
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=500)
    project_type: Optional[str] = None
    company_name: Optional[str] = None
    completion_percent: Optional[int] = Field(default=None, ge=0, le=100)

    client_name: Optional[str] = None
    client_website: Optional[str] = None
    client_activity: Optional[str] = None
    client_city: Optional[str] = None

    contract_number: Optional[str] = None
    contract_date: Optional[date] = None
    contract_subject: Optional[str] = None
    service_start_date: Optional[date] = None
    service_end_date: Optional[date] = None
    amount_without_vat: Optional[float] = Field(default=None, ge=0)
    vat_rate: Optional[int] = None
    currency: Optional[str] = None

    is_multi_year: Optional[bool] = None
    yearly_amounts: Optional[list[YearlyAmount]] = None
    contractors: Optional[list[Contractor]] = None
    pre_expense_percent: Optional[float] = Field(default=None, ge=0, le=100)
    stages: Optional[list[ProjectStage]] = None
    additional_services: Optional[list[AdditionalService]] = None

    @field_validator("project_type")
    @classmethod
    def _valid_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in PROJECT_TYPES:
            raise ValueError(f"project_type must be one of {list(PROJECT_TYPES)}")
        return v

    @field_validator("vat_rate")
    @classmethod
    def _valid_vat(cls, v: Optional[int]) -> Optional[int]:
        return v if v is None else _check_vat_rate(v)

    @field_validator("currency")
    @classmethod
    def _valid_currency(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _check_currency(v)


class TeamAssignRequest(BaseModel):
    team: list[TeamMember] = Field(..., min_length=1)


class TransitionRequest(BaseModel):
    comment: str = ""


class ApprovalRequest(TransitionRequest):
    financial_visibility: Optional[FinancialVisibility] = None


class GateResponse(BaseModel):
    label: str
    stage: str
    can_view: bool
    can_act: bool
    can_edit: bool
    can_complete: bool
    can_assign_team: bool
    in_default_list: bool
    can_view_finances: bool


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    org_id: uuid.UUID
    name: str
    project_type: str
    status: str
    status_label: str = ""
    company_name: Optional[str] = None
    completion_percent: int = 0

    client_name: Optional[str] = None
    client_website: Optional[str] = None
    client_activity: Optional[str] = None
    client_city: Optional[str] = None

    contract_number: Optional[str] = None
    contract_date: Optional[date] = None
    contract_subject: Optional[str] = None
    service_start_date: Optional[date] = None
    service_end_date: Optional[date] = None
    effective_end_date: Optional[date] = None
    currency: str = "KZT"
    vat_rate: int = 12

    is_multi_year: bool = False
    amendments: list[Amendment] = []
    team: list[TeamMember] = []
    team_size: int = 0
    stages: list[ProjectStage] = []
    additional_services: list[AdditionalService] = []

    # present only for viewers allowed to see finance figures
    amount_without_vat: Optional[float] = None
    yearly_amounts: Optional[list[YearlyAmount]] = None
    finances: Optional[ProjectFinances] = None

    created_by: Optional[uuid.UUID] = None
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProjectFileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    project_id: uuid.UUID
    file_name: str
    file_type: str
    file_size: int
    storage_path: str
    category: str
    uploaded_by: Optional[uuid.UUID] = None
    uploaded_at: Optional[datetime] = None


# ── Spreadsheet import ──


class ImportRowError(BaseModel):
    row: int
    errors: list[str]


class ImportResponse(BaseModel):
    created: int
    projects: list[ProjectResponse] = []
    errors: list[ImportRowError] = []


class ProjectFinanceDetail(BaseModel):
    finances: ProjectFinances
    effective_end_date: Optional[date] = None
    yearly_check: Optional[YearlyBreakdownCheck] = None
    frozen: bool = False
