from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


BonusStatus = Literal["approved", "pending"]


class BonusRecord(BaseModel):
    id: str
    project_id: str
    project_name: str
    employee_id: str
    employee_name: str
    role: Optional[str] = None
    percent: float
    amount: float
    currency: str = "KZT"
    status: BonusStatus
    date: Optional[datetime] = None


class EmployeeBonusSummary(BaseModel):
    employee_id: str
    employee_name: str
    total_amount: float
    approved_amount: float
    pending_amount: float
    projects_count: int
    records: list[BonusRecord] = []


class BonusLedgerResponse(BaseModel):
    total_amount: float
    approved_amount: float
    pending_amount: float
    records: list[BonusRecord] = []
    by_employee: list[EmployeeBonusSummary] = []
