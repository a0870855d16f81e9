from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Literal, Optional
import datetime as dt
from uuid import UUID

from bizops.services.roles import parse_role


EmployeeStatus = Literal["active", "trial", "vacation", "terminated"]


def _role(v: Optional[str]) -> Optional[str]:
    return v if v is None else str(parse_role(v))


def _email(v: Optional[str]) -> Optional[str]:
    if v is None or not v.strip():
        return None
    v = v.strip().lower()
    if "@" not in v:
        raise ValueError("Invalid email address")
    return v


class EmployeeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = None
    role: str = "assistant_1"
    status: EmployeeStatus = "active"
    company: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    hire_date: Optional[dt.date] = None
    notes: Optional[str] = None

    @field_validator("role")
    @classmethod
    def _valid_role(cls, v: str) -> str:
        return _role(v)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return _email(v)


class EmployeeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = None
    role: Optional[str] = None
    status: Optional[EmployeeStatus] = None
    company: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    hire_date: Optional[dt.date] = None
    notes: Optional[str] = None

    @field_validator("role")
    @classmethod
    def _valid_role(cls, v: Optional[str]) -> Optional[str]:
        return _role(v)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return _email(v)


class EmployeeTerminate(BaseModel):
    termination_date: Optional[dt.date] = None
    reason: Optional[str] = None


class EmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: str
    status: str
    company: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    hire_date: Optional[dt.date] = None
    termination_date: Optional[dt.date] = None
    notes: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
