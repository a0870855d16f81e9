from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional
from datetime import datetime
from uuid import UUID

from bizops.services.roles import parse_role


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: Optional[UUID] = None
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: str
    role_label: str = ""
    is_active: bool
    employee_id: Optional[UUID] = None
    created_at: Optional[datetime] = None


class RoleChange(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def _valid_role(cls, v: str) -> str:
        return str(parse_role(v))


class EmployeeLink(BaseModel):
    employee_id: Optional[UUID] = None


class PermissionMatrix(BaseModel):
    user_id: UUID
    role: str
    role_label: str
    person_id: str
    permissions: list[str]
