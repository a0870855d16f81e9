"""
Organisational roles and the permission table.

A role string such as "manager_2" is parsed into a (family, level) pair so
rules can be written once per family instead of once per leveled variant:

  ceo               -> Role("ceo", None)
  manager_2         -> Role("manager", 2)
  tax_specialist_1  -> Role("tax_specialist", 1)
"""

import re
from typing import NamedTuple, Optional, Union


# family -> allowed seniority levels (empty tuple = no level suffix)
ROLE_FAMILIES: dict[str, tuple[int, ...]] = {
    "ceo": (),
    "deputy_director": (),
    "company_director": (),
    "procurement": (),
    "partner": (),
    "manager": (1, 2, 3),
    "supervisor": (1, 2, 3),
    "tax_specialist": (1, 2),
    "assistant": (1, 2, 3),
    "contractor": (),
    "hr": (),
    "accountant": (),
    "admin": (),
}

ROLE_LABELS = {
    "ceo": "Chief Executive Officer",
    "deputy_director": "Deputy Director",
    "company_director": "Company Director",
    "procurement": "Procurement",
    "partner": "Partner",
    "manager": "Manager",
    "supervisor": "Supervisor",
    "tax_specialist": "Tax Specialist",
    "assistant": "Assistant",
    "contractor": "Contractor",
    "hr": "HR Specialist",
    "accountant": "Accountant",
    "admin": "Administrator",
}

_LEVELED = re.compile(r"^([a-z_]+?)_(\d+)$")


class Role(NamedTuple):
    family: str
    level: Optional[int] = None

    def __str__(self) -> str:
        return self.family if self.level is None else f"{self.family}_{self.level}"

    @property
    def label(self) -> str:
        base = ROLE_LABELS.get(self.family, self.family)
        return base if self.level is None else f"{base} {self.level}"


def parse_role(value: Union[str, Role]) -> Role:
    """Parse "manager_2" / "partner" into a Role. Raises ValueError on unknown roles."""
    if isinstance(value, Role):
        return value
    raw = (value or "").strip().lower()
    if raw in ROLE_FAMILIES:
        if ROLE_FAMILIES[raw]:
            raise ValueError(f"Role '{raw}' requires a seniority level")
        return Role(raw)
    m = _LEVELED.match(raw)
    if m:
        family, level = m.group(1), int(m.group(2))
        if level in ROLE_FAMILIES.get(family, ()):
            return Role(family, level)
    raise ValueError(f"Unknown role: {value!r}")


def is_valid_role(value: str) -> bool:
    try:
        parse_role(value)
    except ValueError:
        return False
    return True


def all_roles() -> list[Role]:
    roles = []
    for family, levels in ROLE_FAMILIES.items():
        if levels:
            roles.extend(Role(family, lvl) for lvl in levels)
        else:
            roles.append(Role(family))
    return roles


# ---------------------------------------------------
# Permissions
# ---------------------------------------------------

# permission -> role families (a family grants every level)
PERMISSIONS: dict[str, frozenset[str]] = {
    "VIEW_FINANCIAL_DATA": frozenset({"ceo", "admin"}),
    "VIEW_OWN_BONUS": frozenset({"partner"}),
    "VIEW_ALL_BONUSES": frozenset({"ceo", "deputy_director"}),
    "VIEW_ANALYTICS": frozenset({"ceo", "deputy_director", "company_director", "partner", "admin"}),

    "CREATE_PROJECT": frozenset({"procurement", "admin"}),
    "IMPORT_PROJECTS": frozenset({"procurement", "admin"}),
    "APPROVE_PROJECT": frozenset({"deputy_director", "ceo"}),
    "ASSIGN_TEAM": frozenset({"deputy_director"}),
    "CANCEL_PROJECT": frozenset({"deputy_director", "ceo"}),
    "ADD_AMENDMENT": frozenset({"procurement", "partner", "deputy_director", "ceo", "admin"}),
    "UPLOAD_FILES": frozenset({"procurement", "partner", "manager", "deputy_director", "ceo", "admin"}),
    "MANAGE_TASKS": frozenset({"partner", "manager", "supervisor", "admin"}),
    "REVIEW_WORK_PAPERS": frozenset({"ceo", "deputy_director", "partner", "manager"}),

    "APPROVE_TIMESHEETS": frozenset({"partner", "manager", "deputy_director", "ceo", "hr", "admin"}),

    "MANAGE_USERS": frozenset({"ceo", "hr", "admin"}),
    "MANAGE_EMPLOYEES": frozenset({"ceo", "hr", "admin"}),
}


def has_permission(role: Union[str, Role], permission: str) -> bool:
    try:
        parsed = parse_role(role)
    except ValueError:
        return False
    allowed = PERMISSIONS.get(permission)
    if allowed is None:
        return False
    return parsed.family in allowed


def permissions_for(role: Union[str, Role]) -> list[str]:
    return sorted(p for p in PERMISSIONS if has_permission(role, p))


# ---------------------------------------------------
# Default bonus percents per project role
# ---------------------------------------------------

PROJECT_ROLE_BONUS_PERCENTS: dict[str, float] = {
    "partner": 29,
    "manager_1": 10,
    "manager_2": 8,
    "manager_3": 6,
    "supervisor_3": 15,
    "supervisor_2": 10,
    "supervisor_1": 6,
    "tax_specialist_1": 3,
    "tax_specialist_2": 3,
    "assistant_3": 4,
    "assistant_2": 4,
    "assistant_1": 2,
}


def default_bonus_percent(role: Union[str, Role]) -> float:
    try:
        key = str(parse_role(role))
    except ValueError:
        return 0.0
    return float(PROJECT_ROLE_BONUS_PERCENTS.get(key, 0))
