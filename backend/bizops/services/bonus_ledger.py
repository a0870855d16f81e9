"""
Bonus ledger: flattens per-project team bonuses into one record per
(project, employee) and aggregates them.

A record is "approved" when its project is completed and "pending"
otherwise; there is no separate paid state.
"""

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from bizops.schemas.bonus import BonusRecord, EmployeeBonusSummary
from bizops.services.finance import finances_for_project, safe_number

logger = logging.getLogger(__name__)

BONUS_STATUSES = ("approved", "pending")
EXCLUDED_PROJECT_STATUSES = frozenset({"cancelled"})


def _team_bonuses(project) -> dict:
    cached = getattr(project, "finances", None)
    if isinstance(cached, dict) and cached.get("team_bonuses") is not None:
        return cached["team_bonuses"]
    return {k: v.model_dump() for k, v in finances_for_project(project).team_bonuses.items()}


def _team_names(project) -> dict[str, str]:
    names = {}
    for m in getattr(project, "team", None) or []:
        if isinstance(m, dict) and m.get("person_id"):
            names[str(m["person_id"])] = m.get("name") or ""
    return names


def _naive(ts: Optional[datetime]) -> Optional[datetime]:
    return ts.replace(tzinfo=None) if ts is not None else None


def build_bonus_records(projects: Iterable[Any], employees: Iterable[Any]) -> list[BonusRecord]:
    employee_names = {str(e.id): e.name for e in employees}
    records = []
    for project in projects:
        if getattr(project, "status", None) in EXCLUDED_PROJECT_STATUSES:
            continue
        status = "approved" if project.status == "completed" else "pending"
        stamp = getattr(project, "updated_at", None) or getattr(project, "created_at", None)
        team_names = _team_names(project)
        for person_id, bonus in _team_bonuses(project).items():
            amount = safe_number(bonus.get("amount"))
            if amount == 0:
                continue
            records.append(BonusRecord(
                id=f"{project.id}:{person_id}",
                project_id=str(project.id),
                project_name=project.name,
                employee_id=str(person_id),
                employee_name=employee_names.get(str(person_id)) or team_names.get(str(person_id)) or "Unknown",
                role=bonus.get("role"),
                percent=safe_number(bonus.get("percent")),
                amount=amount,
                currency=getattr(project, "currency", None) or "KZT",
                status=status,
                date=stamp,
            ))
    return records


def chronological(records: Iterable[BonusRecord]) -> list[BonusRecord]:
    """Newest project activity first; undated records last."""
    dated = [r for r in records if r.date is not None]
    undated = [r for r in records if r.date is None]
    dated.sort(key=lambda r: _naive(r.date), reverse=True)
    return dated + undated


def filter_by_status(records: Iterable[BonusRecord], status: Optional[str]) -> list[BonusRecord]:
    if not status or status == "all":
        return list(records)
    if status not in BONUS_STATUSES:
        raise ValueError(f"Unknown bonus status: {status}")
    return [r for r in records if r.status == status]


def totals(records: Iterable[BonusRecord]) -> dict[str, float]:
    approved = pending = 0.0
    for r in records:
        if r.status == "approved":
            approved += r.amount
        else:
            pending += r.amount
    return {
        "total_amount": round(approved + pending, 2),
        "approved_amount": round(approved, 2),
        "pending_amount": round(pending, 2),
    }


def group_by_employee(records: Iterable[BonusRecord]) -> list[EmployeeBonusSummary]:
    groups: dict[str, list[BonusRecord]] = {}
    for r in records:
        groups.setdefault(r.employee_id, []).append(r)

    summaries = []
    for employee_id, items in groups.items():
        t = totals(items)
        summaries.append(EmployeeBonusSummary(
            employee_id=employee_id,
            employee_name=items[0].employee_name,
            projects_count=len({r.project_id for r in items}),
            records=chronological(items),
            **t,
        ))
    summaries.sort(key=lambda s: s.total_amount, reverse=True)
    return summaries
