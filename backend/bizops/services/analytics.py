"""Dashboard figures. Every number goes through safe_number so a bad row never breaks the page."""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from bizops.models.project import Project
from bizops.models.timesheet import TimesheetEntry
from bizops.services.finance import effective_end_date, finances_for_project, safe_divide, safe_number
from bizops.services.roles import has_permission

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("new", "pending_approval", "approved", "team_assembled", "in_progress")


def _finances(project) -> dict:
    if isinstance(project.finances, dict) and project.finances:
        return project.finances
    return finances_for_project(project).model_dump()


def dashboard(
    db: Session,
    org_id,
    role: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None,
) -> dict:
    today = today or datetime.now(timezone.utc).date()
    projects = db.query(Project).filter(Project.org_id == org_id).all()

    by_status: dict[str, int] = {}
    by_type: dict[str, int] = {}
    overdue = 0
    completion_total = 0.0
    for p in projects:
        by_status[p.status] = by_status.get(p.status, 0) + 1
        by_type[p.project_type] = by_type.get(p.project_type, 0) + 1
        completion_total += safe_number(p.completion_percent)
        due = effective_end_date(p.service_end_date, p.amendments)
        if p.status in OPEN_STATUSES and due is not None and due < today:
            overdue += 1

    q = db.query(TimesheetEntry).filter(TimesheetEntry.org_id == org_id)
    if start:
        q = q.filter(TimesheetEntry.date >= start)
    if end:
        q = q.filter(TimesheetEntry.date <= end)
    hours = sum(safe_number(e.hours) for e in q.all())

    result = {
        "total_projects": len(projects),
        "active_projects": sum(by_status.get(s, 0) for s in OPEN_STATUSES),
        "completed_projects": by_status.get("completed", 0),
        "projects_by_status": by_status,
        "projects_by_type": by_type,
        "average_completion": round(safe_divide(completion_total, len(projects)), 1),
        "overdue_projects": overdue,
        "timesheet_hours": round(hours, 1),
        "revenue": None,
    }

    if has_permission(role, "VIEW_FINANCIAL_DATA"):
        counted = [p for p in projects if p.status != "cancelled"]
        figures = [_finances(p) for p in counted]
        total_with_vat = sum(safe_number(f.get("amount_with_vat")) for f in figures)
        total_without_vat = sum(safe_number(f.get("amount_without_vat")) for f in figures)
        result["revenue"] = {
            "total_amount_with_vat": round(total_with_vat, 2),
            "total_amount_without_vat": round(total_without_vat, 2),
            "average_budget": round(safe_divide(total_without_vat, len(counted)), 2),
            "total_bonuses": round(sum(safe_number(f.get("total_bonus_amount")) for f in figures), 2),
            "gross_profit": round(sum(safe_number(f.get("gross_profit")) for f in figures), 2),
        }

    logger.debug("Dashboard for org %s: %d projects", org_id, len(projects))
    return result
