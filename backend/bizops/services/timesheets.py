"""Time-tracking rules: daily cap, draft-only edits, period summaries."""

import calendar
import uuid
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from bizops.models.timesheet import TimesheetEntry
from bizops.services.finance import safe_divide

HOURS_PER_DAY = 8
MAX_DAILY_HOURS = Decimal("24")

DRAFT = "draft"
SUBMITTED = "submitted"
DECISIONS = {"approve": "approved", "reject": "rejected"}


class TimesheetError(Exception):
    """A request the time-tracking rules refuse (HTTP 400)."""


def hours_logged(db: Session, org_id, user_id, day: date, exclude_id: Optional[uuid.UUID] = None) -> Decimal:
    q = db.query(func.coalesce(func.sum(TimesheetEntry.hours), 0)).filter(
        TimesheetEntry.org_id == org_id,
        TimesheetEntry.user_id == user_id,
        TimesheetEntry.date == day,
    )
    if exclude_id is not None:
        q = q.filter(TimesheetEntry.id != exclude_id)
    return Decimal(str(q.scalar() or 0))


def ensure_within_daily_cap(db: Session, org_id, user_id, day: date, hours,
                            exclude_id: Optional[uuid.UUID] = None) -> None:
    logged = hours_logged(db, org_id, user_id, day, exclude_id)
    if logged + Decimal(str(hours)) > MAX_DAILY_HOURS:
        raise TimesheetError(f"Daily total for {day} would exceed 24 hours ({logged} already logged)")


def ensure_draft(entry: TimesheetEntry, action: str) -> None:
    if entry.status != DRAFT:
        raise TimesheetError(f"Can only {action} draft entries (this one is {entry.status})")


def in_period(q: Query, start: Optional[date], end: Optional[date]) -> Query:
    if start:
        q = q.filter(TimesheetEntry.date >= start)
    if end:
        q = q.filter(TimesheetEntry.date <= end)
    return q


def month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def working_days(start: date, end: date) -> int:
    """Weekdays in the closed range [start, end]."""
    span = (end - start).days + 1
    return sum(1 for i in range(max(span, 0)) if (start + timedelta(days=i)).weekday() < 5)


def summarize(entries: Iterable[TimesheetEntry], start: date, end: date) -> dict:
    by_day: dict[str, float] = defaultdict(float)
    by_project: dict[str, float] = defaultdict(float)
    by_status: dict[str, float] = defaultdict(float)
    count = 0
    for e in entries:
        h = float(e.hours)
        by_day[e.date.isoformat()] += h
        by_project[str(e.project_id) if e.project_id else "unassigned"] += h
        by_status[e.status] += h
        count += 1

    total = sum(by_day.values())
    expected = working_days(start, end) * HOURS_PER_DAY
    return {
        "total_hours": total,
        "expected_hours": expected,
        "utilization": round(safe_divide(total, expected) * 100, 1),
        "by_day": dict(by_day),
        "by_project": dict(by_project),
        "by_status": dict(by_status),
        "entries": count,
    }
