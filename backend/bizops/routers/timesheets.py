"""Timesheets: personal time entries, submission, approval, period summaries."""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from bizops.database import get_db
from bizops.dependencies import Viewer, get_current_viewer, require_permission
from bizops.models.project import Project
from bizops.models.timesheet import TimesheetEntry
from bizops.schemas.timesheet import (
    TimeEntryCreate,
    TimeEntryDecision,
    TimeEntryOut,
    TimeEntrySelection,
    TimeEntryUpdate,
)
from bizops.services import timesheets as rules
from bizops.services.audit import log_action

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/timesheets", tags=["Timesheets"])

TEAM_VIEW_LIMIT = 500


def _mine(db: Session, viewer: Viewer):
    return db.query(TimesheetEntry).filter(
        TimesheetEntry.org_id == viewer.org_id,
        TimesheetEntry.user_id == viewer.user_id,
    )


def _load_own(db: Session, viewer: Viewer, entry_id: uuid.UUID) -> TimesheetEntry:
    entry = _mine(db, viewer).filter(TimesheetEntry.id == entry_id).first()
    if entry is None:
        raise HTTPException(status_code=404, detail="Entry not found")
    return entry


def _ensure_project(db: Session, viewer: Viewer, project_id: Optional[uuid.UUID]) -> None:
    if project_id is None:
        return
    found = db.query(Project.id).filter(Project.id == project_id, Project.org_id == viewer.org_id).first()
    if found is None:
        raise HTTPException(status_code=404, detail="Project not found")


def _enforce(check, *args, **kwargs) -> None:
    try:
        check(*args, **kwargs)
    except rules.TimesheetError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/", response_model=TimeEntryOut)
def create_entry(
    body: TimeEntryCreate,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    _ensure_project(db, viewer, body.project_id)
    _enforce(rules.ensure_within_daily_cap, db, viewer.org_id, viewer.user_id, body.date, body.hours)

    entry = TimesheetEntry(org_id=viewer.org_id, user_id=viewer.user_id, **body.model_dump())
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


@router.get("/", response_model=list[TimeEntryOut])
def list_entries(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    status: Optional[str] = Query(None),
    project_id: Optional[uuid.UUID] = Query(None),
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    q = rules.in_period(_mine(db, viewer), start, end)
    if status:
        q = q.filter(TimesheetEntry.status == status)
    if project_id:
        q = q.filter(TimesheetEntry.project_id == project_id)
    return q.order_by(TimesheetEntry.date.desc()).all()


@router.post("/submit")
def submit_entries(
    body: TimeEntrySelection,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    drafts = _mine(db, viewer).filter(
        TimesheetEntry.id.in_(body.entry_ids),
        TimesheetEntry.status == rules.DRAFT,
    ).all()
    stamp = datetime.now(timezone.utc)
    for entry in drafts:
        entry.status = rules.SUBMITTED
        entry.submitted_at = stamp
    db.commit()
    return {"ok": True, "submitted": len(drafts)}


@router.post("/approve")
def decide_entries(
    body: TimeEntryDecision,
    viewer: Viewer = Depends(require_permission("APPROVE_TIMESHEETS")),
    db: Session = Depends(get_db),
):
    pending = db.query(TimesheetEntry).filter(
        TimesheetEntry.org_id == viewer.org_id,
        TimesheetEntry.id.in_(body.entry_ids),
        TimesheetEntry.status == rules.SUBMITTED,
    ).all()
    outcome = rules.DECISIONS[body.action]
    stamp = datetime.now(timezone.utc)
    for entry in pending:
        entry.status = outcome
        entry.approved_by = viewer.user_id
        entry.approved_at = stamp
        entry.approval_comment = body.comment

    log_action(db, viewer.org_id, viewer.user_id, f"timesheet.{body.action}", "timesheet_entry", None,
               {"entries": [str(e.id) for e in pending], "comment": body.comment}, commit=False)
    db.commit()
    logger.info("Timesheet entries %s: %d by %s", outcome, len(pending), viewer.user_id)
    return {"ok": True, "action": body.action, "count": len(pending)}


@router.get("/team", response_model=list[TimeEntryOut])
def team_entries(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    status: Optional[str] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    viewer: Viewer = Depends(require_permission("APPROVE_TIMESHEETS")),
    db: Session = Depends(get_db),
):
    q = rules.in_period(db.query(TimesheetEntry).filter(TimesheetEntry.org_id == viewer.org_id), start, end)
    if status:
        q = q.filter(TimesheetEntry.status == status)
    if user_id:
        q = q.filter(TimesheetEntry.user_id == user_id)
    return q.order_by(TimesheetEntry.date.desc()).limit(TEAM_VIEW_LIMIT).all()


@router.get("/summary/weekly")
def weekly_summary(
    week_start: date = Query(...),
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    week_end = week_start + timedelta(days=6)
    entries = rules.in_period(_mine(db, viewer), week_start, week_end).all()
    return {"week_start": week_start.isoformat(), **rules.summarize(entries, week_start, week_end)}


@router.get("/summary/monthly")
def monthly_summary(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    first, last = rules.month_bounds(year, month)
    entries = rules.in_period(_mine(db, viewer), first, last).all()
    return {"year": year, "month": month, **rules.summarize(entries, first, last)}


# /{entry_id} routes stay below the fixed paths


@router.get("/{entry_id}", response_model=TimeEntryOut)
def get_entry(
    entry_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    return _load_own(db, viewer, entry_id)


@router.put("/{entry_id}", response_model=TimeEntryOut)
def update_entry(
    entry_id: uuid.UUID,
    body: TimeEntryUpdate,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    entry = _load_own(db, viewer, entry_id)
    _enforce(rules.ensure_draft, entry, "edit")

    changes = body.model_dump(exclude_unset=True)
    if "project_id" in changes:
        _ensure_project(db, viewer, changes["project_id"])
    if changes.keys() & {"date", "hours"}:
        _enforce(
            rules.ensure_within_daily_cap, db, viewer.org_id, viewer.user_id,
            changes.get("date") or entry.date,
            changes.get("hours") or entry.hours,
            exclude_id=entry.id,
        )

    for field, value in changes.items():
        setattr(entry, field, value)
    db.commit()
    db.refresh(entry)
    return entry


@router.delete("/{entry_id}")
def delete_entry(
    entry_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    entry = _load_own(db, viewer, entry_id)
    _enforce(rules.ensure_draft, entry, "delete")
    db.delete(entry)
    db.commit()
    return {"ok": True}
