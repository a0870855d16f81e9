"""Bonus ledger router."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from bizops.database import get_db
from bizops.dependencies import Viewer, require_permission
from bizops.models.employee import Employee
from bizops.models.project import Project
from bizops.schemas.bonus import BonusLedgerResponse
from bizops.services import bonus_ledger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/bonuses", tags=["Bonuses"])


def _ledger(db: Session, viewer: Viewer, status: Optional[str], employee_id: Optional[str] = None) -> BonusLedgerResponse:
    projects = db.query(Project).filter(Project.org_id == viewer.org_id).all()
    employees = db.query(Employee).filter(Employee.org_id == viewer.org_id).all()

    records = bonus_ledger.build_bonus_records(projects, employees)
    if employee_id is not None:
        records = [r for r in records if r.employee_id == employee_id]
    try:
        records = bonus_ledger.filter_by_status(records, status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    records = bonus_ledger.chronological(records)
    return BonusLedgerResponse(
        **bonus_ledger.totals(records),
        records=records,
        by_employee=bonus_ledger.group_by_employee(records),
    )


@router.get("/", response_model=BonusLedgerResponse)
def list_bonuses(
    status: Optional[str] = Query(None, description="approved | pending | all"),
    viewer: Viewer = Depends(require_permission("VIEW_ALL_BONUSES")),
    db: Session = Depends(get_db),
):
    return _ledger(db, viewer, status)


@router.get("/mine", response_model=BonusLedgerResponse)
def my_bonuses(
    status: Optional[str] = Query(None, description="approved | pending | all"),
    viewer: Viewer = Depends(require_permission("VIEW_OWN_BONUS")),
    db: Session = Depends(get_db),
):
    return _ledger(db, viewer, status, employee_id=viewer.person_id)
