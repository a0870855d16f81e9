"""Employees (HR records) router."""

import uuid
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bizops.database import get_db
from bizops.dependencies import Viewer, get_current_viewer, require_permission
from bizops.models.employee import Employee
from bizops.schemas.employee import EmployeeCreate, EmployeeResponse, EmployeeTerminate, EmployeeUpdate
from bizops.services.audit import log_action

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/employees", tags=["Employees"])


def _get_employee(db: Session, org_id: uuid.UUID, employee_id: uuid.UUID) -> Employee:
    emp = db.query(Employee).filter(Employee.id == employee_id, Employee.org_id == org_id).first()
    if not emp:
        raise HTTPException(status_code=404, detail="Employee not found")
    return emp


def _check_email_free(db: Session, org_id: uuid.UUID, email: Optional[str], exclude_id=None) -> None:
    if not email:
        return
    q = db.query(Employee).filter(Employee.org_id == org_id, Employee.email == email)
    if exclude_id is not None:
        q = q.filter(Employee.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=409, detail=f"An employee with email {email} already exists")


def _commit(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Duplicate employee email rejected by the database")
        raise HTTPException(status_code=409, detail="An employee with this email already exists")


@router.get("/", response_model=list[EmployeeResponse])
def list_employees(
    status: Optional[str] = Query(None),
    company: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    q = db.query(Employee).filter(Employee.org_id == viewer.org_id)
    if status:
        q = q.filter(Employee.status == status)
    if company:
        q = q.filter(Employee.company == company)
    if department:
        q = q.filter(Employee.department == department)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Employee.name.ilike(like), Employee.email.ilike(like), Employee.position.ilike(like)))
    return q.order_by(Employee.name).all()


@router.post("/", response_model=EmployeeResponse)
def create_employee(
    body: EmployeeCreate,
    viewer: Viewer = Depends(require_permission("MANAGE_EMPLOYEES")),
    db: Session = Depends(get_db),
):
    _check_email_free(db, viewer.org_id, body.email)
    emp = Employee(org_id=viewer.org_id, **body.model_dump())
    db.add(emp)
    _commit(db)
    db.refresh(emp)

    log_action(db, viewer.org_id, viewer.user_id, "create", "employee", emp.id, {"name": emp.name})
    return emp


@router.get("/{employee_id}", response_model=EmployeeResponse)
def get_employee(
    employee_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    return _get_employee(db, viewer.org_id, employee_id)


@router.put("/{employee_id}", response_model=EmployeeResponse)
def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    viewer: Viewer = Depends(require_permission("MANAGE_EMPLOYEES")),
    db: Session = Depends(get_db),
):
    emp = _get_employee(db, viewer.org_id, employee_id)
    changes = body.model_dump(exclude_unset=True)
    if "email" in changes:
        _check_email_free(db, viewer.org_id, changes["email"], exclude_id=emp.id)

    for field, val in changes.items():
        setattr(emp, field, val)
    _commit(db)
    db.refresh(emp)

    log_action(db, viewer.org_id, viewer.user_id, "update", "employee", emp.id, {"fields": sorted(changes)})
    return emp


@router.post("/{employee_id}/terminate", response_model=EmployeeResponse)
def terminate_employee(
    employee_id: uuid.UUID,
    body: EmployeeTerminate,
    viewer: Viewer = Depends(require_permission("MANAGE_EMPLOYEES")),
    db: Session = Depends(get_db),
):
    emp = _get_employee(db, viewer.org_id, employee_id)
    if emp.status == "terminated":
        raise HTTPException(status_code=400, detail="Employee is already terminated")

    emp.status = "terminated"
    emp.termination_date = body.termination_date or date.today()
    if body.reason:
        emp.notes = f"{emp.notes}\n{body.reason}" if emp.notes else body.reason
    db.commit()
    db.refresh(emp)

    log_action(db, viewer.org_id, viewer.user_id, "terminate", "employee", emp.id,
               {"termination_date": emp.termination_date.isoformat()})
    return emp
