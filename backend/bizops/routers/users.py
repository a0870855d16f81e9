"""User / role administration router."""

import uuid
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from bizops.database import get_db
from bizops.dependencies import Viewer, get_current_viewer, require_permission
from bizops.models.employee import Employee
from bizops.models.user import Profile
from bizops.schemas.user import EmployeeLink, PermissionMatrix, ProfileResponse, RoleChange
from bizops.services.audit import log_action
from bizops.services.roles import all_roles, parse_role, permissions_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _role_label(role: str) -> str:
    try:
        return parse_role(role).label
    except ValueError:
        return role


def _to_response(p: Profile) -> ProfileResponse:
    resp = ProfileResponse.model_validate(p)
    resp.role_label = _role_label(p.role)
    return resp


def _get_profile(db: Session, org_id: uuid.UUID, user_id: uuid.UUID) -> Profile:
    p = db.query(Profile).filter(Profile.id == user_id, Profile.org_id == org_id).first()
    if not p:
        raise HTTPException(status_code=404, detail="User not found")
    return p


@router.get("/me/permissions", response_model=PermissionMatrix)
def my_permissions(viewer: Viewer = Depends(get_current_viewer)):
    return PermissionMatrix(
        user_id=viewer.user_id,
        role=viewer.role,
        role_label=_role_label(viewer.role),
        person_id=viewer.person_id,
        permissions=permissions_for(viewer.role),
    )


@router.get("/roles")
def list_roles(viewer: Viewer = Depends(get_current_viewer)):
    return [{"role": str(r), "family": r.family, "level": r.level, "label": r.label} for r in all_roles()]


@router.get("/", response_model=list[ProfileResponse])
def list_users(
    viewer: Viewer = Depends(require_permission("MANAGE_USERS")),
    db: Session = Depends(get_db),
):
    rows = db.query(Profile).filter(Profile.org_id == viewer.org_id).order_by(Profile.full_name).all()
    return [_to_response(p) for p in rows]


@router.put("/{user_id}/role", response_model=ProfileResponse)
def change_role(
    user_id: uuid.UUID,
    body: RoleChange,
    viewer: Viewer = Depends(require_permission("MANAGE_USERS")),
    db: Session = Depends(get_db),
):
    p = _get_profile(db, viewer.org_id, user_id)
    old = p.role
    p.role = body.role
    log_action(db, viewer.org_id, viewer.user_id, "role_change", "profile", p.id,
               {"from": old, "to": body.role}, commit=False)
    db.commit()
    db.refresh(p)
    logger.info("Role of %s changed %s -> %s by %s", p.id, old, body.role, viewer.user_id)
    return _to_response(p)


def _set_active(db: Session, viewer: Viewer, user_id: uuid.UUID, active: bool) -> ProfileResponse:
    if user_id == viewer.user_id and not active:
        raise HTTPException(status_code=400, detail="You cannot deactivate yourself")
    p = _get_profile(db, viewer.org_id, user_id)
    p.is_active = active
    log_action(db, viewer.org_id, viewer.user_id, "activate" if active else "deactivate", "profile", p.id,
               commit=False)
    db.commit()
    db.refresh(p)
    return _to_response(p)


@router.post("/{user_id}/activate", response_model=ProfileResponse)
def activate_user(
    user_id: uuid.UUID,
    viewer: Viewer = Depends(require_permission("MANAGE_USERS")),
    db: Session = Depends(get_db),
):
    return _set_active(db, viewer, user_id, True)


@router.post("/{user_id}/deactivate", response_model=ProfileResponse)
def deactivate_user(
    user_id: uuid.UUID,
    viewer: Viewer = Depends(require_permission("MANAGE_USERS")),
    db: Session = Depends(get_db),
):
    return _set_active(db, viewer, user_id, False)


@router.put("/{user_id}/employee", response_model=ProfileResponse)
def link_employee(
    user_id: uuid.UUID,
    body: EmployeeLink,
    viewer: Viewer = Depends(require_permission("MANAGE_USERS")),
    db: Session = Depends(get_db),
):
    p = _get_profile(db, viewer.org_id, user_id)
    if body.employee_id is not None:
        emp = db.query(Employee).filter(
            Employee.id == body.employee_id,
            Employee.org_id == viewer.org_id,
        ).first()
        if not emp:
            raise HTTPException(status_code=404, detail="Employee not found")
        taken = db.query(Profile).filter(
            Profile.employee_id == body.employee_id,
            Profile.id != p.id,
        ).first()
        if taken:
            raise HTTPException(status_code=409, detail="Employee is already linked to another user")

    p.employee_id = body.employee_id
    log_action(db, viewer.org_id, viewer.user_id, "link_employee", "profile", p.id,
               {"employee_id": str(body.employee_id) if body.employee_id else None}, commit=False)
    db.commit()
    db.refresh(p)
    return _to_response(p)
