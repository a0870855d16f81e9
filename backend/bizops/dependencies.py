"""
Request identity and permission checks.

A bearer token (see services.auth) identifies the caller. With AUTH_MODE=demo
the caller may instead be described by headers:

- X-User-Id   : profile UUID
- X-Org-Id    : organisation UUID
- X-User-Role : role string, e.g. "partner" or "manager_2"

The role stored on the profile row wins over the token / header role, so a
role change made in user management applies on the next request.
"""

import os
import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from bizops.database import get_db
from bizops.models.user import Profile
from bizops.services.auth import decode_access_token
from bizops.services.roles import has_permission, is_valid_role

AUTH_MODE = os.getenv("AUTH_MODE", "demo")  # "demo" or "jwt"

# used only when AUTH_MODE=demo and the request carries neither token nor header
DEMO_ORG_ID = "00000000-0000-0000-0000-000000000000"
DEMO_USER_ID = "00000000-0000-0000-0000-000000000000"
DEMO_ROLE = "admin"


class Viewer(BaseModel):
    user_id: uuid.UUID
    org_id: uuid.UUID
    role: str
    # employee id used in project teams, task assignees and visibility lists
    person_id: str


def _parse_uuid(value: str, status_code: int, detail: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise HTTPException(status_code=status_code, detail=detail)


def _claims(authorization: Optional[str]) -> Optional[dict]:
    token = (authorization or "").removeprefix("Bearer ").strip()
    if not token:
        return None
    claims = decode_access_token(token)
    if not claims or not claims.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return claims


def _identity(authorization, x_user_id, x_org_id, x_user_role) -> tuple[uuid.UUID, uuid.UUID, Optional[str]]:
    claims = _claims(authorization)
    demo = AUTH_MODE == "demo"
    if claims is None and not demo:
        raise HTTPException(status_code=401, detail="Not authenticated")

    if claims is not None:
        user_id = _parse_uuid(claims["sub"], 401, "Invalid token subject (user id)")
        role = claims.get("role")
    else:
        user_id = _parse_uuid(x_user_id or DEMO_USER_ID, 400, "Invalid X-User-Id (must be UUID)")
        role = x_user_role or DEMO_ROLE

    if claims is not None and claims.get("org"):
        org_id = _parse_uuid(claims["org"], 401, "Invalid token org id")
    elif demo:
        org_id = _parse_uuid(x_org_id or DEMO_ORG_ID, 400, "Invalid X-Org-Id (must be UUID)")
    else:
        raise HTTPException(status_code=401, detail="Token carries no organisation")
    return user_id, org_id, role


def get_current_viewer(
    authorization: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
    x_org_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> Viewer:
    user_id, org_id, role = _identity(authorization, x_user_id, x_org_id, x_user_role)

    person_id = str(user_id)
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if profile is not None:
        if not profile.is_active:
            raise HTTPException(status_code=401, detail="User not found or disabled")
        role = profile.role or role
        if profile.employee_id:
            person_id = str(profile.employee_id)

    if not role or not is_valid_role(role):
        raise HTTPException(status_code=403, detail=f"Unknown role: {role}")

    return Viewer(user_id=user_id, org_id=org_id, role=role, person_id=person_id)


def require_permission(permission: str):
    """Dependency factory: 403 unless the caller's role holds `permission`."""

    def _check(viewer: Viewer = Depends(get_current_viewer)) -> Viewer:
        if not has_permission(viewer.role, permission):
            raise HTTPException(status_code=403, detail=f"Permission {permission} required")
        return viewer

    return _check
