"""Analytics router."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from bizops.database import get_db
from bizops.dependencies import Viewer, require_permission
from bizops.services.analytics import dashboard

router = APIRouter(prefix="/api/v1/analytics", tags=["Analytics"])


@router.get("/dashboard")
def get_dashboard(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    viewer: Viewer = Depends(require_permission("VIEW_ANALYTICS")),
    db: Session = Depends(get_db),
):
    return dashboard(db, viewer.org_id, viewer.role, start=start, end=end)
