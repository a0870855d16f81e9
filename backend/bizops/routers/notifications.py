"""Notifications router. Every route works on the caller's own notifications."""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from bizops.database import get_db
from bizops.dependencies import Viewer, get_current_viewer
from bizops.models.notification import Notification
from bizops.schemas.notification import NotificationList
from bizops.services.notifications import check_deadlines

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


def _mine(db: Session, viewer: Viewer):
    return db.query(Notification).filter(
        Notification.org_id == viewer.org_id,
        Notification.user_id == viewer.user_id,
    )


@router.get("/", response_model=NotificationList)
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    q = _mine(db, viewer)
    unread = q.filter(Notification.is_read == False).count()
    if unread_only:
        q = q.filter(Notification.is_read == False)
    items = q.order_by(Notification.created_at.desc()).limit(limit).all()
    return NotificationList(unread=unread, items=items)


@router.get("/unread-count")
def unread_count(
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    return {"unread": _mine(db, viewer).filter(Notification.is_read == False).count()}


@router.post("/read-all")
def mark_all_read(
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    updated = _mine(db, viewer).filter(Notification.is_read == False).update(
        {Notification.is_read: True}, synchronize_session=False
    )
    db.commit()
    return {"ok": True, "updated": updated}


@router.post("/check-deadlines")
def run_deadline_check(
    today: Optional[date] = Query(None),
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    return {"created": check_deadlines(db, viewer.org_id, today=today)}


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    n = _mine(db, viewer).filter(Notification.id == notification_id).first()
    if not n:
        raise HTTPException(status_code=404, detail="Notification not found")
    n.is_read = True
    db.commit()
    return {"ok": True}


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    n = _mine(db, viewer).filter(Notification.id == notification_id).first()
    if not n:
        raise HTTPException(status_code=404, detail="Notification not found")
    db.delete(n)
    db.commit()
    return {"ok": True}
