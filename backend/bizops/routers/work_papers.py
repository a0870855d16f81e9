"""
Audit working papers (nested under a project).

Preparers fill in `data` and hand the paper over with status
awaiting_review. A reviewer then approves it (-> completed), rejects it
(-> rejected, back to the preparer) or leaves a comment; every review is
appended to `review_history`.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from bizops.database import get_db
from bizops.dependencies import Viewer, get_current_viewer, require_permission
from bizops.models.project import Project
from bizops.models.work_paper import WorkPaper
from bizops.schemas.work_paper import (
    ReviewEntry,
    ReviewRequest,
    WorkPaperCreate,
    WorkPaperResponse,
    WorkPaperUpdate,
)
from bizops.services.audit import log_action
from bizops.services.roles import has_permission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/projects/{project_id}/work-papers", tags=["Work papers"])

REVIEW_RESULT = {"approved": "completed", "rejected": "rejected"}


def _get_project(db: Session, org_id: uuid.UUID, project_id: uuid.UUID) -> Project:
    project = db.query(Project).filter(Project.id == project_id, Project.org_id == org_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _get_paper(db: Session, org_id: uuid.UUID, project_id: uuid.UUID, paper_id: uuid.UUID) -> WorkPaper:
    paper = db.query(WorkPaper).filter(
        WorkPaper.id == paper_id,
        WorkPaper.project_id == project_id,
        WorkPaper.org_id == org_id,
    ).first()
    if not paper:
        raise HTTPException(status_code=404, detail="Work paper not found")
    return paper


def _can_review(paper: WorkPaper, viewer: Viewer) -> bool:
    return viewer.person_id == paper.reviewer_id or has_permission(viewer.role, "REVIEW_WORK_PAPERS")


@router.get("/", response_model=list[WorkPaperResponse])
def list_work_papers(
    project_id: uuid.UUID,
    status: Optional[str] = Query(None),
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    _get_project(db, viewer.org_id, project_id)
    q = db.query(WorkPaper).filter(WorkPaper.project_id == project_id, WorkPaper.org_id == viewer.org_id)
    if status:
        q = q.filter(WorkPaper.status == status)
    return q.order_by(WorkPaper.code).all()


@router.post("/", response_model=WorkPaperResponse)
def create_work_paper(
    project_id: uuid.UUID,
    body: WorkPaperCreate,
    viewer: Viewer = Depends(require_permission("MANAGE_TASKS")),
    db: Session = Depends(get_db),
):
    project = _get_project(db, viewer.org_id, project_id)
    if project.status == "cancelled":
        raise HTTPException(status_code=400, detail="Cannot add work papers to a cancelled project")
    taken = db.query(WorkPaper.id).filter(
        WorkPaper.project_id == project.id,
        WorkPaper.code == body.code,
    ).first()
    if taken:
        raise HTTPException(status_code=409, detail=f"Work paper {body.code} already exists on this project")

    paper = WorkPaper(
        org_id=viewer.org_id,
        project_id=project.id,
        template_id=body.template_id,
        code=body.code,
        name=body.name,
        status="not_started",
        data=dict(body.data),
        review_history=[],
        assigned_to=body.assigned_to,
        reviewer_id=body.reviewer_id,
    )
    db.add(paper)
    db.commit()
    db.refresh(paper)
    logger.info("Work paper %s created on project %s", paper.code, project.id)
    return paper


@router.get("/{paper_id}", response_model=WorkPaperResponse)
def get_work_paper(
    project_id: uuid.UUID,
    paper_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    return _get_paper(db, viewer.org_id, project_id, paper_id)


@router.put("/{paper_id}", response_model=WorkPaperResponse)
def update_work_paper(
    project_id: uuid.UUID,
    paper_id: uuid.UUID,
    body: WorkPaperUpdate,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    paper = _get_paper(db, viewer.org_id, project_id, paper_id)
    manager = has_permission(viewer.role, "MANAGE_TASKS")
    if not manager and viewer.person_id != paper.assigned_to:
        raise HTTPException(status_code=403, detail="Only task managers or the assignee can edit this work paper")
    if paper.status == "completed":
        raise HTTPException(status_code=400, detail="Approved work papers are read-only")

    changes = body.model_dump(exclude_unset=True)
    if not manager and ({"assigned_to", "reviewer_id"} & changes.keys()):
        raise HTTPException(status_code=403, detail="Only task managers can reassign work papers")

    new_status = changes.get("status", paper.status)
    if "data" in changes and new_status == "not_started":
        new_status = "in_progress"
    if new_status != "not_started" and paper.started_at is None:
        paper.started_at = datetime.now(timezone.utc)
    changes["status"] = new_status

    for field, val in changes.items():
        setattr(paper, field, val)
    db.commit()
    db.refresh(paper)
    return paper


@router.post("/{paper_id}/review", response_model=WorkPaperResponse)
def review_work_paper(
    project_id: uuid.UUID,
    paper_id: uuid.UUID,
    body: ReviewRequest,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    paper = _get_paper(db, viewer.org_id, project_id, paper_id)
    if not _can_review(paper, viewer):
        raise HTTPException(status_code=403, detail="You cannot review this work paper")
    if body.status in REVIEW_RESULT and paper.status != "awaiting_review":
        raise HTTPException(status_code=400, detail=f"Work paper is {paper.status}, not awaiting review")

    entry = ReviewEntry(
        id=uuid.uuid4().hex,
        reviewer_id=viewer.person_id,
        timestamp=datetime.now(timezone.utc),
        comment=body.comment,
        status=body.status,
    )
    paper.review_history = [*(paper.review_history or []), entry.model_dump(mode="json")]
    if body.status in REVIEW_RESULT:
        paper.status = REVIEW_RESULT[body.status]
        paper.completed_at = datetime.now(timezone.utc) if body.status == "approved" else None

    log_action(db, viewer.org_id, viewer.user_id, f"work_paper.{body.status}", "work_paper", paper.id,
               {"code": paper.code, "comment": body.comment}, commit=False)
    db.commit()
    db.refresh(paper)
    return paper


@router.delete("/{paper_id}")
def delete_work_paper(
    project_id: uuid.UUID,
    paper_id: uuid.UUID,
    viewer: Viewer = Depends(require_permission("MANAGE_TASKS")),
    db: Session = Depends(get_db),
):
    paper = _get_paper(db, viewer.org_id, project_id, paper_id)
    db.delete(paper)
    db.commit()
    return {"ok": True}
