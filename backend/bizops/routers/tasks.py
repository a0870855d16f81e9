"""Tasks router (nested under a project)."""

import uuid
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from bizops.database import get_db
from bizops.dependencies import Viewer, get_current_viewer, require_permission
from bizops.models.project import Project
from bizops.models.task import Task
from bizops.schemas.task import ChecklistItem, TaskCreate, TaskResponse, TaskUpdate
from bizops.services import notifications
from bizops.services.roles import has_permission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/projects/{project_id}/tasks", tags=["Tasks"])


def _get_project(db: Session, org_id: uuid.UUID, project_id: uuid.UUID) -> Project:
    project = db.query(Project).filter(Project.id == project_id, Project.org_id == org_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _get_task(db: Session, org_id: uuid.UUID, project_id: uuid.UUID, task_id: uuid.UUID) -> Task:
    task = db.query(Task).filter(
        Task.id == task_id,
        Task.project_id == project_id,
        Task.org_id == org_id,
    ).first()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _can_modify(task: Task, viewer: Viewer) -> bool:
    return has_permission(viewer.role, "MANAGE_TASKS") or viewer.person_id in (task.assignees or [])


def _open_required_items(checklist) -> list[str]:
    items = [c if isinstance(c, ChecklistItem) else ChecklistItem.model_validate(c) for c in checklist or []]
    return [c.text for c in items if c.required and not c.done]


@router.get("/", response_model=list[TaskResponse])
def list_tasks(
    project_id: uuid.UUID,
    status: Optional[str] = Query(None),
    assignee: Optional[str] = Query(None),
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    _get_project(db, viewer.org_id, project_id)
    q = db.query(Task).filter(Task.project_id == project_id, Task.org_id == viewer.org_id)
    if status:
        q = q.filter(Task.status == status)
    tasks = q.order_by(Task.created_at).all()
    if assignee:
        tasks = [t for t in tasks if assignee in (t.assignees or [])]
    return tasks


@router.post("/", response_model=TaskResponse)
def create_task(
    project_id: uuid.UUID,
    body: TaskCreate,
    viewer: Viewer = Depends(require_permission("MANAGE_TASKS")),
    db: Session = Depends(get_db),
):
    project = _get_project(db, viewer.org_id, project_id)
    if project.status == "cancelled":
        raise HTTPException(status_code=400, detail="Cannot add tasks to a cancelled project")
    if body.status == "done" and _open_required_items(body.checklist):
        raise HTTPException(status_code=400, detail="Required checklist items are not done")

    task = Task(
        org_id=viewer.org_id,
        project_id=project.id,
        reporter_id=viewer.user_id,
        title=body.title,
        description=body.description,
        status=body.status,
        priority=body.priority,
        assignees=list(dict.fromkeys(body.assignees)),
        checklist=[c.model_dump() for c in body.checklist],
        labels=body.labels,
        due_at=body.due_at,
        estimate_hours=body.estimate_hours,
        spent_hours=0,
        completed_at=datetime.now(timezone.utc) if body.status == "done" else None,
    )
    db.add(task)
    db.flush()
    notifications.task_assigned(db, task, task.assignees)
    db.commit()
    db.refresh(task)
    return task


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    project_id: uuid.UUID,
    task_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    return _get_task(db, viewer.org_id, project_id, task_id)


@router.put("/{task_id}", response_model=TaskResponse)
def update_task(
    project_id: uuid.UUID,
    task_id: uuid.UUID,
    body: TaskUpdate,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    task = _get_task(db, viewer.org_id, project_id, task_id)
    if not _can_modify(task, viewer):
        raise HTTPException(status_code=403, detail="Only task managers or assignees can change this task")

    changes = body.model_dump(exclude_unset=True)
    if "checklist" in changes:
        changes["checklist"] = [c.model_dump() for c in body.checklist or []]
    if "assignees" in changes:
        changes["assignees"] = list(dict.fromkeys(body.assignees or []))

    new_status = changes.get("status", task.status)
    if new_status == "done":
        # holds for every update that leaves the task done, not only the move into done
        missing = _open_required_items(changes.get("checklist", task.checklist))
        if missing:
            raise HTTPException(status_code=400, detail=f"Required checklist items are not done: {', '.join(missing)}")
        if task.status != "done":
            task.completed_at = datetime.now(timezone.utc)
    else:
        task.completed_at = None

    added = [a for a in changes.get("assignees", []) if a not in (task.assignees or [])]
    for field, val in changes.items():
        setattr(task, field, val)
    if added:
        notifications.task_assigned(db, task, added)

    db.commit()
    db.refresh(task)
    return task


@router.delete("/{task_id}")
def delete_task(
    project_id: uuid.UUID,
    task_id: uuid.UUID,
    viewer: Viewer = Depends(require_permission("MANAGE_TASKS")),
    db: Session = Depends(get_db),
):
    task = _get_task(db, viewer.org_id, project_id, task_id)
    db.delete(task)
    db.commit()
    return {"ok": True}
