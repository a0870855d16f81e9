"""
In-app notifications.

Event helpers fan a project or task event out to the profiles concerned;
`check_deadlines` turns approaching and missed due dates into warnings and
errors, at most once per user, title and day.
"""

import logging
import os
import uuid
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from bizops.models.notification import Notification
from bizops.models.project import Project
from bizops.models.task import Task
from bizops.models.user import Profile
from bizops.services.access import PRIMARY_STATUS
from bizops.services.finance import effective_end_date
from bizops.services.roles import parse_role

logger = logging.getLogger(__name__)

DEADLINE_WARNING_DAYS = int(os.getenv("DEADLINE_WARNING_DAYS", "7"))

NOTIFICATION_TYPES = ("info", "success", "warning", "error")


def notify(
    db: Session,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    title: str,
    message: str = "",
    type: str = "info",
    action_url: Optional[str] = None,
) -> Notification:
    """Queue a notification on the session; the caller commits."""
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {type}")
    n = Notification(
        org_id=org_id,
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        action_url=action_url,
        created_at=datetime.now(timezone.utc),
    )
    db.add(n)
    return n


# ── Recipients ──


def profiles_for_people(db: Session, org_id, person_ids: Iterable) -> list[uuid.UUID]:
    """Profile ids for team / assignee ids (linked employee id, or the profile id itself)."""
    wanted = {str(p) for p in person_ids if p}
    if not wanted:
        return []
    rows = db.query(Profile).filter(Profile.org_id == org_id, Profile.is_active == True).all()
    return [
        p.id for p in rows
        if str(p.id) in wanted or (p.employee_id is not None and str(p.employee_id) in wanted)
    ]


def profiles_for_roles(db: Session, org_id, families: Iterable[str]) -> list[uuid.UUID]:
    families = set(families)
    out = []
    rows = db.query(Profile).filter(Profile.org_id == org_id, Profile.is_active == True).all()
    for p in rows:
        try:
            if parse_role(p.role).family in families:
                out.append(p.id)
        except ValueError:
            continue
    return out


def _team_ids(project) -> list[str]:
    return [str(m.get("person_id")) for m in project.team or [] if isinstance(m, dict) and m.get("person_id")]


def _project_url(project) -> str:
    return f"/projects/{project.id}"


# ── Project / task events ──


def project_submitted(db: Session, project) -> int:
    users = profiles_for_roles(db, project.org_id, {"deputy_director", "ceo"})
    for uid in users:
        notify(db, project.org_id, uid, "New project awaiting approval",
               f"{project.name} ({project.client_name or 'no client'}) needs approval",
               "info", _project_url(project))
    return len(users)


def project_approved(db: Session, project) -> int:
    users = set(profiles_for_roles(db, project.org_id, {"deputy_director"}))
    if project.created_by:
        users.add(project.created_by)
    for uid in users:
        notify(db, project.org_id, uid, "Project approved - assign the team",
               f"{project.name} was approved and is waiting for a team", "success", _project_url(project))
    return len(users)


def team_assembled(db: Session, project) -> int:
    users = profiles_for_people(db, project.org_id, _team_ids(project))
    for uid in users:
        notify(db, project.org_id, uid, "You have been added to a project team",
               f"Team for {project.name} is assembled; work can start", "info", _project_url(project))
    return len(users)


def project_completed(db: Session, project) -> int:
    users = profiles_for_people(db, project.org_id, _team_ids(project))
    for uid in users:
        notify(db, project.org_id, uid, "Project completed",
               f"{project.name} is completed and bonuses have been computed", "success", _project_url(project))
    return len(users)


def task_assigned(db: Session, task, person_ids: Iterable) -> int:
    users = profiles_for_people(db, task.org_id, person_ids)
    for uid in users:
        notify(db, task.org_id, uid, "New task assigned", task.title, "info",
               f"/projects/{task.project_id}/tasks/{task.id}")
    return len(users)


# ── Deadlines ──


def _deadline(kind: str, name: str, due: date, today: date, warning_days: int):
    days_left = (due - today).days
    if days_left < 0:
        return f"{kind} overdue: {name}", f"Deadline was {due.isoformat()}", "error"
    if days_left <= warning_days:
        return (f"{kind} deadline approaching: {name}",
                f"{days_left} day(s) left (due {due.isoformat()})", "warning")
    return None


def _already_sent(db: Session, user_id, title: str, today: date) -> bool:
    rows = db.query(Notification.created_at).filter(
        Notification.user_id == user_id,
        Notification.title == title,
    ).all()
    return any(r[0] is not None and r[0].date() == today for r in rows)


def check_deadlines(
    db: Session,
    org_id: uuid.UUID,
    today: Optional[date] = None,
    warning_days: int = DEADLINE_WARNING_DAYS,
) -> int:
    """Create deadline notifications for running projects and open tasks. Returns how many were created."""
    today = today or datetime.now(timezone.utc).date()
    pending: list[tuple[uuid.UUID, tuple, str]] = []

    projects = db.query(Project).filter(Project.org_id == org_id).all()
    for p in projects:
        if PRIMARY_STATUS.get(p.status) != "in_progress":
            continue
        due = effective_end_date(p.service_end_date, p.amendments)
        if due is None:
            continue
        hit = _deadline("Project", p.name, due, today, warning_days)
        if hit:
            for uid in profiles_for_people(db, org_id, _team_ids(p)):
                pending.append((uid, hit, _project_url(p)))

    tasks = db.query(Task).filter(Task.org_id == org_id, Task.status != "done", Task.due_at.isnot(None)).all()
    for t in tasks:
        hit = _deadline("Task", t.title, t.due_at.date(), today, warning_days)
        if hit:
            for uid in profiles_for_people(db, org_id, t.assignees or []):
                pending.append((uid, hit, f"/projects/{t.project_id}/tasks/{t.id}"))

    created = 0
    seen = set()
    for uid, (title, message, kind), url in pending:
        if (uid, title) in seen or _already_sent(db, uid, title, today):
            continue
        seen.add((uid, title))
        n = notify(db, org_id, uid, title, message, kind, url)
        n.created_at = datetime.combine(today, datetime.now(timezone.utc).time(), tzinfo=timezone.utc)
        created += 1

    db.commit()
    logger.info("Deadline check for org %s: %d notifications", org_id, created)
    return created
