"""
Project lifecycle.

  new -> pending_approval -> approved -> team_assembled -> in_progress -> completed

Approval is also accepted straight from `new`; any open project can be
cancelled.

Who may fire a transition comes from the status/role gate; completion
computes the finance figures once and freezes them on the project.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from bizops.schemas.project import Amendment, AmendmentCreate, TeamMember
from bizops.services import access
from bizops.services.finance import finances_for_project
from bizops.services.roles import default_bonus_percent, has_permission

logger = logging.getLogger(__name__)

CLOSED_STATUSES = frozenset({"completed", "cancelled"})


class WorkflowError(Exception):
    """Transition not allowed from the project's current state."""


class PermissionDenied(Exception):
    """Caller's role may not perform the action."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_status(project, allowed: Iterable[str], action: str) -> None:
    if project.status not in allowed:
        raise WorkflowError(f"Cannot {action} a project in status '{project.status}'")


def _gate(project, role, viewer_id):
    return access.evaluate_project(project, role, viewer_id)


def refresh_finances(project) -> None:
    """Recompute cached figures; frozen once bonuses have been computed."""
    if project.bonuses_computed_at is not None:
        return
    project.finances = finances_for_project(project).model_dump(mode="json")


def can_update(project, role, viewer_id: Optional[str] = None) -> bool:
    if project.status in access.AWAITING_APPROVAL:
        return has_permission(role, "CREATE_PROJECT")
    return _gate(project, role, viewer_id).can_edit


# ── Transitions ──


def submit_for_approval(project, role, actor_id=None):
    _require_status(project, {"new"}, "submit")
    if not has_permission(role, "CREATE_PROJECT"):
        raise PermissionDenied("Only procurement can submit projects for approval")
    project.status = "pending_approval"
    logger.info("Project %s submitted for approval", project.id)
    return project


def approve(project, role, actor_id=None, financial_visibility=None):
    _require_status(project, access.AWAITING_APPROVAL, "approve")
    if not _gate(project, role, None).can_act:
        raise PermissionDenied("Only the deputy director or CEO can approve projects")
    project.status = "approved"
    if financial_visibility is not None:
        project.financial_visibility = financial_visibility.model_dump(mode="json")
    project.approved_by = actor_id
    project.approved_at = _now()
    logger.info("Project %s approved by %s", project.id, actor_id)
    return project


def assign_team(project, team: list[TeamMember], role, actor_id=None):
    _require_status(project, {"approved"}, "assign a team to")
    if not _gate(project, role, None).can_assign_team:
        raise PermissionDenied("Only the deputy director can assign the project team")
    if not team:
        raise WorkflowError("Team must not be empty")

    seen = set()
    members = []
    for m in team:
        if m.person_id in seen:
            raise WorkflowError(f"Person {m.person_id} is listed twice")
        seen.add(m.person_id)
        if m.bonus_percent is None:
            m = m.model_copy(update={"bonus_percent": default_bonus_percent(m.role)})
        m = m.model_copy(update={
            "assigned_at": m.assigned_at or _now(),
            "assigned_by": m.assigned_by or (str(actor_id) if actor_id else None),
        })
        members.append(m.model_dump(mode="json"))

    project.team = members
    project.status = "team_assembled"
    refresh_finances(project)
    logger.info("Team of %d assigned to project %s", len(members), project.id)
    return project


def start(project, role, actor_id=None):
    _require_status(project, {"team_assembled"}, "start")
    if not _gate(project, role, actor_id).can_edit:
        raise PermissionDenied("Only the project partner or managers can start work")
    project.status = "in_progress"
    return project


def complete(project, role, actor_id=None):
    _require_status(project, {"team_assembled", "in_progress"}, "complete")
    if not _gate(project, role, actor_id).can_complete:
        raise PermissionDenied("Only the project partner or managers can complete the project")
    if project.bonuses_computed_at is not None:
        raise WorkflowError("Bonuses for this project have already been computed")

    now = _now()
    project.finances = finances_for_project(project).model_dump(mode="json")
    project.bonuses_computed_at = now
    project.status = "completed"
    project.completed_at = now
    project.completion_percent = 100
    logger.info("Project %s completed; bonuses computed", project.id)
    return project


def cancel(project, role, actor_id=None):
    if project.status in CLOSED_STATUSES:
        raise WorkflowError(f"Cannot cancel a project in status '{project.status}'")
    if not has_permission(role, "CANCEL_PROJECT"):
        raise PermissionDenied("Only the deputy director or CEO can cancel projects")
    project.status = "cancelled"
    return project


def add_amendment(project, body: AmendmentCreate, role, actor_id=None) -> dict:
    if project.status in CLOSED_STATUSES:
        raise WorkflowError("Amendments cannot be added to a closed project")
    if not has_permission(role, "ADD_AMENDMENT"):
        raise PermissionDenied("Your role cannot add contract amendments")
    if body.type == "amount_change" and body.new_amount is None:
        raise WorkflowError("An amount change amendment needs new_amount")
    if body.type == "prolongation" and body.new_end_date is None:
        raise WorkflowError("A prolongation amendment needs new_end_date")

    amendment = Amendment(
        **body.model_dump(),
        created_by=str(actor_id) if actor_id else None,
        created_at=_now(),
    ).model_dump(mode="json")
    # reassign so the JSON column is flagged dirty
    project.amendments = [*(project.amendments or []), amendment]
    refresh_finances(project)
    logger.info("Amendment %s (%s) added to project %s", body.number, body.type, project.id)
    return amendment
