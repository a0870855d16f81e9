"""
Status / role gate for projects.

Decides, for a (project status, viewer role) pair, which label the project
carries and what the viewer may do with it. Rules are checked in priority
order and the first match wins:

  1. new / pending_approval      -> "awaiting partner approval"; only
                                    deputy_director and ceo may act; hidden
                                    from the default project list
  2. approved with an empty team -> "awaiting team assignment"; only
                                    deputy_director may assign the team
  3. otherwise the coarse status (active / in_progress / completed) gives
     the label; partner and manager_* may edit and complete while the
     project is in progress

Finance figures are visible to partners only, narrowed further by the
project's financial_visibility list. The bonuses page needs VIEW_ALL_BONUSES.
"""

import logging
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel

from bizops.services.roles import PERMISSIONS, Role, has_permission, parse_role

logger = logging.getLogger(__name__)

AWAITING_APPROVAL = frozenset({"new", "pending_approval"})

APPROVER_FAMILIES = PERMISSIONS["APPROVE_PROJECT"]
TEAM_ASSIGNER_FAMILIES = PERMISSIONS["ASSIGN_TEAM"]
EDITOR_FAMILIES = frozenset({"partner", "manager"})
FINANCE_VIEWER_FAMILIES = frozenset({"partner"})

LABEL_AWAITING_APPROVAL = "awaiting partner approval"
LABEL_AWAITING_TEAM = "awaiting team assignment"
STATUS_LABELS = {
    "active": "active",
    "in_progress": "in progress",
    "completed": "completed",
}

# workflow status -> coarse display status
PRIMARY_STATUS = {
    "new": "active",
    "pending_approval": "active",
    "active": "active",
    "approved": "in_progress",
    "team_assembled": "in_progress",
    "in_progress": "in_progress",
    "completed": "completed",
    "cancelled": "completed",
}


class GateDecision(BaseModel):
    label: str
    stage: str
    can_view: bool = True
    can_act: bool = False
    can_edit: bool = False
    can_complete: bool = False
    can_assign_team: bool = False
    in_default_list: bool = True


def _family(role: Union[str, Role, None]) -> Optional[str]:
    if role is None:
        return None
    try:
        return parse_role(role).family
    except ValueError:
        logger.warning("Unrecognised role in gate check: %r", role)
        return None


def primary_status(status: Optional[str]) -> str:
    return PRIMARY_STATUS.get(status or "", "active")


def evaluate(
    status: Optional[str],
    role: Union[str, Role, None],
    *,
    sub_status: Optional[str] = None,
    team: Optional[Iterable[Any]] = None,
    is_member: Optional[bool] = None,
) -> GateDecision:
    """
    `status` is the stored project status; `sub_status` is the finer workflow
    status when the two are kept apart (legacy rows carry it in the notes
    blob). `is_member=False` withholds edit/complete from a partner or
    manager who is not on the team; None skips the membership check.
    """
    family = _family(role)
    sub = sub_status or status
    members = list(team or [])

    # 1. awaiting approval
    if sub in AWAITING_APPROVAL:
        approver = family in APPROVER_FAMILIES
        return GateDecision(
            label=LABEL_AWAITING_APPROVAL,
            stage="awaiting_approval",
            can_view=approver,
            can_act=approver,
            in_default_list=False,
        )

    # 2. approved, no team yet
    if sub == "approved" and not members:
        assigner = family in TEAM_ASSIGNER_FAMILIES
        return GateDecision(
            label=LABEL_AWAITING_TEAM,
            stage="awaiting_team",
            can_act=assigner,
            can_assign_team=assigner,
        )

    # 3. coarse status
    coarse = primary_status(sub if sub in PRIMARY_STATUS else status)
    editable = (
        coarse == "in_progress"
        and family in EDITOR_FAMILIES
        and is_member is not False
    )
    return GateDecision(
        label=STATUS_LABELS[coarse],
        stage=coarse,
        can_act=editable,
        can_edit=editable,
        can_complete=editable,
    )


def evaluate_project(project, role, viewer_id: Optional[str] = None) -> GateDecision:
    team = list(getattr(project, "team", None) or [])
    is_member = None
    if viewer_id is not None and team:
        is_member = is_team_member(team, viewer_id)
    return evaluate(getattr(project, "status", None), role, team=team, is_member=is_member)


def is_team_member(team: Iterable[Any], person_id: Any) -> bool:
    pid = str(person_id)
    for m in team or []:
        mid = m.get("person_id") if isinstance(m, dict) else getattr(m, "person_id", None)
        if mid is not None and str(mid) == pid:
            return True
    return False


def can_view_finances(role, viewer_id: Any = None, financial_visibility: Any = None) -> bool:
    """Partners see finance figures unless the project narrows visibility to a list they are not on."""
    if _family(role) not in FINANCE_VIEWER_FAMILIES:
        return False
    if financial_visibility is None:
        return True
    if isinstance(financial_visibility, dict):
        enabled = financial_visibility.get("enabled", True)
        visible_to = financial_visibility.get("visible_to") or financial_visibility.get("visibleTo") or []
    else:
        enabled = getattr(financial_visibility, "enabled", True)
        visible_to = getattr(financial_visibility, "visible_to", []) or []
    if not enabled or viewer_id is None:
        return False
    return str(viewer_id) in {str(v) for v in visible_to}


def can_view_bonuses(role) -> bool:
    return has_permission(role, "VIEW_ALL_BONUSES")


def is_awaiting_approval(project) -> bool:
    return getattr(project, "status", None) in AWAITING_APPROVAL


def default_project_list(projects: Iterable[Any]) -> list:
    return [p for p in projects if not is_awaiting_approval(p)]


def approval_queue(projects: Iterable[Any], role) -> list:
    if _family(role) not in APPROVER_FAMILIES:
        return []
    return [p for p in projects if is_awaiting_approval(p)]


# monetary fields withheld from viewers without finance access
FINANCE_FIELDS = ("amount_without_vat", "yearly_amounts", "finances")


def redact_finances(payload: dict) -> dict:
    """Blank the money on a serialised project; status, team size and progress stay."""
    out = dict(payload)
    for key in FINANCE_FIELDS:
        out[key] = None
    if out.get("amendments"):
        out["amendments"] = [{**a, "new_amount": None} for a in out["amendments"]]
    if out.get("additional_services"):
        out["additional_services"] = [{**s, "cost": None} for s in out["additional_services"]]
    return out
