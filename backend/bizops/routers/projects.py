"""Projects router: CRUD, status/role gate, lifecycle transitions, amendments, spreadsheet import/export."""

import csv
import io
import logging
import uuid
import zipfile
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bizops.database import get_db
from bizops.dependencies import Viewer, get_current_viewer, require_permission
from bizops.models.project import Project
from bizops.schemas.project import (
    Amendment,
    AmendmentCreate,
    ApprovalRequest,
    GateResponse,
    ImportResponse,
    ProjectCreate,
    ProjectFinanceDetail,
    ProjectFinances,
    ProjectResponse,
    ProjectUpdate,
    TeamAssignRequest,
    TransitionRequest,
)
from bizops.services import access, notifications, project_import, workflow
from bizops.services.audit import log_action
from bizops.services.finance import (
    check_yearly_breakdown,
    effective_amount,
    effective_end_date,
    finances_for_project,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/projects", tags=["Projects"])

# columns stored as JSON; everything else is written as python values
JSON_FIELDS = {"yearly_amounts", "contractors", "financial_visibility", "stages", "additional_services"}
# list columns are NOT NULL; an explicit null clears them
LIST_FIELDS = JSON_FIELDS - {"financial_visibility"}


# ── Helpers ──


def _column_values(body, **dump_kwargs) -> dict:
    plain = body.model_dump(**dump_kwargs)
    as_json = body.model_dump(mode="json", **dump_kwargs)
    values = {k: (as_json[k] if k in JSON_FIELDS else v) for k, v in plain.items()}
    return {k: ([] if v is None and k in LIST_FIELDS else v) for k, v in values.items()}


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to save %s", what)
        raise HTTPException(status_code=500, detail=f"Failed to save {what}")


def _get_project(db: Session, org_id: uuid.UUID, project_id: uuid.UUID) -> Project:
    project = db.query(Project).filter(
        Project.id == project_id,
        Project.org_id == org_id,
    ).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _can_see_finances(project: Project, viewer: Viewer) -> bool:
    return access.can_view_finances(viewer.role, viewer.person_id, project.financial_visibility)


def _to_response(project: Project, viewer: Viewer) -> ProjectResponse:
    gate = access.evaluate_project(project, viewer.role, viewer.person_id)
    resp = ProjectResponse.model_validate(project)
    if resp.finances is None:
        resp.finances = finances_for_project(project)
    resp.status_label = gate.label
    resp.effective_end_date = effective_end_date(project.service_end_date, project.amendments)
    resp.team_size = len(project.team or [])
    resp.amount_without_vat = effective_amount(project.amount_without_vat, project.amendments)

    if not _can_see_finances(project, viewer):
        return ProjectResponse(**access.redact_finances(resp.model_dump()))
    return resp


def _apply(db: Session, project: Project, viewer: Viewer, action: str, details: Optional[dict] = None) -> None:
    log_action(db, viewer.org_id, viewer.user_id, f"project.{action}", "project", project.id,
               details or {}, commit=False)
    _commit(db, "project")
    db.refresh(project)


def _run_transition(fn, project: Project, *args):
    try:
        return fn(project, *args)
    except workflow.PermissionDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    except workflow.WorkflowError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _org_projects(db: Session, org_id: uuid.UUID, search: Optional[str] = None) -> list[Project]:
    q = db.query(Project).filter(Project.org_id == org_id)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(
            Project.name.ilike(like),
            Project.client_name.ilike(like),
            Project.contract_number.ilike(like),
        ))
    return q.order_by(Project.created_at.desc()).all()


# ── List / create ──


@router.get("/", response_model=list[ProjectResponse])
def list_projects(
    status: Optional[str] = Query(None),
    project_type: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    projects = access.default_project_list(_org_projects(db, viewer.org_id, search))
    if status:
        projects = [p for p in projects if p.status == status]
    if project_type:
        projects = [p for p in projects if p.project_type == project_type]
    return [_to_response(p, viewer) for p in projects]


@router.get("/approval-queue", response_model=list[ProjectResponse])
def approval_queue(
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    projects = access.approval_queue(_org_projects(db, viewer.org_id), viewer.role)
    return [_to_response(p, viewer) for p in projects]


@router.post("/", response_model=ProjectResponse)
def create_project(
    body: ProjectCreate,
    viewer: Viewer = Depends(require_permission("CREATE_PROJECT")),
    db: Session = Depends(get_db),
):
    project = Project(
        org_id=viewer.org_id,
        status="new",
        created_by=viewer.user_id,
        team=[],
        amendments=[],
        **_column_values(body, exclude={"submit_for_approval"}),
    )
    db.add(project)
    db.flush()

    if body.submit_for_approval:
        _run_transition(workflow.submit_for_approval, project, viewer.role, viewer.user_id)
        notifications.project_submitted(db, project)
    workflow.refresh_finances(project)

    _apply(db, project, viewer, "create", {"name": project.name, "status": project.status})
    logger.info("Project %s created by %s", project.id, viewer.user_id)
    return _to_response(project, viewer)


# ── Spreadsheet import / export (fixed paths before /{project_id}) ──


@router.get("/import/template")
def download_template(
    viewer: Viewer = Depends(get_current_viewer),
):
    return StreamingResponse(
        io.BytesIO(project_import.template_workbook()),
        media_type=project_import.XLSX_MIME,
        headers={"Content-Disposition": "attachment; filename=projects_template.xlsx"},
    )


@router.post("/import", response_model=ImportResponse)
async def import_projects(
    file: UploadFile = File(...),
    viewer: Viewer = Depends(require_permission("IMPORT_PROJECTS")),
    db: Session = Depends(get_db),
):
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")
    try:
        rows = project_import.read_rows(file.filename, content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (zipfile.BadZipFile, InvalidFileException, csv.Error, KeyError):
        logger.exception("Could not read spreadsheet %s", file.filename)
        raise HTTPException(status_code=400, detail="Could not read the spreadsheet")

    valid, errors = project_import.parse_rows(rows)

    created = []
    for fields in valid:
        project = Project(
            org_id=viewer.org_id,
            status="new",
            created_by=viewer.user_id,
            team=[],
            amendments=[],
            yearly_amounts=[],
            contractors=[],
            **fields,
        )
        workflow.refresh_finances(project)
        db.add(project)
        created.append(project)

    log_action(db, viewer.org_id, viewer.user_id, "project.import", "project", None,
               {"file": file.filename, "created": len(created), "errors": len(errors)}, commit=False)
    _commit(db, "imported projects")
    for p in created:
        db.refresh(p)

    logger.info("Imported %d projects from %s (%d rows rejected)", len(created), file.filename, len(errors))
    return ImportResponse(
        created=len(created),
        projects=[_to_response(p, viewer) for p in created],
        errors=errors,
    )


@router.get("/export")
def export_projects(
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    projects = access.default_project_list(_org_projects(db, viewer.org_id))
    data = project_import.export_workbook(projects, lambda p: _can_see_finances(p, viewer))
    return StreamingResponse(
        io.BytesIO(data),
        media_type=project_import.XLSX_MIME,
        headers={"Content-Disposition": "attachment; filename=projects.xlsx"},
    )


# ── Single project ──


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    project = _get_project(db, viewer.org_id, project_id)
    gate = access.evaluate_project(project, viewer.role, viewer.person_id)
    if not gate.can_view and project.created_by != viewer.user_id:
        raise HTTPException(status_code=403, detail=f"Project is {gate.label}")
    return _to_response(project, viewer)


@router.put("/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    project = _get_project(db, viewer.org_id, project_id)
    if project.status in workflow.CLOSED_STATUSES:
        raise HTTPException(status_code=400, detail=f"Project is {project.status} and can no longer be edited")
    if not workflow.can_update(project, viewer.role, viewer.person_id):
        raise HTTPException(status_code=403, detail="Your role cannot edit this project")

    changes = _column_values(body, exclude_unset=True)
    for field, val in changes.items():
        setattr(project, field, val)
    workflow.refresh_finances(project)

    _apply(db, project, viewer, "update", {"fields": sorted(changes)})
    return _to_response(project, viewer)


@router.get("/{project_id}/gate", response_model=GateResponse)
def project_gate(
    project_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    project = _get_project(db, viewer.org_id, project_id)
    gate = access.evaluate_project(project, viewer.role, viewer.person_id)
    return GateResponse(**gate.model_dump(), can_view_finances=_can_see_finances(project, viewer))


@router.get("/{project_id}/finances", response_model=ProjectFinanceDetail)
def project_finances(
    project_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    project = _get_project(db, viewer.org_id, project_id)
    if not _can_see_finances(project, viewer):
        raise HTTPException(status_code=403, detail="Finance figures are not visible to you")

    frozen = project.bonuses_computed_at is not None
    finances = (
        ProjectFinances.model_validate(project.finances)
        if frozen and project.finances
        else finances_for_project(project)
    )
    yearly_check = None
    if project.is_multi_year and project.yearly_amounts:
        yearly_check = check_yearly_breakdown(project.yearly_amounts, finances.amount_without_vat)
        if yearly_check.mismatch:
            logger.warning("Project %s yearly split differs from contract amount by %s",
                           project.id, yearly_check.difference)

    return ProjectFinanceDetail(
        finances=finances,
        effective_end_date=effective_end_date(project.service_end_date, project.amendments),
        yearly_check=yearly_check,
        frozen=frozen,
    )


# ── Transitions ──


@router.post("/{project_id}/submit", response_model=ProjectResponse)
def submit_project(
    project_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    project = _get_project(db, viewer.org_id, project_id)
    _run_transition(workflow.submit_for_approval, project, viewer.role, viewer.user_id)
    notifications.project_submitted(db, project)
    _apply(db, project, viewer, "submit")
    return _to_response(project, viewer)


@router.post("/{project_id}/approve", response_model=ProjectResponse)
def approve_project(
    project_id: uuid.UUID,
    body: Optional[ApprovalRequest] = None,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    body = body or ApprovalRequest()
    project = _get_project(db, viewer.org_id, project_id)
    _run_transition(workflow.approve, project, viewer.role, viewer.user_id, body.financial_visibility)
    notifications.project_approved(db, project)
    _apply(db, project, viewer, "approve",
           {"comment": body.comment, "financial_visibility": project.financial_visibility})
    return _to_response(project, viewer)


@router.post("/{project_id}/assign-team", response_model=ProjectResponse)
def assign_team(
    project_id: uuid.UUID,
    body: TeamAssignRequest,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    project = _get_project(db, viewer.org_id, project_id)
    _run_transition(workflow.assign_team, project, body.team, viewer.role, viewer.user_id)
    notifications.team_assembled(db, project)
    _apply(db, project, viewer, "assign_team", {"team": [m["person_id"] for m in project.team]})
    return _to_response(project, viewer)


@router.post("/{project_id}/start", response_model=ProjectResponse)
def start_project(
    project_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    project = _get_project(db, viewer.org_id, project_id)
    _run_transition(workflow.start, project, viewer.role, viewer.person_id)
    _apply(db, project, viewer, "start")
    return _to_response(project, viewer)


@router.post("/{project_id}/complete", response_model=ProjectResponse)
def complete_project(
    project_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    project = _get_project(db, viewer.org_id, project_id)
    _run_transition(workflow.complete, project, viewer.role, viewer.person_id)
    notifications.project_completed(db, project)
    _apply(db, project, viewer, "complete",
           {"total_bonus_amount": (project.finances or {}).get("total_bonus_amount")})
    return _to_response(project, viewer)


@router.post("/{project_id}/cancel", response_model=ProjectResponse)
def cancel_project(
    project_id: uuid.UUID,
    body: TransitionRequest,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    project = _get_project(db, viewer.org_id, project_id)
    _run_transition(workflow.cancel, project, viewer.role, viewer.user_id)
    _apply(db, project, viewer, "cancel", {"comment": body.comment})
    return _to_response(project, viewer)


# ── Amendments ──


@router.get("/{project_id}/amendments", response_model=list[Amendment])
def list_amendments(
    project_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    project = _get_project(db, viewer.org_id, project_id)
    amendments = [Amendment.model_validate(a) for a in project.amendments or []]
    if not _can_see_finances(project, viewer):
        amendments = [a.model_copy(update={"new_amount": None}) for a in amendments]
    return sorted(amendments, key=lambda a: a.date)


@router.post("/{project_id}/amendments", response_model=Amendment)
def add_amendment(
    project_id: uuid.UUID,
    body: AmendmentCreate,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    project = _get_project(db, viewer.org_id, project_id)
    amendment = _run_transition(workflow.add_amendment, project, body, viewer.role, viewer.user_id)
    _apply(db, project, viewer, "amendment", {"number": body.number, "type": body.type})
    return amendment
