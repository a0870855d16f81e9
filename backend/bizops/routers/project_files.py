"""Project files router (contracts, scans, documents, screenshots)."""

import uuid
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from bizops.database import get_db
from bizops.dependencies import Viewer, get_current_viewer, require_permission
from bizops.models.project import Project, ProjectFile
from bizops.schemas.project import FILE_CATEGORIES, ProjectFileResponse
from bizops.services.audit import log_action
from bizops.services.file_storage import delete_file, get_download_url, save_upload
from bizops.services.roles import parse_role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/projects/{project_id}/files", tags=["Project Files"])


def _get_project(db: Session, org_id: uuid.UUID, project_id: uuid.UUID) -> Project:
    project = db.query(Project).filter(Project.id == project_id, Project.org_id == org_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _get_file(db: Session, org_id: uuid.UUID, project_id: uuid.UUID, file_id: uuid.UUID) -> ProjectFile:
    f = db.query(ProjectFile).filter(
        ProjectFile.id == file_id,
        ProjectFile.project_id == project_id,
        ProjectFile.org_id == org_id,
    ).first()
    if not f:
        raise HTTPException(status_code=404, detail="File not found")
    return f


@router.get("/", response_model=list[ProjectFileResponse])
def list_files(
    project_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    _get_project(db, viewer.org_id, project_id)
    return db.query(ProjectFile).filter(
        ProjectFile.project_id == project_id,
        ProjectFile.org_id == viewer.org_id,
    ).order_by(ProjectFile.uploaded_at.desc()).all()


@router.post("/", response_model=ProjectFileResponse)
def upload_file(
    project_id: uuid.UUID,
    file: UploadFile = File(...),
    category: str = Form("other"),
    viewer: Viewer = Depends(require_permission("UPLOAD_FILES")),
    db: Session = Depends(get_db),
):
    if category not in FILE_CATEGORIES:
        raise HTTPException(status_code=400, detail=f"category must be one of {list(FILE_CATEGORIES)}")
    project = _get_project(db, viewer.org_id, project_id)

    key, original_name, size, content_type = save_upload(file, project.id)

    record = ProjectFile(
        org_id=viewer.org_id,
        project_id=project.id,
        file_name=original_name,
        file_type=content_type,
        file_size=size,
        storage_path=key,
        category=category,
        uploaded_by=viewer.user_id,
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    log_action(db, viewer.org_id, viewer.user_id, "upload", "project_file", record.id,
               {"project_id": str(project.id), "file_name": original_name, "category": category})
    return record


@router.get("/{file_id}/download")
def download_file(
    project_id: uuid.UUID,
    file_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    f = _get_file(db, viewer.org_id, project_id, file_id)
    return {"url": get_download_url(f.storage_path), "file_name": f.file_name}


@router.delete("/{file_id}")
def remove_file(
    project_id: uuid.UUID,
    file_id: uuid.UUID,
    viewer: Viewer = Depends(require_permission("UPLOAD_FILES")),
    db: Session = Depends(get_db),
):
    f = _get_file(db, viewer.org_id, project_id, file_id)
    if f.uploaded_by != viewer.user_id and parse_role(viewer.role).family != "admin":
        raise HTTPException(status_code=403, detail="Only the uploader can delete this file")

    if not delete_file(f.storage_path):
        raise HTTPException(status_code=500, detail="Failed to delete file from storage")
    db.delete(f)
    db.commit()

    log_action(db, viewer.org_id, viewer.user_id, "delete", "project_file", file_id,
               {"project_id": str(project_id), "file_name": f.file_name})
    return {"ok": True}
