"""
Projects API endpoints.

Anyone signed in can read; creators and billing managers can modify.
"""
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from taskbill.api.deps import can, get_current_user_context, require_permission
from taskbill.audit import AuditAction, safe_log
from taskbill.db import models, schemas
from taskbill.db.database import get_db
from taskbill.db.repositories import projects as project_repo
from taskbill.utils.role_permissions import PERM_MANAGE_BILLING, PERM_WRITE
from taskbill.utils.statuses import PROJECT_STATUSES

router = APIRouter(prefix="/projects", tags=["projects"])


def _get_project_or_404(db: Session, project_id: uuid.UUID) -> models.Project:
    project = project_repo.get_project(db, project_id=project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


def _ensure_can_modify(project: models.Project, user: models.User, current_user: dict) -> None:
    if project.created_by == user.id or can(current_user, PERM_MANAGE_BILLING):
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


@router.get("", response_model=List[schemas.Project])
def list_projects(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    if status_filter and status_filter not in PROJECT_STATUSES:
        raise HTTPException(status_code=422, detail=f"Invalid status. Allowed: {', '.join(PROJECT_STATUSES)}")
    return project_repo.list_projects(db, status=status_filter, skip=skip, limit=limit)


@router.get("/{project_id}", response_model=schemas.Project)
def get_project(
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    return _get_project_or_404(db, project_id)


@router.post("", response_model=schemas.Project, status_code=status.HTTP_201_CREATED)
def create_project(
    payload: schemas.ProjectCreate,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_WRITE)),
):
    user, _ctx = user_context
    project = project_repo.create_project(db, payload=payload, created_by=user.id)
    safe_log(
        db,
        action=AuditAction.PROJECT_CREATE,
        target_type="project",
        target_id=project.id,
        actor_user_id=user.id,
        metadata={"name": project.name},
    )
    return project


@router.put("/{project_id}", response_model=schemas.Project)
@router.patch("/{project_id}", response_model=schemas.Project)
def update_project(
    project_id: uuid.UUID,
    payload: schemas.ProjectUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    project = _get_project_or_404(db, project_id)
    _ensure_can_modify(project, user, current_user)
    try:
        project, _changed = project_repo.update_project(db, project=project, payload=payload)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))
    return project


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    project = _get_project_or_404(db, project_id)
    _ensure_can_modify(project, user, current_user)
    name = project.name
    project_repo.delete_project(db, project=project)
    safe_log(
        db,
        action=AuditAction.PROJECT_DELETE,
        target_type="project",
        target_id=project_id,
        actor_user_id=user.id,
        metadata={"name": name},
    )
