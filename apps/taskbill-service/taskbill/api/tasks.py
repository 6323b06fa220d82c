"""
Tasks API endpoints.

Status and progress changes apply the task lifecycle rules.
"""
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from taskbill.api.deps import get_current_user_context, require_permission
from taskbill.db import models, schemas
from taskbill.db.database import get_db
from taskbill.db.repositories import projects as project_repo
from taskbill.db.repositories import tasks as task_repo
from taskbill.services import billing_service
from taskbill.services.task_lifecycle import TaskTransitionError
from taskbill.utils.role_permissions import PERM_WRITE

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _get_task_or_404(db: Session, task_id: uuid.UUID) -> models.Task:
    task = task_repo.get_task(db, task_id=task_id)
    if not task:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task


@router.get("", response_model=List[schemas.Task])
def list_tasks(
    project_id: Optional[uuid.UUID] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    assigned_to: Optional[str] = None,
    invoice_status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    return task_repo.list_tasks(
        db,
        project_id=project_id,
        status=status_filter,
        assigned_to=assigned_to,
        invoice_status=invoice_status,
        skip=skip,
        limit=limit,
    )


@router.get("/{task_id}", response_model=schemas.Task)
def get_task(
    task_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    return _get_task_or_404(db, task_id)


@router.post("", response_model=schemas.Task, status_code=status.HTTP_201_CREATED)
def create_task(
    payload: schemas.TaskCreate,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_WRITE)),
):
    user, _ctx = user_context
    if not project_repo.get_project(db, project_id=payload.project_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    try:
        return task_repo.create_task(db, payload=payload, created_by=user.id)
    except TaskTransitionError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))


@router.put("/{task_id}", response_model=schemas.Task)
@router.patch("/{task_id}", response_model=schemas.Task)
def update_task(
    task_id: uuid.UUID,
    payload: schemas.TaskUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_WRITE)),
):
    task = _get_task_or_404(db, task_id)
    try:
        return task_repo.update_task(db, task=task, payload=payload)
    except TaskTransitionError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))


@router.patch("/{task_id}/progress", response_model=schemas.Task)
def update_progress(
    task_id: uuid.UUID,
    payload: schemas.ProgressUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_WRITE)),
):
    if payload.progress_percentage < 0 or payload.progress_percentage > 100:
        raise HTTPException(status_code=422, detail="progress_percentage must be between 0 and 100")
    task = _get_task_or_404(db, task_id)
    return task_repo.update_progress(db, task=task, progress_percentage=payload.progress_percentage)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_WRITE)),
):
    task = _get_task_or_404(db, task_id)
    if billing_service.task_on_active_invoice(db, task):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Task is billed on an invoice; cancel or delete the invoice first",
        )
    task_repo.delete_task(db, task=task)
