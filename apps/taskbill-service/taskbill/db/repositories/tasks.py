"""
Task repository functions.

All status and progress writes go through the task lifecycle helpers so the
completion, archive and progress bookkeeping stays consistent.
"""
from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from taskbill.db import models, schemas
from taskbill.services import task_lifecycle


def list_tasks(
    db: Session,
    *,
    project_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    assigned_to: Optional[str] = None,
    invoice_status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.Task]:
    query = db.query(models.Task)
    if project_id:
        query = query.filter(models.Task.project_id == project_id)
    if status:
        query = query.filter(models.Task.status == status)
    if assigned_to:
        query = query.filter(models.Task.assigned_to == assigned_to)
    if invoice_status:
        query = query.filter(models.Task.invoice_status == invoice_status)
    return query.order_by(models.Task.created_at.desc()).offset(skip).limit(limit).all()


def get_task(db: Session, *, task_id: uuid.UUID) -> Optional[models.Task]:
    return db.query(models.Task).filter(models.Task.id == task_id).first()


def create_task(
    db: Session,
    *,
    payload: schemas.TaskCreate,
    created_by: Optional[uuid.UUID],
) -> models.Task:
    data = payload.model_dump(exclude={"status", "progress_percentage"})
    data["hours_worked"] = task_lifecycle.clamp_hours(data.get("hours_worked") or 0)
    task = models.Task(**data, status="todo", progress_percentage=0, created_by=created_by)
    if payload.status != "todo":
        task_lifecycle.apply_status_change(
            task, payload.status, progress_percentage=payload.progress_percentage
        )
    elif payload.progress_percentage is not None:
        task_lifecycle.set_progress(task, payload.progress_percentage)
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def update_task(db: Session, *, task: models.Task, payload: schemas.TaskUpdate) -> models.Task:
    data = payload.model_dump(exclude_unset=True)
    new_status = data.pop("status", None)
    progress = data.pop("progress_percentage", None)
    hours = data.pop("hours_worked", None)

    for field, value in data.items():
        if value is None and field in ("title", "priority", "description"):
            continue
        setattr(task, field, value)

    if new_status and new_status != task.status:
        task_lifecycle.apply_status_change(
            task, new_status, progress_percentage=progress, hours_worked=hours
        )
    else:
        if progress is not None:
            task_lifecycle.set_progress(task, progress)
        if hours is not None:
            task.hours_worked = task_lifecycle.clamp_hours(hours)

    db.commit()
    db.refresh(task)
    return task


def update_progress(db: Session, *, task: models.Task, progress_percentage: int) -> models.Task:
    task_lifecycle.set_progress(task, progress_percentage)
    db.commit()
    db.refresh(task)
    return task


def delete_task(db: Session, *, task: models.Task) -> None:
    db.delete(task)
    db.commit()
