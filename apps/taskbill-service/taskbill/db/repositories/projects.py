"""
Project repository functions.

Status changes cascade onto the project's tasks in the same commit.
"""
from __future__ import annotations

import uuid
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from taskbill.db import models, schemas
from taskbill.services.task_lifecycle import cascade_project_status


def list_projects(
    db: Session,
    *,
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.Project]:
    query = db.query(models.Project)
    if status:
        query = query.filter(models.Project.status == status)
    return query.order_by(models.Project.created_at.desc()).offset(skip).limit(limit).all()


def get_project(db: Session, *, project_id: uuid.UUID) -> Optional[models.Project]:
    return db.query(models.Project).filter(models.Project.id == project_id).first()


def create_project(
    db: Session,
    *,
    payload: schemas.ProjectCreate,
    created_by: Optional[uuid.UUID],
) -> models.Project:
    data = payload.model_dump()
    if data.get("start_date") is None:
        data.pop("start_date")
    project = models.Project(**data, created_by=created_by)
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def update_project(
    db: Session,
    *,
    project: models.Project,
    payload: schemas.ProjectUpdate,
) -> Tuple[models.Project, List[models.Task]]:
    """Apply changed fields; return the project and the tasks the cascade touched."""
    data = payload.model_dump(exclude_unset=True)
    old_status = project.status
    for field, value in data.items():
        if value is None and field in ("name", "status", "priority", "rate_type", "hourly_rate",
                                       "inr_conversion_factor", "start_date"):
            continue
        setattr(project, field, value)

    if project.rate_type == "fixed" and project.fixed_rate is None:
        raise ValueError("fixed_rate is required when rate_type is 'fixed'")
    if project.end_date and project.start_date and project.end_date < project.start_date:
        raise ValueError("end_date must not be before start_date")

    changed_tasks = cascade_project_status(project, old_status, project.status)
    db.commit()
    db.refresh(project)
    return project, changed_tasks


def delete_project(db: Session, *, project: models.Project) -> None:
    db.delete(project)
    db.commit()
