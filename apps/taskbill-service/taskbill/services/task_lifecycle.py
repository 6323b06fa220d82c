"""
Task lifecycle rules.

Status transitions carry side effects on progress, completion dates and
archive bookkeeping, and a project status change cascades onto its tasks.
These helpers mutate ORM objects in place; the caller owns the transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from taskbill.db import models
from taskbill.db.models import now_utc
from taskbill.utils.statuses import STATUS_PROGRESS, TASK_STATUSES

logger = logging.getLogger(__name__)


class TaskTransitionError(ValueError):
    """Raised when a requested task change is not allowed."""


@dataclass(frozen=True)
class TransitionResult:
    task: models.Task
    previous_status: str
    new_status: str


def clamp_progress(value) -> int:
    return int(max(0, min(100, round(float(value)))))


def clamp_hours(value) -> float:
    return max(0.0, float(value))


def apply_status_change(
    task: models.Task,
    new_status: str,
    *,
    progress_percentage: Optional[float] = None,
    hours_worked: Optional[float] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """Move a task to `new_status` and apply the dependent field updates.

    - completed: completed_on/completed_at set, progress forced to 100
    - leaving completed: completion dates cleared
    - archived: previous_status remembered, archived_at stamped
    - leaving archived: both cleared
    - explicit progress wins (clamped 0..100); otherwise the status default
      applies except for hold/archived, which keep the current value
    """
    if new_status not in TASK_STATUSES:
        raise TaskTransitionError(
            f"Invalid status. Must be one of: {', '.join(TASK_STATUSES)}"
        )
    now = now or now_utc()
    old_status = task.status

    if new_status == "completed":
        if old_status != "completed" or task.completed_on is None:
            task.completed_on = now.date()
            task.completed_at = now
        task.progress_percentage = 100
    elif old_status == "completed":
        task.completed_on = None
        task.completed_at = None

    if new_status == "archived":
        if old_status != "archived":
            task.previous_status = old_status
            task.archived_at = now
    elif old_status == "archived":
        task.previous_status = None
        task.archived_at = None

    if progress_percentage is not None:
        task.progress_percentage = clamp_progress(progress_percentage)
        task.last_progress_update = now
    elif new_status in STATUS_PROGRESS and new_status != old_status:
        task.progress_percentage = STATUS_PROGRESS[new_status]

    if hours_worked is not None:
        task.hours_worked = clamp_hours(hours_worked)

    task.status = new_status
    task.updated_at = now
    return TransitionResult(task=task, previous_status=old_status, new_status=new_status)


def set_progress(task: models.Task, progress_percentage, *, now: Optional[datetime] = None) -> models.Task:
    now = now or now_utc()
    task.progress_percentage = clamp_progress(progress_percentage)
    task.last_progress_update = now
    task.updated_at = now
    return task


def cascade_project_status(
    project: models.Project,
    old_status: str,
    new_status: str,
    *,
    now: Optional[datetime] = None,
) -> List[models.Task]:
    """Propagate a project status change to its tasks; return the tasks touched.

    - completed: every task not completed/archived is completed
    - on_hold: todo/in_progress/review tasks go on hold
    - active (from anything else): hold tasks return to todo
    """
    if old_status == new_status:
        return []
    now = now or now_utc()
    changed: List[models.Task] = []

    for task in project.tasks:
        if new_status == "completed" and task.status not in ("completed", "archived"):
            apply_status_change(task, "completed", now=now)
            changed.append(task)
        elif new_status == "on_hold" and task.status in ("todo", "in_progress", "review"):
            apply_status_change(task, "hold", now=now)
            changed.append(task)
        elif new_status == "active" and task.status == "hold":
            apply_status_change(task, "todo", now=now)
            changed.append(task)

    if changed:
        logger.info(
            "project_status_cascade: project=%s %s->%s tasks=%d",
            project.id, old_status, new_status, len(changed),
        )
    return changed
