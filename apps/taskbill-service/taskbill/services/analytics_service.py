"""Task and revenue analytics."""
from __future__ import annotations

import uuid
from collections import Counter, defaultdict
from datetime import UTC, date, datetime, time
from typing import Dict, Optional

from sqlalchemy.orm import Session

from taskbill.db import models, schemas
from taskbill.db.models import ensure_aware

SECONDS_PER_DAY = 24 * 60 * 60


def _task_query(db: Session, project_id, start_date, end_date):
    query = db.query(models.Task)
    if project_id:
        query = query.filter(models.Task.project_id == project_id)
    if start_date:
        query = query.filter(models.Task.created_at >= datetime.combine(start_date, time.min, tzinfo=UTC))
    if end_date:
        query = query.filter(models.Task.created_at <= datetime.combine(end_date, time.max, tzinfo=UTC))
    return query


def _revenue_totals(db: Session, project_id: Optional[uuid.UUID]) -> schemas.RevenueTotals:
    query = db.query(models.Receivable).filter(models.Receivable.status != "cancelled")
    if project_id:
        query = query.filter(models.Receivable.project_id == project_id)
    receivables = query.all()
    total = round(sum(float(r.amount or 0) for r in receivables), 2)
    paid = round(sum(float(r.amount or 0) for r in receivables if r.status == "paid"), 2)
    return schemas.RevenueTotals(total_invoiced=total, total_paid=paid, outstanding=round(total - paid, 2))


def build_analytics(
    db: Session,
    *,
    project_id: Optional[uuid.UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> schemas.Analytics:
    tasks = _task_query(db, project_id, start_date, end_date).all()

    status_distribution: Dict[str, int] = dict(Counter(t.status for t in tasks))
    priority_distribution: Dict[str, int] = dict(Counter(t.priority for t in tasks))

    hours_by_date: Dict[date, float] = defaultdict(float)
    for task in tasks:
        hours_by_date[ensure_aware(task.created_at).date()] += float(task.hours_worked or 0)

    completed = [t for t in tasks if t.status == "completed"]
    completion_rate = (len(completed) / len(tasks) * 100) if tasks else 0.0

    durations = []
    for task in completed:
        finished = task.completed_at or task.updated_at
        if task.created_at and finished:
            delta = ensure_aware(finished) - ensure_aware(task.created_at)
            durations.append(delta.total_seconds() / SECONDS_PER_DAY)
    average_duration = sum(durations) / len(durations) if durations else 0.0

    return schemas.Analytics(
        status_distribution=status_distribution,
        priority_distribution=priority_distribution,
        hours_worked_by_date=[
            schemas.HoursByDate(date=day, hours=round(hours, 2))
            for day, hours in sorted(hours_by_date.items())
        ],
        total_hours=round(sum(float(t.hours_worked or 0) for t in tasks), 2),
        completion_rate=round(completion_rate, 2),
        average_task_duration=round(average_duration, 2),
        revenue=_revenue_totals(db, project_id),
    )
