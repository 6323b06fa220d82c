"""Invoice and receivable queries; state changes live in billing_service."""
from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from taskbill.db import models


def list_invoices(
    db: Session,
    *,
    project_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.Invoice]:
    query = db.query(models.Invoice).options(joinedload(models.Invoice.project))
    if project_id:
        query = query.filter(models.Invoice.project_id == project_id)
    if status:
        query = query.filter(models.Invoice.status == status)
    return query.order_by(models.Invoice.created_at.desc()).offset(skip).limit(limit).all()


def get_invoice(db: Session, *, invoice_id: uuid.UUID) -> Optional[models.Invoice]:
    return (
        db.query(models.Invoice)
        .options(
            joinedload(models.Invoice.project),
            selectinload(models.Invoice.items).joinedload(models.InvoiceItem.task),
        )
        .filter(models.Invoice.id == invoice_id)
        .first()
    )


def list_receivables(
    db: Session,
    *,
    project_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.Receivable]:
    query = db.query(models.Receivable).options(
        joinedload(models.Receivable.task),
        joinedload(models.Receivable.project),
        selectinload(models.Receivable.revenue_records),
    )
    if project_id:
        query = query.filter(models.Receivable.project_id == project_id)
    if status:
        query = query.filter(models.Receivable.status == status)
    return query.order_by(models.Receivable.created_at.desc()).offset(skip).limit(limit).all()


def get_receivable(db: Session, *, receivable_id: uuid.UUID) -> Optional[models.Receivable]:
    return db.query(models.Receivable).filter(models.Receivable.id == receivable_id).first()
