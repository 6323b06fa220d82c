"""
Invoice, receivable and payment workflows.

Invoices move through draft -> sent -> (overdue) -> paid, or to cancelled.
Each transition updates the billed tasks' `invoice_status`; sending creates
one receivable per item; recording payments against receivables closes them
and, once every task on an invoice is paid, closes the invoice too.
"""
from __future__ import annotations

import logging
import random
import uuid
from datetime import date, datetime
from typing import Dict, FrozenSet, Iterable, List, Optional

from sqlalchemy.orm import Session

from taskbill.db import models, schemas
from taskbill.db.models import now_utc
from taskbill.utils.formatting import format_money

logger = logging.getLogger(__name__)

CANCELLED_TASK_NOTE = "\n\n[INVOICE CANCELLED] To invoice again, create new task."

# Allowed invoice status transitions; cancelled and paid are terminal.
INVOICE_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "draft": frozenset({"sent", "cancelled"}),
    "sent": frozenset({"paid", "overdue", "cancelled", "draft"}),
    "overdue": frozenset({"sent", "paid", "cancelled"}),
    "paid": frozenset(),
    "cancelled": frozenset(),
}

# Task invoice_status mirrored from the invoice status.
TASK_INVOICE_STATUS_FOR: Dict[str, str] = {
    "draft": "created",
    "sent": "invoiced",
    "overdue": "invoiced",
    "paid": "paid",
    "cancelled": "cancelled",
}


class BillingError(ValueError):
    """Raised when a billing operation conflicts with current state."""


class BillingNotFound(BillingError):
    """Raised when a referenced billing entity does not exist."""


def _round(value: float) -> float:
    return round(float(value or 0), 2)


def generate_invoice_number(db: Session, *, on: Optional[date] = None, attempts: int = 20) -> str:
    """Return an unused number of the form INV-YYYYMMDD-NNN."""
    on = on or now_utc().date()
    stem = f"INV-{on.strftime('%Y%m%d')}-"
    for _ in range(attempts):
        candidate = f"{stem}{random.randint(0, 999):03d}"
        exists = (
            db.query(models.Invoice.id)
            .filter(models.Invoice.invoice_number == candidate)
            .first()
        )
        if not exists:
            return candidate
    raise BillingError(f"Could not allocate an invoice number for {on.isoformat()}")


def is_task_eligible(task: models.Task) -> bool:
    return task.status == "completed" and task.invoice_status == "not_invoiced"


def list_eligible_tasks(db: Session, *, project_id: uuid.UUID) -> List[models.Task]:
    return (
        db.query(models.Task)
        .filter(
            models.Task.project_id == project_id,
            models.Task.status == "completed",
            models.Task.invoice_status == "not_invoiced",
        )
        .order_by(models.Task.completed_at.asc(), models.Task.created_at.asc())
        .all()
    )


def project_rate(project: models.Project) -> float:
    if project.rate_type == "fixed":
        return float(project.fixed_rate or 0)
    return float(project.hourly_rate or 0)


def price_tasks(project: models.Project, tasks: List[models.Task]) -> List[Dict[str, float]]:
    """Compute invoice line values for the given tasks.

    Hourly projects bill hours_worked * hourly_rate; fixed projects split the
    fixed rate evenly across the tasks on the invoice.
    """
    lines = []
    if project.rate_type == "fixed":
        share = _round(float(project.fixed_rate or 0) / len(tasks)) if tasks else 0.0
        for task in tasks:
            lines.append({
                "task": task,
                "hours_billed": _round(task.hours_worked),
                "rate": share,
                "amount": share,
            })
    else:
        rate = float(project.hourly_rate or 0)
        for task in tasks:
            hours = float(task.hours_worked or 0)
            lines.append({
                "task": task,
                "hours_billed": _round(hours),
                "rate": _round(rate),
                "amount": _round(hours * rate),
            })
    return lines


def recalculate_totals(invoice: models.Invoice) -> models.Invoice:
    """total = sum(items); final = total + tax - discount."""
    total = _round(sum(float(item.amount or 0) for item in invoice.items))
    invoice.total_amount = total
    invoice.final_amount = _round(total + float(invoice.tax_amount or 0) - float(invoice.discount_amount or 0))
    return invoice


def create_invoice(
    db: Session,
    *,
    payload: schemas.InvoiceCreate,
    created_by: Optional[uuid.UUID],
) -> models.Invoice:
    project = db.query(models.Project).filter(models.Project.id == payload.project_id).first()
    if not project:
        raise BillingNotFound("Project not found")

    tasks = db.query(models.Task).filter(models.Task.id.in_(payload.task_ids)).all()
    by_id = {t.id: t for t in tasks}
    ordered: List[models.Task] = []
    for task_id in payload.task_ids:
        task = by_id.get(task_id)
        if task is None or task.project_id != project.id:
            raise BillingError(f"Task {task_id} does not belong to project {project.id}")
        if not is_task_eligible(task):
            raise BillingError(f"Task {task_id} is not eligible for invoicing")
        ordered.append(task)

    invoice = models.Invoice(
        project_id=project.id,
        invoice_number=generate_invoice_number(db, on=payload.issue_date),
        recipient_email=payload.recipient_email,
        recipient_name=payload.recipient_name,
        tax_amount=_round(payload.tax_amount),
        discount_amount=_round(payload.discount_amount),
        status="draft",
        issue_date=payload.issue_date or now_utc().date(),
        due_date=payload.due_date,
        notes=payload.notes,
        created_by=created_by,
    )
    for line in price_tasks(project, ordered):
        task = line["task"]
        invoice.items.append(models.InvoiceItem(
            task_id=task.id,
            description=task.title,
            hours_billed=line["hours_billed"],
            rate=line["rate"],
            amount=line["amount"],
        ))
        task.invoice_status = TASK_INVOICE_STATUS_FOR["draft"]
    recalculate_totals(invoice)

    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    logger.info(
        "invoice_created: number=%s project=%s items=%d final=%.2f",
        invoice.invoice_number, project.id, len(invoice.items), invoice.final_amount,
    )
    return invoice


def _invoice_tasks(invoice: models.Invoice) -> List[models.Task]:
    return [item.task for item in invoice.items if item.task is not None]


def _upsert_receivables(db: Session, invoice: models.Invoice) -> None:
    for item in invoice.items:
        receivable = (
            db.query(models.Receivable)
            .filter(models.Receivable.task_id == item.task_id)
            .first()
        )
        if receivable is None:
            receivable = models.Receivable(task_id=item.task_id, project_id=invoice.project_id)
            db.add(receivable)
        receivable.project_id = invoice.project_id
        receivable.amount = _round(item.amount)
        receivable.hours_billed = _round(item.hours_billed)
        receivable.rate_used = _round(item.rate)
        receivable.status = "open"
        receivable.paid_at = None


def _withdraw_receivables(invoice: models.Invoice) -> None:
    """Drop the receivables created when the invoice was sent.

    Refused once any payment has been recorded against them.
    """
    tasks = [task for task in _invoice_tasks(invoice) if task.receivable is not None]
    if any(task.receivable.revenue_records for task in tasks):
        raise BillingError("Invoice has recorded payments; its receivables cannot be withdrawn")
    for task in tasks:
        task.receivable = None


def _cancel_effects(db: Session, invoice: models.Invoice, reason: Optional[str], now: datetime) -> None:
    day = now.date().isoformat()
    for task in _invoice_tasks(invoice):
        task.invoice_status = "cancelled"
        if task.status == "completed":
            task.description = (task.description or "") + CANCELLED_TASK_NOTE

        receivable = task.receivable
        if receivable is not None and receivable.status == "open":
            note = (
                f"Cancelled due to invoice cancellation on {day}. "
                f"Original amount: {format_money(receivable.amount)}"
            )
            receivable.notes = note if not receivable.notes else f"{receivable.notes}\n\n{note}"
            receivable.status = "cancelled"

    cancellation = (
        f"CANCELLED: {reason or 'No reason provided'}\n"
        f"Original total amount: {format_money(invoice.total_amount)}\n"
        f"Original final amount: {format_money(invoice.final_amount)}\n"
        f"Cancelled on: {day}"
    )
    invoice.notes = cancellation if not invoice.notes else f"{invoice.notes}\n\n{cancellation}"
    invoice.total_amount = 0
    invoice.final_amount = 0


def transition_invoice(
    db: Session,
    invoice: models.Invoice,
    new_status: str,
    *,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> models.Invoice:
    """Apply an invoice status change with all dependent task/receivable updates."""
    old_status = invoice.status
    if new_status == old_status:
        return invoice
    allowed = INVOICE_TRANSITIONS.get(old_status, frozenset())
    if new_status not in allowed:
        raise BillingError(f"Invoice cannot move from '{old_status}' to '{new_status}'")
    now = now or now_utc()

    if new_status == "cancelled":
        _cancel_effects(db, invoice, reason, now)
    else:
        if new_status == "sent" and old_status == "draft":
            invoice.sent_at = now
            _upsert_receivables(db, invoice)
        if new_status == "draft":
            _withdraw_receivables(invoice)
            invoice.sent_at = None
        if new_status == "paid":
            invoice.paid_at = now
            for task in _invoice_tasks(invoice):
                receivable = task.receivable
                if receivable is not None and receivable.status == "open":
                    receivable.status = "paid"
                    receivable.paid_at = now
        task_status = TASK_INVOICE_STATUS_FOR[new_status]
        for task in _invoice_tasks(invoice):
            task.invoice_status = task_status

    invoice.status = new_status
    invoice.updated_at = now
    if commit:
        db.commit()
        db.refresh(invoice)
    logger.info("invoice_transition: number=%s %s->%s", invoice.invoice_number, old_status, new_status)
    return invoice


def mark_invoice_sent(db: Session, invoice: models.Invoice, *, now: Optional[datetime] = None) -> models.Invoice:
    """Move a draft invoice to sent; other statuses are left untouched."""
    if invoice.status != "draft":
        return invoice
    return transition_invoice(db, invoice, "sent", now=now)


def cancel_invoice(db: Session, invoice: models.Invoice, *, reason: Optional[str] = None) -> models.Invoice:
    return transition_invoice(db, invoice, "cancelled", reason=reason)


def update_invoice(db: Session, invoice: models.Invoice, *, payload: schemas.InvoiceUpdate) -> models.Invoice:
    if invoice.status == "cancelled":
        raise BillingError("Cancelled invoices cannot be modified")
    data = payload.model_dump(exclude_unset=True)
    new_status = data.pop("status", None)
    for field in ("recipient_email", "recipient_name", "due_date", "notes"):
        if field in data:
            setattr(invoice, field, data[field])
    if "tax_amount" in data and data["tax_amount"] is not None:
        invoice.tax_amount = _round(data["tax_amount"])
    if "discount_amount" in data and data["discount_amount"] is not None:
        invoice.discount_amount = _round(data["discount_amount"])
    recalculate_totals(invoice)

    if new_status and new_status != invoice.status:
        return transition_invoice(db, invoice, new_status)
    db.commit()
    db.refresh(invoice)
    return invoice


def delete_invoice(db: Session, invoice: models.Invoice) -> None:
    """Delete a draft invoice and release its tasks for invoicing again."""
    if invoice.status != "draft":
        raise BillingError("Only draft invoices can be deleted")
    _withdraw_receivables(invoice)
    for task in _invoice_tasks(invoice):
        task.invoice_status = "not_invoiced"
    db.delete(invoice)
    db.commit()


def task_on_active_invoice(db: Session, task: models.Task) -> bool:
    """True when the task is billed on any invoice that is not cancelled."""
    return (
        db.query(models.InvoiceItem.id)
        .join(models.Invoice, models.Invoice.id == models.InvoiceItem.invoice_id)
        .filter(
            models.InvoiceItem.task_id == task.id,
            models.Invoice.status != "cancelled",
        )
        .first()
        is not None
    )


def _sync_invoices_paid(db: Session, task_ids: Iterable[uuid.UUID], now: datetime) -> List[models.Invoice]:
    """Mark invoices paid when every task they bill is paid."""
    invoices = (
        db.query(models.Invoice)
        .join(models.InvoiceItem, models.InvoiceItem.invoice_id == models.Invoice.id)
        .filter(
            models.InvoiceItem.task_id.in_(list(task_ids)),
            models.Invoice.status.in_(("sent", "overdue")),
        )
        .distinct()
        .all()
    )
    closed = []
    for invoice in invoices:
        tasks = _invoice_tasks(invoice)
        if tasks and all(t.invoice_status == "paid" for t in tasks):
            invoice.status = "paid"
            invoice.paid_at = now
            closed.append(invoice)
            logger.info("invoice_auto_paid: number=%s", invoice.invoice_number)
    return closed


def record_payment(
    db: Session,
    receivable: models.Receivable,
    *,
    amount: float,
    exchange_rate: float,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.RevenueRecord:
    """Record revenue against a receivable and close it once fully paid.

    amount_inr = amount * exchange_rate * project.inr_conversion_factor
    """
    if receivable.status == "cancelled":
        raise BillingError("Cannot record payment for a cancelled receivable")
    if receivable.status == "paid":
        raise BillingError("Receivable is already paid")
    if amount <= 0:
        raise BillingError("Payment amount must be greater than zero")
    now = now or now_utc()

    factor = 1.0
    if receivable.project is not None and receivable.project.inr_conversion_factor:
        factor = float(receivable.project.inr_conversion_factor)

    record = models.RevenueRecord(
        amount=_round(amount),
        amount_inr=_round(amount * exchange_rate * factor),
        exchange_rate=exchange_rate,
        recorded_at=now,
        notes=notes,
    )
    receivable.revenue_records.append(record)
    receivable.exchange_rate = exchange_rate

    if receivable.total_revenue + 0.005 >= float(receivable.amount or 0):
        receivable.status = "paid"
        receivable.paid_at = now
        if receivable.task is not None:
            receivable.task.invoice_status = "paid"
        db.flush()
        _sync_invoices_paid(db, [receivable.task_id], now)

    db.commit()
    db.refresh(record)
    logger.info(
        "payment_recorded: receivable=%s amount=%.2f status=%s",
        receivable.id, record.amount, receivable.status,
    )
    return record
