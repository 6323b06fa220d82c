"""
Invoice API endpoints.

Reads are open to signed-in users; every mutation requires manage_billing.
"""
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from taskbill.api.deps import get_current_user_context, require_permission
from taskbill.audit import AuditAction, safe_log
from taskbill.db import models, schemas
from taskbill.db.database import get_db
from taskbill.db.repositories import invoices as invoice_repo
from taskbill.db.repositories import projects as project_repo
from taskbill.services import billing_service, invoice_email_service
from taskbill.services.billing_service import BillingError, BillingNotFound
from taskbill.services.email_service import EmailSendError
from taskbill.utils.role_permissions import PERM_MANAGE_BILLING

router = APIRouter(prefix="/invoices", tags=["invoices"])


def billing_http_error(exc: BillingError) -> HTTPException:
    if isinstance(exc, BillingNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _get_invoice_or_404(db: Session, invoice_id: uuid.UUID) -> models.Invoice:
    invoice = invoice_repo.get_invoice(db, invoice_id=invoice_id)
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return invoice


@router.get("", response_model=List[schemas.Invoice])
def list_invoices(
    project_id: Optional[uuid.UUID] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    return invoice_repo.list_invoices(db, project_id=project_id, status=status_filter, skip=skip, limit=limit)


@router.get("/eligible-tasks", response_model=List[schemas.EligibleTask])
def list_eligible_tasks(
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    project = project_repo.get_project(db, project_id=project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    rate = billing_service.project_rate(project)
    return [
        schemas.EligibleTask(
            id=task.id,
            title=task.title,
            description=task.description or "",
            hours_worked=task.hours_worked or 0,
            status=task.status,
            invoice_status=task.invoice_status,
            completed_at=task.completed_at,
            project_rate=rate,
            rate_type=project.rate_type,
        )
        for task in billing_service.list_eligible_tasks(db, project_id=project.id)
    ]


@router.get("/{invoice_id}", response_model=schemas.InvoiceWithItems)
def get_invoice(
    invoice_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    return _get_invoice_or_404(db, invoice_id)


@router.post("", response_model=schemas.InvoiceWithItems, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: schemas.InvoiceCreate,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_BILLING)),
):
    user, _ctx = user_context
    try:
        invoice = billing_service.create_invoice(db, payload=payload, created_by=user.id)
    except BillingError as e:
        db.rollback()
        raise billing_http_error(e)
    safe_log(
        db,
        action=AuditAction.INVOICE_CREATE,
        target_type="invoice",
        target_id=invoice.id,
        actor_user_id=user.id,
        metadata={
            "invoice_number": invoice.invoice_number,
            "task_count": len(payload.task_ids),
            "final_amount": invoice.final_amount,
        },
    )
    return _get_invoice_or_404(db, invoice.id)


@router.patch("/{invoice_id}", response_model=schemas.InvoiceWithItems)
def update_invoice(
    invoice_id: uuid.UUID,
    payload: schemas.InvoiceUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_BILLING)),
):
    user, _ctx = user_context
    invoice = _get_invoice_or_404(db, invoice_id)
    old_status = invoice.status
    try:
        invoice = billing_service.update_invoice(db, invoice, payload=payload)
    except BillingError as e:
        db.rollback()
        raise billing_http_error(e)
    if invoice.status != old_status and invoice.status in ("sent", "cancelled"):
        safe_log(
            db,
            action=AuditAction.INVOICE_SEND if invoice.status == "sent" else AuditAction.INVOICE_CANCEL,
            target_type="invoice",
            target_id=invoice.id,
            actor_user_id=user.id,
            metadata={"invoice_number": invoice.invoice_number, "from": old_status},
        )
    return invoice


@router.post("/{invoice_id}/send")
async def send_invoice(
    invoice_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_BILLING)),
):
    user, _ctx = user_context
    invoice = _get_invoice_or_404(db, invoice_id)
    try:
        delivery = await invoice_email_service.deliver_invoice(db, invoice)
    except BillingError as e:
        db.rollback()
        raise billing_http_error(e)
    except EmailSendError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to send email: {e}")
    safe_log(
        db,
        action=AuditAction.INVOICE_SEND,
        target_type="invoice",
        target_id=invoice.id,
        actor_user_id=user.id,
        metadata={"invoice_number": invoice.invoice_number, "emailed": delivery.emailed},
    )
    return {
        "success": True,
        "message": delivery.message,
        "invoice": schemas.InvoiceWithItems.model_validate(delivery.invoice),
    }


@router.post("/{invoice_id}/cancel", response_model=schemas.InvoiceWithItems)
def cancel_invoice(
    invoice_id: uuid.UUID,
    payload: Optional[schemas.InvoiceCancel] = None,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_BILLING)),
):
    user, _ctx = user_context
    reason = payload.reason if payload else None
    invoice = _get_invoice_or_404(db, invoice_id)
    try:
        invoice = billing_service.cancel_invoice(db, invoice, reason=reason)
    except BillingError as e:
        db.rollback()
        raise billing_http_error(e)
    safe_log(
        db,
        action=AuditAction.INVOICE_CANCEL,
        target_type="invoice",
        target_id=invoice.id,
        actor_user_id=user.id,
        reason=reason,
        metadata={"invoice_number": invoice.invoice_number},
    )
    return invoice


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(
    invoice_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_BILLING)),
):
    user, _ctx = user_context
    invoice = _get_invoice_or_404(db, invoice_id)
    number = invoice.invoice_number
    try:
        billing_service.delete_invoice(db, invoice)
    except BillingError as e:
        db.rollback()
        raise billing_http_error(e)
    safe_log(
        db,
        action=AuditAction.INVOICE_DELETE,
        target_type="invoice",
        target_id=invoice_id,
        actor_user_id=user.id,
        metadata={"invoice_number": number},
    )
