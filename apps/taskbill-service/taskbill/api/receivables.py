"""
Receivables, payments and the USD -> INR exchange rate.
"""
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from taskbill.api.deps import get_current_user_context, require_permission
from taskbill.api.invoices import billing_http_error
from taskbill.audit import AuditAction, safe_log
from taskbill.db import models, schemas
from taskbill.db.database import get_db
from taskbill.db.repositories import invoices as invoice_repo
from taskbill.services import billing_service
from taskbill.services.billing_service import BillingError
from taskbill.services.exchange_rate_service import get_exchange_rate_service
from taskbill.utils.role_permissions import PERM_MANAGE_BILLING

router = APIRouter(prefix="/receivables", tags=["receivables"])
exchange_router = APIRouter(tags=["exchange-rate"])


def _with_revenue(receivable: models.Receivable, rate: float) -> schemas.ReceivableWithRevenue:
    factor = 1.0
    if receivable.project is not None and receivable.project.inr_conversion_factor:
        factor = float(receivable.project.inr_conversion_factor)
    result = schemas.ReceivableWithRevenue.model_validate(receivable)
    result.remaining_amount_inr = round(receivable.remaining_amount * rate * factor, 2)
    return result


@router.get("", response_model=List[schemas.ReceivableWithRevenue])
def list_receivables(
    project_id: Optional[uuid.UUID] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    receivables = invoice_repo.list_receivables(
        db, project_id=project_id, status=status_filter, skip=skip, limit=limit
    )
    rate = get_exchange_rate_service().current_rate() if receivables else 0.0
    return [_with_revenue(r, rate) for r in receivables]


@router.post(
    "/{receivable_id}/payments",
    response_model=schemas.RevenueRecord,
    status_code=status.HTTP_201_CREATED,
)
def record_payment(
    receivable_id: uuid.UUID,
    payload: schemas.PaymentCreate,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_BILLING)),
):
    user, _ctx = user_context
    receivable = invoice_repo.get_receivable(db, receivable_id=receivable_id)
    if not receivable:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Receivable not found")

    rate = payload.exchange_rate or get_exchange_rate_service().current_rate()
    try:
        record = billing_service.record_payment(
            db, receivable, amount=payload.amount, exchange_rate=rate, notes=payload.notes
        )
    except BillingError as e:
        db.rollback()
        raise billing_http_error(e)
    safe_log(
        db,
        action=AuditAction.PAYMENT_RECORD,
        target_type="receivable",
        target_id=receivable_id,
        actor_user_id=user.id,
        metadata={"amount": record.amount, "amount_inr": record.amount_inr, "exchange_rate": rate},
    )
    return record


@exchange_router.get("/exchange-rate", response_model=schemas.ExchangeRate)
def get_exchange_rate(
    refresh: bool = False,
    user_context=Depends(get_current_user_context),
):
    quote = get_exchange_rate_service().get_quote(force_refresh=refresh)
    return schemas.ExchangeRate(rate=quote.rate, source=quote.source, last_updated=quote.last_updated)
