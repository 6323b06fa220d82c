"""
Tax API endpoints: liability summary and tax payments.
"""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from taskbill.api.deps import get_current_user_context, require_permission
from taskbill.audit import AuditAction, safe_log
from taskbill.db import schemas
from taskbill.db.database import get_db
from taskbill.services import tax_service
from taskbill.services.exchange_rate_service import get_exchange_rate_service
from taskbill.utils.role_permissions import PERM_MANAGE_BILLING

router = APIRouter(prefix="/tax", tags=["tax"])


@router.get("/summary", response_model=schemas.TaxSummary)
def get_tax_summary(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    rates = get_exchange_rate_service()
    return tax_service.build_tax_summary(db, usd_to_inr=rates.convert_usd_to_inr)


@router.get("/payments", response_model=List[schemas.TaxPayment])
def list_tax_payments(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    return tax_service.list_tax_payments(db, skip=skip, limit=limit)


@router.post("/payments", response_model=schemas.TaxPayment, status_code=status.HTTP_201_CREATED)
def record_tax_payment(
    payload: schemas.TaxPaymentCreate,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_BILLING)),
):
    user, _ctx = user_context
    if payload.amount_inr is None:
        payload.amount_inr = get_exchange_rate_service().convert_usd_to_inr(payload.amount)
    payment = tax_service.record_tax_payment(db, payload=payload, created_by=user.id)
    safe_log(
        db,
        action=AuditAction.TAX_PAYMENT_RECORD,
        target_type="tax_payment",
        target_id=payment.id,
        actor_user_id=user.id,
        metadata={"amount": payment.amount},
    )
    return payment
