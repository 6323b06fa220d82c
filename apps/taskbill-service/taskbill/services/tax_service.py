"""Tax liability derived from collected revenue, and recorded tax payments."""
from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from taskbill.db import models, schemas
from taskbill.db.models import ensure_aware
from taskbill.utils.runtime import env_float

logger = logging.getLogger(__name__)

DEFAULT_TAX_RATE = 0.15


def tax_rate() -> float:
    return env_float("TAX_RATE", DEFAULT_TAX_RATE)


def _paid_revenue_records(db: Session) -> List[models.RevenueRecord]:
    return (
        db.query(models.RevenueRecord)
        .join(models.Receivable, models.Receivable.id == models.RevenueRecord.receivable_id)
        .filter(models.Receivable.status == "paid")
        .order_by(models.RevenueRecord.recorded_at.desc())
        .all()
    )


def build_tax_summary(
    db: Session,
    *,
    usd_to_inr: Callable[[float], float],
    rate: Optional[float] = None,
) -> schemas.TaxSummary:
    """Group paid revenue by month and apply the tax rate.

    `usd_to_inr` converts amounts for records stored without an INR value.
    """
    rate = tax_rate() if rate is None else rate
    buckets: Dict[str, Dict[str, float]] = defaultdict(lambda: {"revenue": 0.0, "revenue_inr": 0.0})
    for record in _paid_revenue_records(db):
        period = ensure_aware(record.recorded_at).strftime("%Y-%m")
        amount = float(record.amount or 0)
        inr = float(record.amount_inr) if record.amount_inr is not None else usd_to_inr(amount)
        buckets[period]["revenue"] += amount
        buckets[period]["revenue_inr"] += inr

    periods = [
        schemas.TaxPeriod(
            period=period,
            revenue=round(data["revenue"], 2),
            revenue_inr=round(data["revenue_inr"], 2),
            tax_amount=round(data["revenue"] * rate, 2),
            tax_amount_inr=round(data["revenue_inr"] * rate, 2),
            tax_rate=rate,
        )
        for period, data in sorted(buckets.items(), reverse=True)
    ]

    total_revenue = round(sum(p.revenue for p in periods), 2)
    total_tax = round(sum(p.tax_amount for p in periods), 2)
    total_paid = round(sum(float(p.amount or 0) for p in db.query(models.TaxPayment).all()), 2)
    return schemas.TaxSummary(
        tax_rate=rate,
        periods=periods,
        total_revenue=total_revenue,
        total_tax=total_tax,
        total_paid=total_paid,
        remaining_liability=round(max(0.0, total_tax - total_paid), 2),
    )


def list_tax_payments(db: Session, *, skip: int = 0, limit: int = 100) -> List[models.TaxPayment]:
    return (
        db.query(models.TaxPayment)
        .order_by(models.TaxPayment.payment_date.desc(), models.TaxPayment.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def record_tax_payment(
    db: Session,
    *,
    payload: schemas.TaxPaymentCreate,
    created_by: Optional[uuid.UUID],
) -> models.TaxPayment:
    payment = models.TaxPayment(
        amount=round(payload.amount, 2),
        amount_inr=round(payload.amount_inr, 2) if payload.amount_inr is not None else None,
        notes=payload.notes,
        created_by=created_by,
    )
    if payload.payment_date is not None:
        payment.payment_date = payload.payment_date
    db.add(payment)
    db.commit()
    db.refresh(payment)
    logger.info("tax_payment_recorded: amount=%.2f date=%s", payment.amount, payment.payment_date)
    return payment
