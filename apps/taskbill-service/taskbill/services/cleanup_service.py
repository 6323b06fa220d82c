"""Bulk removal of application data (users and audit history are kept)."""
from __future__ import annotations

import logging
from typing import Dict, List, Tuple, Type

from sqlalchemy.orm import Session

from taskbill.db import models

logger = logging.getLogger(__name__)

CONFIRMATION_PHRASE = "DELETE ALL DATA"

# Children before parents so no foreign key is left dangling mid-way.
CLEANUP_ORDER: List[Tuple[str, Type]] = [
    ("revenue_records", models.RevenueRecord),
    ("invoice_items", models.InvoiceItem),
    ("receivables", models.Receivable),
    ("invoices", models.Invoice),
    ("api_usage_logs", models.ApiUsageLog),
    ("api_rate_limits", models.ApiRateLimit),
    ("api_keys", models.ApiKey),
    ("tasks", models.Task),
    ("projects", models.Project),
    ("tax_payments", models.TaxPayment),
]


class CleanupConfirmationError(ValueError):
    pass


def record_counts(db: Session) -> Dict[str, int]:
    return {name: db.query(model).count() for name, model in CLEANUP_ORDER}


def delete_all_data(db: Session, *, confirm: str) -> Dict[str, int]:
    """Delete every row of the application tables in dependency order.

    Runs in a single transaction; any failure rolls everything back.
    """
    if confirm != CONFIRMATION_PHRASE:
        raise CleanupConfirmationError(f"Confirmation must be exactly '{CONFIRMATION_PHRASE}'")

    deleted: Dict[str, int] = {}
    try:
        for name, model in CLEANUP_ORDER:
            deleted[name] = db.query(model).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.expire_all()
    logger.warning("cleanup_completed: %s", ", ".join(f"{k}={v}" for k, v in deleted.items()))
    return deleted
