"""
Audit logging helpers and enums.

Persists normalized audit records for billing, API key, role and cleanup
actions. Callers wrap `log()` so an audit failure never fails the request.
"""
from __future__ import annotations
import logging
import uuid
from enum import Enum
from typing import Any, Optional, Dict
from sqlalchemy.orm import Session

from taskbill.db import schemas
from taskbill.db.repositories import audits as audit_repo

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    # Projects
    PROJECT_CREATE = "project_create"
    PROJECT_DELETE = "project_delete"
    # Invoices
    INVOICE_CREATE = "invoice_create"
    INVOICE_SEND = "invoice_send"
    INVOICE_CANCEL = "invoice_cancel"
    INVOICE_DELETE = "invoice_delete"
    # Payments
    PAYMENT_RECORD = "payment_record"
    TAX_PAYMENT_RECORD = "tax_payment_record"
    # API keys
    API_KEY_CREATE = "api_key_create"
    API_KEY_UPDATE = "api_key_update"
    API_KEY_REVOKE = "api_key_revoke"
    # Users
    ROLE_CHANGE = "role_change"
    # Maintenance
    DATA_CLEANUP = "data_cleanup"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


def log(
    db: Session,
    *,
    action: AuditAction | str,
    status: AuditStatus | str = AuditStatus.SUCCESS,
    target_type: str,
    target_id: Optional[uuid.UUID] = None,
    actor_user_id: uuid.UUID,
    reason: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> schemas.AuditLog:
    """Central audit logging helper."""
    # Persist plain strings, not Enum reprs
    action_value = action.value if isinstance(action, AuditAction) else str(action)
    status_value = status.value if isinstance(status, AuditStatus) else str(status)
    audit_log = schemas.AuditLogCreate(
        action_type=action_value,
        status=status_value,
        target_type=target_type,
        target_id=target_id,
        reason=reason,
        metadata=metadata or {},
    )
    return audit_repo.create_audit_log(db, audit_log=audit_log, actor_user_id=actor_user_id)


def safe_log(db: Session, **kwargs: Any) -> None:
    """`log()` that records a warning instead of raising."""
    try:
        log(db, **kwargs)
    except Exception as exc:
        db.rollback()
        logger.warning("audit write failed for %s: %s", kwargs.get("action"), exc)


__all__ = ["AuditAction", "AuditStatus", "log", "safe_log"]
