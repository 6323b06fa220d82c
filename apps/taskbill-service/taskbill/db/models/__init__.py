"""
Domain-split SQLAlchemy models.

Exposes `Base`, the timestamp helpers, and all ORM classes from one place so
callers can write `from taskbill.db import models`.
"""

from .base import Base, ensure_aware, now_utc, today_utc  # re-export

from .users import User
from .projects import Project
from .tasks import Task
from .billing import Receivable, RevenueRecord, Invoice, InvoiceItem, TaxPayment
from .api_access import ApiKey, ApiUsageLog, ApiRateLimit
from .audit import AuditLog

__all__ = [
    # base
    "Base",
    "now_utc",
    "today_utc",
    "ensure_aware",
    # users
    "User",
    # work tracking
    "Project",
    "Task",
    # billing
    "Receivable",
    "RevenueRecord",
    "Invoice",
    "InvoiceItem",
    "TaxPayment",
    # external api access
    "ApiKey",
    "ApiUsageLog",
    "ApiRateLimit",
    # audit
    "AuditLog",
]
