"""
Domain-split Pydantic schemas.

Re-exports every request/response model so callers can write
`from taskbill.db import schemas`.
"""

from .users import UserBase, User, UserMe, ProfileUpdate, RoleUpdate
from .projects import ProjectBase, ProjectCreate, ProjectUpdate, Project
from .tasks import TaskBase, TaskCreate, TaskUpdate, ProgressUpdate, Task
from .billing import (
    InvoiceCreate,
    InvoiceUpdate,
    InvoiceCancel,
    InvoiceItem,
    Invoice,
    InvoiceWithItems,
    EligibleTask,
    PaymentCreate,
    RevenueRecord,
    Receivable,
    ReceivableWithRevenue,
    TaxPaymentCreate,
    TaxPayment,
    TaxPeriod,
    TaxSummary,
    ExchangeRate,
    HoursByDate,
    RevenueTotals,
    Analytics,
)
from .api_keys import (
    ApiKeyCreateRequest,
    ApiKeyUpdateRequest,
    ApiKeyResponse,
    ApiKeyCreateResponse,
    ApiUsageLog,
    ApiUsageSummary,
    ApiUsagePage,
    ApiRateLimit,
    ApiRateLimitUpdate,
)
from .audits import AuditLogBase, AuditLogCreate, AuditLog
from .maintenance import CleanupRequest, CleanupCounts, CleanupResult

__all__ = [
    # users
    "UserBase", "User", "UserMe", "ProfileUpdate", "RoleUpdate",
    # projects/tasks
    "ProjectBase", "ProjectCreate", "ProjectUpdate", "Project",
    "TaskBase", "TaskCreate", "TaskUpdate", "ProgressUpdate", "Task",
    # billing
    "InvoiceCreate", "InvoiceUpdate", "InvoiceCancel", "InvoiceItem", "Invoice",
    "InvoiceWithItems", "EligibleTask", "PaymentCreate", "RevenueRecord",
    "Receivable", "ReceivableWithRevenue", "TaxPaymentCreate", "TaxPayment",
    "TaxPeriod", "TaxSummary", "ExchangeRate", "HoursByDate", "RevenueTotals",
    "Analytics",
    # api keys
    "ApiKeyCreateRequest", "ApiKeyUpdateRequest", "ApiKeyResponse",
    "ApiKeyCreateResponse", "ApiUsageLog", "ApiUsageSummary", "ApiUsagePage",
    "ApiRateLimit", "ApiRateLimitUpdate",
    # audits
    "AuditLogBase", "AuditLogCreate", "AuditLog",
    # maintenance
    "CleanupRequest", "CleanupCounts", "CleanupResult",
]
