import uuid
from datetime import date, datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, field_validator

from taskbill.utils.statuses import INVOICE_STATUSES, validate_choice


def _check_email(v: str) -> str:
    s = (v or "").strip()
    if "@" not in s or s.startswith("@") or s.endswith("@"):
        raise ValueError("recipient_email must be a valid email address")
    return s


# Invoices

class InvoiceCreate(BaseModel):
    project_id: uuid.UUID
    task_ids: List[uuid.UUID]
    recipient_email: str
    recipient_name: Optional[str] = None
    tax_amount: float = 0
    discount_amount: float = 0
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("task_ids")
    @classmethod
    def _at_least_one_task(cls, v: List[uuid.UUID]):
        if not v:
            raise ValueError("At least one task is required")
        # de-duplicate while keeping order
        return list(dict.fromkeys(v))

    @field_validator("recipient_email")
    @classmethod
    def _validate_email(cls, v: str):
        return _check_email(v)

    @field_validator("tax_amount", "discount_amount")
    @classmethod
    def _non_negative(cls, v: float):
        if v < 0:
            raise ValueError("amounts must be >= 0")
        return v


class InvoiceUpdate(BaseModel):
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    tax_amount: Optional[float] = None
    discount_amount: Optional[float] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    status: Optional[str] = None

    @field_validator("recipient_email")
    @classmethod
    def _validate_email(cls, v: Optional[str]):
        return v if v is None else _check_email(v)

    @field_validator("tax_amount", "discount_amount")
    @classmethod
    def _non_negative(cls, v: Optional[float]):
        if v is not None and v < 0:
            raise ValueError("amounts must be >= 0")
        return v

    @field_validator("status")
    @classmethod
    def _validate_status(cls, v: Optional[str]):
        return v if v is None else validate_choice(v, INVOICE_STATUSES, "status")


class InvoiceCancel(BaseModel):
    reason: Optional[str] = None


class InvoiceItem(BaseModel):
    id: uuid.UUID
    invoice_id: uuid.UUID
    task_id: uuid.UUID
    description: str
    hours_billed: float
    rate: float
    amount: float
    created_at: datetime
    task_title: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class Invoice(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    invoice_number: str
    recipient_email: str
    recipient_name: Optional[str] = None
    total_amount: float
    tax_amount: float
    discount_amount: float
    final_amount: float
    status: str
    issue_date: date
    due_date: Optional[date] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    project_name: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class InvoiceWithItems(Invoice):
    items: List[InvoiceItem] = []


class EligibleTask(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    hours_worked: float
    status: str
    invoice_status: str
    completed_at: Optional[datetime] = None
    project_rate: float
    rate_type: str


# Receivables and revenue

class PaymentCreate(BaseModel):
    amount: float
    exchange_rate: Optional[float] = None
    notes: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def _positive_amount(cls, v: float):
        if v <= 0:
            raise ValueError("amount must be > 0")
        return v

    @field_validator("exchange_rate")
    @classmethod
    def _positive_rate(cls, v: Optional[float]):
        if v is not None and v <= 0:
            raise ValueError("exchange_rate must be > 0")
        return v


class RevenueRecord(BaseModel):
    id: uuid.UUID
    receivable_id: uuid.UUID
    amount: float
    amount_inr: Optional[float] = None
    exchange_rate: Optional[float] = None
    recorded_at: datetime
    notes: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class Receivable(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    project_id: uuid.UUID
    amount: float
    hours_billed: float
    rate_used: float
    status: str
    created_at: datetime
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    exchange_rate: Optional[float] = None
    task_title: Optional[str] = None
    project_name: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class ReceivableWithRevenue(Receivable):
    revenue_records: List[RevenueRecord] = []
    total_revenue: float = 0
    remaining_amount: float = 0
    total_revenue_inr: float = 0
    remaining_amount_inr: float = 0


# Tax

class TaxPaymentCreate(BaseModel):
    amount: float
    amount_inr: Optional[float] = None
    payment_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def _positive_amount(cls, v: float):
        if v <= 0:
            raise ValueError("amount must be > 0")
        return v


class TaxPayment(BaseModel):
    id: uuid.UUID
    amount: float
    amount_inr: Optional[float] = None
    payment_date: date
    notes: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class TaxPeriod(BaseModel):
    period: str
    revenue: float
    revenue_inr: float
    tax_amount: float
    tax_amount_inr: float
    tax_rate: float


class TaxSummary(BaseModel):
    tax_rate: float
    periods: List[TaxPeriod]
    total_revenue: float
    total_tax: float
    total_paid: float
    remaining_liability: float


# Exchange rate and analytics

class ExchangeRate(BaseModel):
    base: str = "USD"
    target: str = "INR"
    rate: float
    source: str
    last_updated: Optional[datetime] = None


class HoursByDate(BaseModel):
    date: date
    hours: float


class RevenueTotals(BaseModel):
    total_invoiced: float
    total_paid: float
    outstanding: float


class Analytics(BaseModel):
    status_distribution: Dict[str, int]
    priority_distribution: Dict[str, int]
    hours_worked_by_date: List[HoursByDate]
    total_hours: float
    completion_rate: float
    average_task_duration: float
    revenue: RevenueTotals
