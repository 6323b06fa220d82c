import uuid
from sqlalchemy import Column, String, Text, Date, DateTime, ForeignKey, Numeric, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import Base, Money, now_utc, today_utc


class Receivable(Base):
    __tablename__ = 'receivables'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    task_id = Column(UUID(as_uuid=True), ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False, unique=True)
    project_id = Column(UUID(as_uuid=True), ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    amount = Column(Money(), nullable=False, default=0)
    hours_billed = Column(Money(), nullable=False, default=0)
    rate_used = Column(Money(), nullable=False, default=0)
    status = Column(String(20), nullable=False, default='open')  # open|paid|cancelled
    paid_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    exchange_rate = Column(Numeric(12, 4, asdecimal=False), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    task = relationship("Task", back_populates="receivable")
    project = relationship("Project")
    revenue_records = relationship(
        "RevenueRecord",
        back_populates="receivable",
        cascade="all, delete-orphan",
        order_by="RevenueRecord.recorded_at",
    )

    @property
    def task_title(self):
        return self.task.title if self.task is not None else None

    @property
    def project_name(self):
        return self.project.name if self.project is not None else None

    @property
    def total_revenue(self) -> float:
        return round(sum(r.amount or 0 for r in self.revenue_records), 2)

    @property
    def total_revenue_inr(self) -> float:
        return round(sum(r.amount_inr or 0 for r in self.revenue_records), 2)

    @property
    def remaining_amount(self) -> float:
        return round(max(0.0, (self.amount or 0) - self.total_revenue), 2)

    __table_args__ = (
        CheckConstraint("status IN ('open', 'paid', 'cancelled')", name='ck_receivables_status'),
        Index('ix_receivables_project_id', 'project_id'),
        Index('ix_receivables_status', 'status'),
    )


class RevenueRecord(Base):
    __tablename__ = 'revenue_records'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    receivable_id = Column(UUID(as_uuid=True), ForeignKey('receivables.id', ondelete='CASCADE'), nullable=False)
    amount = Column(Money(), nullable=False)
    amount_inr = Column(Money(), nullable=True)
    exchange_rate = Column(Numeric(12, 4, asdecimal=False), nullable=True)
    recorded_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    notes = Column(Text, nullable=True)

    receivable = relationship("Receivable", back_populates="revenue_records")

    __table_args__ = (
        CheckConstraint("amount > 0", name='ck_revenue_records_amount_positive'),
        Index('ix_revenue_records_receivable_id', 'receivable_id'),
    )


class Invoice(Base):
    __tablename__ = 'invoices'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    invoice_number = Column(String(32), nullable=False, unique=True)
    recipient_email = Column(String, nullable=False)
    recipient_name = Column(String, nullable=True)
    total_amount = Column(Money(), nullable=False, default=0)
    tax_amount = Column(Money(), nullable=False, default=0)
    discount_amount = Column(Money(), nullable=False, default=0)
    final_amount = Column(Money(), nullable=False, default=0)
    # draft|sent|paid|overdue|cancelled
    status = Column(String(20), nullable=False, default='draft')
    issue_date = Column(Date, nullable=False, default=today_utc)
    due_date = Column(Date, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    project = relationship("Project")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.created_at",
    )

    @property
    def project_name(self):
        return self.project.name if self.project is not None else None

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'sent', 'paid', 'overdue', 'cancelled')",
            name='ck_invoices_status',
        ),
        Index('ix_invoices_project_id', 'project_id'),
        Index('ix_invoices_status', 'status'),
    )


class InvoiceItem(Base):
    __tablename__ = 'invoice_items'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False)
    task_id = Column(UUID(as_uuid=True), ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False)
    description = Column(Text, nullable=False, default='')
    hours_billed = Column(Money(), nullable=False, default=0)
    rate = Column(Money(), nullable=False, default=0)
    amount = Column(Money(), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    invoice = relationship("Invoice", back_populates="items")
    task = relationship("Task", back_populates="invoice_items")

    @property
    def task_title(self):
        return self.task.title if self.task is not None else None

    __table_args__ = (
        Index('ix_invoice_items_invoice_id', 'invoice_id'),
        Index('ix_invoice_items_task_id', 'task_id'),
    )


class TaxPayment(Base):
    __tablename__ = 'tax_payments'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    amount = Column(Money(), nullable=False)
    amount_inr = Column(Money(), nullable=True)
    payment_date = Column(Date, nullable=False, default=today_utc)
    notes = Column(Text, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name='ck_tax_payments_amount_positive'),
    )
