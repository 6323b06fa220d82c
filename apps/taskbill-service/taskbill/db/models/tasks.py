import uuid
from sqlalchemy import Column, String, Text, Date, DateTime, ForeignKey, Integer, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import Base, Money, now_utc, today_utc


class Task(Base):
    __tablename__ = 'tasks'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(300), nullable=False)
    description = Column(Text, nullable=False, default='')
    # todo|in_progress|review|completed|hold|archived
    status = Column(String(20), nullable=False, default='todo')
    priority = Column(String(10), nullable=False, default='medium')
    assigned_to = Column(String, nullable=True)
    due_date = Column(Date, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    hours_worked = Column(Money(), nullable=False, default=0)
    estimated_hours = Column(Money(), nullable=True)
    progress_percentage = Column(Integer, nullable=False, default=0)
    last_progress_update = Column(DateTime(timezone=True), nullable=True)

    # not_invoiced|created|invoiced|paid|cancelled
    invoice_status = Column(String(20), nullable=False, default='not_invoiced')
    ticket_number = Column(String(50), nullable=True)

    created_on = Column(Date, nullable=False, default=today_utc)
    completed_on = Column(Date, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    previous_status = Column(String(20), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    project = relationship("Project", back_populates="tasks")
    receivable = relationship(
        "Receivable", back_populates="task", uselist=False, cascade="all, delete-orphan"
    )
    invoice_items = relationship("InvoiceItem", back_populates="task", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "status IN ('todo', 'in_progress', 'review', 'completed', 'hold', 'archived')",
            name='ck_tasks_status',
        ),
        CheckConstraint("priority IN ('low', 'medium', 'high')", name='ck_tasks_priority'),
        CheckConstraint(
            "invoice_status IN ('not_invoiced', 'created', 'invoiced', 'paid', 'cancelled')",
            name='ck_tasks_invoice_status',
        ),
        CheckConstraint(
            "progress_percentage >= 0 AND progress_percentage <= 100",
            name='ck_tasks_progress_range',
        ),
        Index('ix_tasks_project_id', 'project_id'),
        Index('ix_tasks_status', 'status'),
        Index('ix_tasks_invoice_status', 'invoice_status'),
    )
