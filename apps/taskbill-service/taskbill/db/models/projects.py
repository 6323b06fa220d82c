import uuid
from sqlalchemy import Column, String, Text, Date, DateTime, ForeignKey, Numeric, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import Base, Money, now_utc, today_utc


class Project(Base):
    __tablename__ = 'projects'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default='')
    status = Column(String(20), nullable=False, default='active')  # active|completed|on_hold
    priority = Column(String(10), nullable=False, default='medium')  # low|medium|high
    start_date = Column(Date, nullable=False, default=today_utc)
    end_date = Column(Date, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    # Billing configuration
    hourly_rate = Column(Money(), nullable=False, default=50)
    fixed_rate = Column(Money(), nullable=True)
    rate_type = Column(String(10), nullable=False, default='hourly')  # hourly|fixed
    inr_conversion_rule = Column(Text, nullable=True)
    inr_conversion_factor = Column(Numeric(8, 4, asdecimal=False), nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    tasks = relationship(
        "Task",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Task.created_at",
    )

    __table_args__ = (
        CheckConstraint("status IN ('active', 'completed', 'on_hold')", name='ck_projects_status'),
        CheckConstraint("priority IN ('low', 'medium', 'high')", name='ck_projects_priority'),
        CheckConstraint("rate_type IN ('hourly', 'fixed')", name='ck_projects_rate_type'),
        Index('ix_projects_status', 'status'),
        Index('ix_projects_created_at', 'created_at'),
    )
