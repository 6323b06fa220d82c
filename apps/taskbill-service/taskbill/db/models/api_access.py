import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Integer, Boolean, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class ApiKey(Base):
    __tablename__ = 'api_keys'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)

    # sha256 hex of the raw key (never store the raw key)
    key_hash = Column(String(64), nullable=False)
    key_prefix = Column(String(12), nullable=True)

    # e.g. ["read:projects", "read:tasks", "write:tasks"]
    permissions = Column(JSONB, nullable=False, default=list)
    rate_limit = Column(Integer, nullable=False, default=60)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)
    last_used = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    rate_limits = relationship(
        "ApiRateLimit",
        back_populates="api_key",
        cascade="all, delete-orphan",
        order_by="ApiRateLimit.created_at",
    )
    usage_logs = relationship("ApiUsageLog", back_populates="api_key", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_api_keys_key_hash', 'key_hash', unique=True),
        Index('ix_api_keys_is_active', 'is_active'),
    )


class ApiUsageLog(Base):
    __tablename__ = 'api_usage_logs'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    api_key_id = Column(UUID(as_uuid=True), ForeignKey('api_keys.id', ondelete='CASCADE'), nullable=False)
    endpoint = Column(Text, nullable=False)
    method = Column(String(10), nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    response_status = Column(Integer, nullable=False)
    response_time_ms = Column(Integer, nullable=False, default=0)
    request_size_bytes = Column(Integer, nullable=True)
    response_size_bytes = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    api_key = relationship("ApiKey", back_populates="usage_logs")

    __table_args__ = (
        Index('idx_api_usage_key_created', 'api_key_id', 'created_at'),
    )


class ApiRateLimit(Base):
    __tablename__ = 'api_rate_limits'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    api_key_id = Column(UUID(as_uuid=True), ForeignKey('api_keys.id', ondelete='CASCADE'), nullable=False)
    endpoint_pattern = Column(Text, nullable=False, default='*')
    requests_per_minute = Column(Integer, nullable=False, default=60)
    requests_per_hour = Column(Integer, nullable=False, default=1000)
    requests_per_day = Column(Integer, nullable=False, default=10000)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    api_key = relationship("ApiKey", back_populates="rate_limits")

    __table_args__ = (
        Index('ix_api_rate_limits_api_key_id', 'api_key_id'),
    )
