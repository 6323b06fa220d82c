import uuid
from datetime import datetime
from pydantic import BaseModel, ConfigDict, field_validator
from typing import List, Optional

from taskbill.utils.statuses import API_KEY_PERMISSIONS


def _clean_permissions(v: List[str]) -> List[str]:
    cleaned = list(dict.fromkeys(p.strip().lower() for p in (v or []) if p and p.strip()))
    if not cleaned:
        raise ValueError("At least one permission is required")
    for p in cleaned:
        if p not in API_KEY_PERMISSIONS:
            raise ValueError(f"Invalid permission: {p}")
    return cleaned


def _check_rate_limit(v: int) -> int:
    if v < 1 or v > 10000:
        raise ValueError("rate_limit must be between 1 and 10000 requests per minute")
    return v


class ApiKeyCreateRequest(BaseModel):
    name: str
    permissions: List[str]
    rate_limit: int = 60
    expires_at: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str):
        s = (v or "").strip()
        if not s or len(s) > 100:
            raise ValueError("name must be 1..100 characters")
        return s

    @field_validator("permissions")
    @classmethod
    def _validate_permissions(cls, v: List[str]):
        return _clean_permissions(v)

    @field_validator("rate_limit")
    @classmethod
    def _validate_rate_limit(cls, v: int):
        return _check_rate_limit(v)


class ApiKeyUpdateRequest(BaseModel):
    name: Optional[str] = None
    is_active: Optional[bool] = None
    rate_limit: Optional[int] = None
    expires_at: Optional[datetime] = None
    permissions: Optional[List[str]] = None

    @field_validator("permissions")
    @classmethod
    def _validate_permissions(cls, v: Optional[List[str]]):
        return v if v is None else _clean_permissions(v)

    @field_validator("rate_limit")
    @classmethod
    def _validate_rate_limit(cls, v: Optional[int]):
        return v if v is None else _check_rate_limit(v)


class ApiKeyResponse(BaseModel):
    id: uuid.UUID
    name: str
    key_prefix: Optional[str] = None
    permissions: List[str]
    rate_limit: int
    is_active: bool
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    last_used: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ApiKeyCreateResponse(ApiKeyResponse):
    key: str  # shown once; only its hash is stored


class ApiUsageLog(BaseModel):
    id: uuid.UUID
    api_key_id: uuid.UUID
    endpoint: str
    method: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    response_status: int
    response_time_ms: int
    request_size_bytes: Optional[int] = None
    response_size_bytes: Optional[int] = None
    error_message: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ApiUsageSummary(BaseModel):
    total_requests: int
    requests_last_24h: int
    error_count: int
    average_response_time_ms: float


class ApiUsagePage(BaseModel):
    summary: ApiUsageSummary
    logs: List[ApiUsageLog]
    skip: int
    limit: int


class ApiRateLimit(BaseModel):
    id: uuid.UUID
    api_key_id: uuid.UUID
    endpoint_pattern: str
    requests_per_minute: int
    requests_per_hour: int
    requests_per_day: int
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ApiRateLimitUpdate(BaseModel):
    requests_per_minute: Optional[int] = None
    requests_per_hour: Optional[int] = None
    requests_per_day: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator("requests_per_minute", "requests_per_hour", "requests_per_day")
    @classmethod
    def _positive(cls, v: Optional[int]):
        if v is not None and v < 1:
            raise ValueError("limits must be >= 1")
        return v
