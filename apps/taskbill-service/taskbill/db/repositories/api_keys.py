"""
Repositories for external API keys.

Implements create/list/get/update/delete, usage reporting and the per-key
rate limit rows. The raw key only exists in the return value of create.
"""
from __future__ import annotations

import uuid
from datetime import timedelta
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from taskbill.db import models, schemas
from taskbill.db.models import now_utc
from taskbill.utils import api_key_crypto


def create_api_key(
    db: Session,
    *,
    payload: schemas.ApiKeyCreateRequest,
    created_by: Optional[uuid.UUID],
) -> Tuple[models.ApiKey, str]:
    raw_key, key_hash, prefix = api_key_crypto.generate_key()
    api_key = models.ApiKey(
        name=payload.name,
        key_hash=key_hash,
        key_prefix=prefix,
        permissions=list(payload.permissions),
        rate_limit=payload.rate_limit,
        is_active=True,
        created_by=created_by,
        expires_at=payload.expires_at,
    )
    api_key.rate_limits.append(
        models.ApiRateLimit(
            endpoint_pattern="*",
            requests_per_minute=payload.rate_limit,
            is_active=True,
        )
    )
    db.add(api_key)
    db.commit()
    db.refresh(api_key)
    return api_key, raw_key


def list_api_keys(db: Session, *, skip: int = 0, limit: int = 100) -> List[models.ApiKey]:
    return (
        db.query(models.ApiKey)
        .order_by(models.ApiKey.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_api_key(db: Session, *, api_key_id: uuid.UUID) -> Optional[models.ApiKey]:
    return db.query(models.ApiKey).filter(models.ApiKey.id == api_key_id).first()


def _sync_minute_limit(api_key: models.ApiKey) -> None:
    if not api_key.rate_limits:
        api_key.rate_limits.append(
            models.ApiRateLimit(endpoint_pattern="*", requests_per_minute=api_key.rate_limit)
        )
        return
    api_key.rate_limits[0].requests_per_minute = api_key.rate_limit


def update_api_key(
    db: Session,
    *,
    api_key: models.ApiKey,
    payload: schemas.ApiKeyUpdateRequest,
) -> models.ApiKey:
    data = payload.model_dump(exclude_unset=True)
    if data.get("name") is not None and data["name"].strip():
        api_key.name = data["name"].strip()
    if data.get("is_active") is not None:
        api_key.is_active = data["is_active"]
    if "expires_at" in data:
        api_key.expires_at = data["expires_at"]
    if data.get("permissions") is not None:
        api_key.permissions = list(data["permissions"])
    if data.get("rate_limit") is not None:
        api_key.rate_limit = data["rate_limit"]
        _sync_minute_limit(api_key)
    db.commit()
    db.refresh(api_key)
    return api_key


def delete_api_key(db: Session, *, api_key: models.ApiKey) -> None:
    db.delete(api_key)
    db.commit()


def usage_summary(db: Session, *, api_key_id: uuid.UUID) -> schemas.ApiUsageSummary:
    base = db.query(models.ApiUsageLog).filter(models.ApiUsageLog.api_key_id == api_key_id)
    total = base.count()
    last_day = base.filter(models.ApiUsageLog.created_at >= now_utc() - timedelta(hours=24)).count()
    errors = base.filter(models.ApiUsageLog.response_status >= 400).count()
    average = (
        db.query(func.avg(models.ApiUsageLog.response_time_ms))
        .filter(models.ApiUsageLog.api_key_id == api_key_id)
        .scalar()
    )
    return schemas.ApiUsageSummary(
        total_requests=total,
        requests_last_24h=last_day,
        error_count=errors,
        average_response_time_ms=round(float(average or 0), 2),
    )


def list_usage_logs(
    db: Session,
    *,
    api_key_id: uuid.UUID,
    skip: int = 0,
    limit: int = 50,
) -> List[models.ApiUsageLog]:
    return (
        db.query(models.ApiUsageLog)
        .filter(models.ApiUsageLog.api_key_id == api_key_id)
        .order_by(models.ApiUsageLog.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def update_rate_limits(
    db: Session,
    *,
    api_key: models.ApiKey,
    payload: schemas.ApiRateLimitUpdate,
) -> List[models.ApiRateLimit]:
    """Update the key's primary limit row, creating it when missing."""
    if not api_key.rate_limits:
        api_key.rate_limits.append(
            models.ApiRateLimit(endpoint_pattern="*", requests_per_minute=api_key.rate_limit)
        )
        db.flush()
    row = api_key.rate_limits[0]
    data = payload.model_dump(exclude_unset=True)
    for field in ("requests_per_minute", "requests_per_hour", "requests_per_day", "is_active"):
        if data.get(field) is not None:
            setattr(row, field, data[field])
    if data.get("requests_per_minute") is not None:
        api_key.rate_limit = data["requests_per_minute"]
    db.commit()
    db.refresh(api_key)
    return list(api_key.rate_limits)
