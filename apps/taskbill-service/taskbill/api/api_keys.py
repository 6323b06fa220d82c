"""
API key management endpoints.

Keys authenticate the external `/api/v1` routes. The raw key is returned
once, at creation; only its hash is stored.
"""
import logging
from typing import List
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from taskbill.api.deps import require_permission
from taskbill.audit import AuditAction, safe_log
from taskbill.db import models, schemas
from taskbill.db.database import get_db
from taskbill.db.repositories import api_keys as api_key_repo
from taskbill.utils.role_permissions import PERM_MANAGE_API_KEYS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api-keys", tags=["api-keys"])


def _get_key_or_404(db: Session, api_key_id: uuid.UUID) -> models.ApiKey:
    api_key = api_key_repo.get_api_key(db, api_key_id=api_key_id)
    if not api_key:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="API key not found")
    return api_key


@router.post("", response_model=schemas.ApiKeyCreateResponse, status_code=status.HTTP_201_CREATED)
def create_api_key(
    payload: schemas.ApiKeyCreateRequest,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_API_KEYS)),
):
    user, _ctx = user_context
    api_key, raw_key = api_key_repo.create_api_key(db, payload=payload, created_by=user.id)
    logger.info("api_key_created: id=%s prefix=%s by=%s", api_key.id, api_key.key_prefix, user.email)
    safe_log(
        db,
        action=AuditAction.API_KEY_CREATE,
        target_type="api_key",
        target_id=api_key.id,
        actor_user_id=user.id,
        metadata={"name": api_key.name, "permissions": list(api_key.permissions or [])},
    )
    body = schemas.ApiKeyResponse.model_validate(api_key).model_dump()
    return schemas.ApiKeyCreateResponse(**body, key=raw_key)


@router.get("", response_model=List[schemas.ApiKeyResponse])
def list_api_keys(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_API_KEYS)),
):
    return api_key_repo.list_api_keys(db, skip=skip, limit=limit)


@router.patch("/{api_key_id}", response_model=schemas.ApiKeyResponse)
def update_api_key(
    api_key_id: uuid.UUID,
    payload: schemas.ApiKeyUpdateRequest,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_API_KEYS)),
):
    user, _ctx = user_context
    api_key = _get_key_or_404(db, api_key_id)
    api_key = api_key_repo.update_api_key(db, api_key=api_key, payload=payload)
    safe_log(
        db,
        action=AuditAction.API_KEY_UPDATE,
        target_type="api_key",
        target_id=api_key.id,
        actor_user_id=user.id,
        metadata={"fields": sorted(payload.model_dump(exclude_unset=True).keys())},
    )
    return api_key


@router.delete("/{api_key_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_api_key(
    api_key_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_API_KEYS)),
):
    user, _ctx = user_context
    api_key = _get_key_or_404(db, api_key_id)
    name = api_key.name
    api_key_repo.delete_api_key(db, api_key=api_key)
    logger.info("api_key_revoked: id=%s by=%s", api_key_id, user.email)
    safe_log(
        db,
        action=AuditAction.API_KEY_REVOKE,
        target_type="api_key",
        target_id=api_key_id,
        actor_user_id=user.id,
        metadata={"name": name},
    )


@router.get("/{api_key_id}/usage", response_model=schemas.ApiUsagePage)
def get_api_key_usage(
    api_key_id: uuid.UUID,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_API_KEYS)),
):
    _get_key_or_404(db, api_key_id)
    limit = max(1, min(limit, 500))
    return schemas.ApiUsagePage(
        summary=api_key_repo.usage_summary(db, api_key_id=api_key_id),
        logs=api_key_repo.list_usage_logs(db, api_key_id=api_key_id, skip=skip, limit=limit),
        skip=skip,
        limit=limit,
    )


@router.get("/{api_key_id}/rate-limits", response_model=List[schemas.ApiRateLimit])
def get_rate_limits(
    api_key_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_API_KEYS)),
):
    return list(_get_key_or_404(db, api_key_id).rate_limits)


@router.put("/{api_key_id}/rate-limits", response_model=List[schemas.ApiRateLimit])
def update_rate_limits(
    api_key_id: uuid.UUID,
    payload: schemas.ApiRateLimitUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_API_KEYS)),
):
    user, _ctx = user_context
    api_key = _get_key_or_404(db, api_key_id)
    limits = api_key_repo.update_rate_limits(db, api_key=api_key, payload=payload)
    safe_log(
        db,
        action=AuditAction.API_KEY_UPDATE,
        target_type="api_key",
        target_id=api_key_id,
        actor_user_id=user.id,
        metadata={"rate_limits": payload.model_dump(exclude_unset=True)},
    )
    return limits
