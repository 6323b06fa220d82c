"""
External API access: key authentication, per-key rate limiting and usage logs.

Errors are raised as `ApiError` and rendered by the external routes as
`{"error": <message>, "code": <CODE>}` JSON bodies with CORS headers.
"""
from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.responses import JSONResponse, Response

from taskbill.db import models
from taskbill.db.models import ensure_aware, now_utc
from taskbill.utils import api_key_crypto

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-API-Key",
}

RATE_WINDOW = timedelta(seconds=60)

MISSING_KEY_MESSAGE = "API key required. Provide X-API-Key header or Authorization: Bearer <key>"
INVALID_KEY_MESSAGE = "Invalid or expired API key"

WRITE_PERMISSION_MARKERS = ("write", "update", "tasks")


class ApiError(Exception):
    """An error response for the external API."""

    def __init__(self, status_code: int, code: str, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.extra = extra

    def body(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.extra}


def json_response(payload: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=payload, status_code=status_code, headers=dict(CORS_HEADERS))


def preflight_response() -> Response:
    return Response(status_code=200, headers=dict(CORS_HEADERS))


def client_ip(headers: Mapping[str, str]) -> str:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return headers.get("x-real-ip") or headers.get("cf-connecting-ip") or "unknown"


def _int_header(headers: Mapping[str, str], name: str) -> Optional[int]:
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def authenticate(db: Session, raw_key: Optional[str], *, now: Optional[datetime] = None) -> models.ApiKey:
    """Resolve an active, unexpired key by its SHA-256 hash and stamp last_used."""
    if not raw_key:
        raise ApiError(401, "MISSING_API_KEY", MISSING_KEY_MESSAGE)
    now = now or now_utc()
    api_key = (
        db.query(models.ApiKey)
        .filter(
            models.ApiKey.key_hash == api_key_crypto.hash_key(raw_key),
            models.ApiKey.is_active.is_(True),
        )
        .first()
    )
    if api_key is None:
        raise ApiError(401, "INVALID_API_KEY", INVALID_KEY_MESSAGE)
    if api_key.expires_at is not None and ensure_aware(api_key.expires_at) < now:
        raise ApiError(401, "INVALID_API_KEY", INVALID_KEY_MESSAGE)

    api_key.last_used = now
    db.commit()
    return api_key


def authenticate_headers(db: Session, headers: Mapping[str, str]) -> models.ApiKey:
    raw_key = api_key_crypto.extract_presented_key(headers.get("x-api-key"), headers.get("authorization"))
    return authenticate(db, raw_key)


def check_rate_limit(db: Session, api_key: models.ApiKey, *, now: Optional[datetime] = None) -> None:
    """Raise 429 when the key has used up its per-minute allowance.

    Keys without active limits are unrestricted. Requests that were themselves
    rejected with 429 do not count. A failure while checking lets the request
    through.
    """
    now = now or now_utc()
    try:
        limit = (
            db.query(models.ApiRateLimit)
            .filter(
                models.ApiRateLimit.api_key_id == api_key.id,
                models.ApiRateLimit.is_active.is_(True),
            )
            .order_by(models.ApiRateLimit.created_at.asc())
            .first()
        )
        if limit is None:
            return
        recent = (
            db.query(func.count(models.ApiUsageLog.id))
            .filter(
                models.ApiUsageLog.api_key_id == api_key.id,
                models.ApiUsageLog.created_at >= now - RATE_WINDOW,
                models.ApiUsageLog.response_status != 429,
            )
            .scalar()
        ) or 0
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Rate limit check failed for key %s: %s", api_key.id, exc)
        return

    if recent >= limit.requests_per_minute:
        logger.warning(
            "rate_limit_exceeded: key=%s recent=%d limit=%d", api_key.id, recent, limit.requests_per_minute
        )
        raise ApiError(
            429,
            "RATE_LIMIT_EXCEEDED",
            f"Rate limit exceeded: {limit.requests_per_minute} requests per minute",
        )


def has_write_permission(permissions: Optional[Iterable[str]]) -> bool:
    return any(
        any(marker in perm for marker in WRITE_PERMISSION_MARKERS)
        for perm in (permissions or [])
    )


def require_write_permission(api_key: models.ApiKey) -> None:
    if not has_write_permission(api_key.permissions):
        raise ApiError(403, "INSUFFICIENT_PERMISSIONS", "API key does not have write permissions for tasks")


def record_usage(
    db: Session,
    *,
    api_key_id: uuid.UUID,
    endpoint: str,
    method: str,
    headers: Mapping[str, str],
    response_status: int,
    response_time_ms: int,
    response_size_bytes: Optional[int] = None,
    error_message: Optional[str] = None,
) -> None:
    """Persist one usage log row; failures are logged and swallowed."""
    entry = models.ApiUsageLog(
        api_key_id=api_key_id,
        endpoint=endpoint,
        method=method,
        ip_address=client_ip(headers),
        user_agent=headers.get("user-agent"),
        response_status=response_status,
        response_time_ms=max(0, int(response_time_ms)),
        request_size_bytes=_int_header(headers, "content-length"),
        response_size_bytes=response_size_bytes,
        error_message=error_message,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Failed to log API usage for key %s: %s", api_key_id, exc)


def body_size(response: Response) -> int:
    return len(getattr(response, "body", b"") or b"")


def parse_json_body(raw: bytes) -> Dict[str, Any]:
    try:
        data = json.loads(raw or b"")
    except ValueError:
        raise ApiError(400, "INVALID_JSON", "Invalid JSON in request body")
    if not isinstance(data, dict):
        raise ApiError(400, "INVALID_JSON", "Invalid JSON in request body")
    return data


def parse_int(raw: Optional[str], default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default
