"""
API dependency helpers.

Provides the dependency-resolved user context and role permission guards.
"""
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from taskbill.api.auth import get_or_create_user, resolve_identity_from_headers
from taskbill.db import models
from taskbill.db.database import get_db
from taskbill.utils.role_permissions import get_role_permissions
from taskbill.utils.runtime import dev_mode_active

DEV_USER_EMAIL = "dev@localhost"

UserContext = Tuple[models.User, Dict[str, Any]]


# Contract:
# Returns (sqlalchemy User model, current_user_context_dict)
# Raises 401 if identity cannot be resolved.
def get_current_user_context(
    db: Session = Depends(get_db),
    x_auth_request_user: Optional[str] = Header(default=None),
    x_auth_request_email: Optional[str] = Header(default=None),
    x_forwarded_user: Optional[str] = Header(default=None),
    x_forwarded_email: Optional[str] = Header(default=None),
) -> UserContext:
    if dev_mode_active():
        name, email = "Development User", DEV_USER_EMAIL
    else:
        name, email = resolve_identity_from_headers(
            x_auth_request_user=x_auth_request_user,
            x_auth_request_email=x_auth_request_email,
            x_forwarded_user=x_forwarded_user,
            x_forwarded_email=x_forwarded_email,
        )
        if not email:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    user = get_or_create_user(db, email=email, full_name=name)
    current_user = {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "permissions": get_role_permissions(user.role),
    }
    return user, current_user


def require_permission(permission: str) -> Callable[..., UserContext]:
    """Dependency factory: 403 unless the caller's role grants `permission`."""

    def _dependency(user_context: UserContext = Depends(get_current_user_context)) -> UserContext:
        _user, current_user = user_context
        if not current_user["permissions"].get(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Forbidden: '{permission}' permission required",
            )
        return user_context

    return _dependency


def can(current_user: Dict[str, Any], permission: str) -> bool:
    return bool(current_user.get("permissions", {}).get(permission))
