"""
Authentication helpers and identity resolution.

Parses proxy headers, normalizes emails, and upserts users while assigning
bootstrap roles from ADMIN_EMAILS / SUPERUSER_EMAILS.
"""
from typing import Optional, Tuple
from sqlalchemy.orm import Session

from taskbill.db import models
from taskbill.utils.role_permissions import ROLE_ADMIN, ROLE_SUPERUSER, ROLE_USER
from taskbill.utils.runtime import env_list


def _normalize_email(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    return email.strip().lower()


def _email_set(var_name: str) -> set:
    return {entry.lower() for entry in env_list(var_name)}


def bootstrap_role_for(email: str) -> Optional[str]:
    """Role forced by configuration for this email, if any."""
    if email in _email_set("SUPERUSER_EMAILS"):
        return ROLE_SUPERUSER
    if email in _email_set("ADMIN_EMAILS"):
        return ROLE_ADMIN
    return None


def resolve_identity_from_headers(
    x_auth_request_user: Optional[str],
    x_auth_request_email: Optional[str],
    x_forwarded_user: Optional[str],
    x_forwarded_email: Optional[str],
) -> Tuple[Optional[str], Optional[str]]:
    user = x_auth_request_user or x_forwarded_user
    email = _normalize_email(x_auth_request_email or x_forwarded_email)
    return user, email


def get_or_create_user(db: Session, email: str, full_name: Optional[str] = None) -> models.User:
    user = db.query(models.User).filter(models.User.email == email).first()
    forced_role = bootstrap_role_for(email)
    if not user:
        user = models.User(
            email=email,
            full_name=full_name or email.split("@")[0],
            role=forced_role or ROLE_USER,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    # Existing users might predate a new ADMIN_EMAILS / SUPERUSER_EMAILS value
    if forced_role and user.role != forced_role and user.role != ROLE_SUPERUSER:
        user.role = forced_role
        db.commit()
        db.refresh(user)
    return user
