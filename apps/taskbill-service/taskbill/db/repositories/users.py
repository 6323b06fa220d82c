"""User lookups, profile edits and role assignment."""
from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from taskbill.db import models


def get_user(db: Session, *, user_id: uuid.UUID) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, *, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()


def list_users(db: Session, *, skip: int = 0, limit: int = 100) -> List[models.User]:
    return db.query(models.User).order_by(models.User.created_at.asc()).offset(skip).limit(limit).all()


def update_profile(db: Session, *, user: models.User, full_name: Optional[str]) -> models.User:
    if full_name is not None:
        user.full_name = full_name
        db.commit()
        db.refresh(user)
    return user


def set_role(db: Session, *, user: models.User, role: str) -> models.User:
    user.role = role
    db.commit()
    db.refresh(user)
    return user
