"""
Users API endpoints.

Self-profile read/update and role administration.
"""
from typing import List
import uuid
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from taskbill.api.deps import get_current_user_context, require_permission
from taskbill.audit import AuditAction, safe_log
from taskbill.db import schemas
from taskbill.db.database import get_db
from taskbill.db.repositories import users as user_repo
from taskbill.utils.role_permissions import PERM_MANAGE_USERS, ROLE_SUPERUSER, get_role_permissions

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=schemas.UserMe)
def get_me(user_context=Depends(get_current_user_context)):
    user, current_user = user_context
    return schemas.UserMe(
        **schemas.User.model_validate(user).model_dump(),
        permissions=current_user["permissions"],
    )


@router.patch("/me", response_model=schemas.UserMe)
def update_me(
    payload: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ctx = user_context
    user = user_repo.update_profile(db, user=user, full_name=payload.full_name)
    return schemas.UserMe(
        **schemas.User.model_validate(user).model_dump(),
        permissions=get_role_permissions(user.role),
    )


@router.get("", response_model=List[schemas.User])
def list_users(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_USERS)),
):
    return user_repo.list_users(db, skip=skip, limit=limit)


@router.patch("/{user_id}/role", response_model=schemas.User)
def update_role(
    user_id: uuid.UUID,
    payload: schemas.RoleUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_USERS)),
):
    actor, current_user = user_context
    target = user_repo.get_user(db, user_id=user_id)
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    touches_superuser = ROLE_SUPERUSER in (payload.role, target.role)
    if touches_superuser and current_user["role"] != ROLE_SUPERUSER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only a superuser can grant or revoke the superuser role",
        )
    if target.id == actor.id and payload.role != target.role and target.role == ROLE_SUPERUSER:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Superusers cannot demote themselves")

    old_role = target.role
    target = user_repo.set_role(db, user=target, role=payload.role)
    safe_log(
        db,
        action=AuditAction.ROLE_CHANGE,
        target_type="user",
        target_id=target.id,
        actor_user_id=actor.id,
        metadata={"email": target.email, "old_role": old_role, "new_role": target.role},
    )
    return target
