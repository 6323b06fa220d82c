"""
Audit log API endpoints.

Audit rows are readable by users holding `manage_users`.
"""
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from taskbill.api.deps import require_permission
from taskbill.db import schemas
from taskbill.db.database import get_db
from taskbill.db.repositories import audits as audit_repo
from taskbill.utils.role_permissions import PERM_MANAGE_USERS

router = APIRouter(prefix="/audits", tags=["audits"])


@router.get("", response_model=List[schemas.AuditLog])
def list_audit_logs(
    user_id: Optional[uuid.UUID] = None,
    action_type: Optional[str] = None,
    target_type: Optional[str] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_MANAGE_USERS)),
):
    return audit_repo.get_audit_logs(
        db,
        user_id=user_id,
        action_type=action_type,
        target_type=target_type,
        status=status_filter,
        skip=skip,
        limit=limit,
    )
