"""
Administrative data cleanup.

Deletes all projects, tasks, billing and API access data. Users and the
audit trail are kept.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from taskbill.api.deps import require_permission
from taskbill.audit import AuditAction, safe_log
from taskbill.db import schemas
from taskbill.db.database import get_db
from taskbill.services import cleanup_service
from taskbill.services.cleanup_service import CleanupConfirmationError
from taskbill.utils.role_permissions import PERM_CLEANUP

router = APIRouter(prefix="/admin/cleanup", tags=["admin"])


@router.get("/counts", response_model=schemas.CleanupCounts)
def get_record_counts(
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_CLEANUP)),
):
    return schemas.CleanupCounts(counts=cleanup_service.record_counts(db))


@router.post("", response_model=schemas.CleanupResult)
def delete_all_data(
    payload: schemas.CleanupRequest,
    db: Session = Depends(get_db),
    user_context=Depends(require_permission(PERM_CLEANUP)),
):
    user, _ctx = user_context
    try:
        deleted = cleanup_service.delete_all_data(db, confirm=payload.confirm)
    except CleanupConfirmationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    safe_log(
        db,
        action=AuditAction.DATA_CLEANUP,
        target_type="database",
        actor_user_id=user.id,
        metadata={"deleted": deleted},
    )
    return schemas.CleanupResult(deleted=deleted)
