"""
Analytics API endpoint.
"""
from datetime import date
from typing import Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from taskbill.api.deps import get_current_user_context
from taskbill.db import schemas
from taskbill.db.database import get_db
from taskbill.services.analytics_service import build_analytics

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("", response_model=schemas.Analytics)
def get_analytics(
    project_id: Optional[uuid.UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=422, detail="end_date must not be before start_date")
    return build_analytics(db, project_id=project_id, start_date=start_date, end_date=end_date)
