"""
External API (`/api/v1`) authenticated with API keys.

Responses are plain JSON with permissive CORS headers. Every request that
presents a valid key is recorded in `api_usage_logs`, including error
responses produced after authentication.
"""
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.responses import Response

from taskbill.db import models
from taskbill.db.database import get_db
from taskbill.db.models import ensure_aware, now_utc
from taskbill.services.api_access import (
    ApiError,
    authenticate_headers,
    body_size,
    check_rate_limit,
    json_response,
    parse_int,
    parse_json_body,
    preflight_response,
    record_usage,
    require_write_permission,
)
from taskbill.services.task_lifecycle import apply_status_change
from taskbill.utils.formatting import clean_description
from taskbill.utils.statuses import TASK_STATUSES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["external"])

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
API_VERSION = "1.0"
DEFAULT_LIMIT = 100
MAX_LIMIT = 1000

Handler = Callable[[Request, Session, models.ApiKey], Awaitable[Response]]


def _iso(value) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "tzinfo"):
        return ensure_aware(value).isoformat()
    return value.isoformat()


async def _serve(request: Request, db: Session, handler: Handler) -> Response:
    """Authenticate, run `handler`, map errors to JSON and record usage."""
    if request.method == "OPTIONS":
        return preflight_response()

    started = time.monotonic()
    api_key_id: Optional[uuid.UUID] = None
    error_message: Optional[str] = None
    try:
        api_key = authenticate_headers(db, request.headers)
        api_key_id = api_key.id
        response = await handler(request, db, api_key)
    except ApiError as e:
        error_message = e.message
        response = json_response(e.body(), e.status_code)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Database error on %s %s", request.method, request.url.path)
        error_message = f"Database error: {e}"
        response = json_response({"error": error_message, "code": "DATABASE_ERROR"}, 500)
    except Exception as e:
        db.rollback()
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        error_message = f"Internal server error: {e}"
        response = json_response({"error": error_message, "code": "INTERNAL_ERROR"}, 500)

    if api_key_id is not None:
        record_usage(
            db,
            api_key_id=api_key_id,
            endpoint=request.url.path,
            method=request.method,
            headers=request.headers,
            response_status=response.status_code,
            response_time_ms=int((time.monotonic() - started) * 1000),
            response_size_bytes=body_size(response),
            error_message=error_message,
        )
    return response


def _task_payload(task: models.Task) -> Dict[str, Any]:
    return {
        "id": str(task.id),
        "title": task.title,
        "description": clean_description(task.description),
        "status": task.status,
        "assigned_to": task.assigned_to,
        "priority": task.priority,
        "due_date": _iso(task.due_date),
        "created_at": _iso(task.created_at),
        "updated_at": _iso(task.updated_at),
        "hours_worked": task.hours_worked,
        "estimated_hours": task.estimated_hours,
        "progress_percentage": task.progress_percentage,
    }


def query_projects_tasks(db: Session, params: Mapping[str, str]) -> Dict[str, Any]:
    """Build the read-only projects/tasks payload for the given query params."""
    limit = min(parse_int(params.get("limit"), DEFAULT_LIMIT), MAX_LIMIT)
    if limit < 1:
        limit = DEFAULT_LIMIT
    offset = max(0, parse_int(params.get("offset"), 0))
    project_id = params.get("project_id")
    project_status = params.get("project_status")
    task_status = params.get("task_status")

    query = db.query(models.Project)
    if project_id:
        try:
            project_uuid = uuid.UUID(project_id)
        except ValueError:
            raise ApiError(404, "PROJECT_NOT_FOUND", "Project not found")
        # Existence is checked before the status filter and paging narrow the result
        if db.get(models.Project, project_uuid) is None:
            raise ApiError(404, "PROJECT_NOT_FOUND", "Project not found")
        query = query.filter(models.Project.id == project_uuid)
    if project_status:
        query = query.filter(models.Project.status == project_status)
    projects = query.order_by(models.Project.created_at.asc()).offset(offset).limit(limit).all()

    data: List[Dict[str, Any]] = []
    total_tasks = 0
    for project in projects:
        task_query = db.query(models.Task).filter(models.Task.project_id == project.id)
        if task_status:
            task_query = task_query.filter(models.Task.status == task_status)
        tasks = task_query.order_by(models.Task.created_at.asc()).all()
        total_tasks += len(tasks)
        data.append({
            "project_name": project.name,
            "project_id": str(project.id),
            "project_status": project.status,
            "tasks": [_task_payload(t) for t in tasks],
        })

    return {
        "success": True,
        "data": data,
        "meta": {
            "total_projects": len(projects),
            "total_tasks": total_tasks,
            "limit": limit,
            "offset": offset,
            "timestamp": now_utc().isoformat(),
        },
    }


async def _projects_tasks(request: Request, db: Session, api_key: models.ApiKey) -> Response:
    check_rate_limit(db, api_key)
    if request.method != "GET":
        raise ApiError(405, "METHOD_NOT_ALLOWED", "Method not allowed. Only GET requests are supported.")
    return json_response(query_projects_tasks(db, request.query_params))


def _optional_number(body: Dict[str, Any], field: str) -> Optional[float]:
    value = body.get(field)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ApiError(400, "INVALID_FIELD_VALUE", f"{field} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ApiError(400, "INVALID_FIELD_VALUE", f"{field} must be a number")


def update_task_status(db: Session, body: Dict[str, Any]) -> Dict[str, Any]:
    """Validate an external status update and apply it to the task."""
    task_id_raw = body.get("task_id")
    new_status = body.get("status")
    if not task_id_raw or not new_status:
        raise ApiError(
            400,
            "MISSING_REQUIRED_FIELDS",
            "Missing required fields: task_id and status are required",
            required_fields=["task_id", "status"],
        )
    try:
        task_id = uuid.UUID(str(task_id_raw))
    except ValueError:
        raise ApiError(400, "INVALID_TASK_ID_FORMAT", "Invalid task_id format. Must be a valid UUID.")
    if new_status not in TASK_STATUSES:
        raise ApiError(
            400,
            "INVALID_STATUS",
            f"Invalid status. Must be one of: {', '.join(TASK_STATUSES)}",
            valid_statuses=list(TASK_STATUSES),
        )
    progress = _optional_number(body, "progress_percentage")
    hours = _optional_number(body, "hours_worked")

    task = db.query(models.Task).filter(models.Task.id == task_id).first()
    if task is None:
        raise ApiError(404, "TASK_NOT_FOUND", "Task not found")

    result = apply_status_change(task, new_status, progress_percentage=progress, hours_worked=hours)
    try:
        db.commit()
        db.refresh(task)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to update task %s status: %s", task_id, e)
        raise ApiError(500, "UPDATE_FAILED", "Failed to update task status", details=str(e))
    logger.info("external_task_status: task=%s %s->%s", task.id, result.previous_status, result.new_status)

    data = {
        "task_id": str(task.id),
        "previous_status": result.previous_status,
        "new_status": task.status,
        "progress_percentage": task.progress_percentage,
        "hours_worked": task.hours_worked,
        "updated_at": _iso(task.updated_at),
    }
    if body.get("notes") is not None:
        data["notes"] = body["notes"]
    return {
        "success": True,
        "message": "Task status updated successfully",
        "data": data,
        "meta": {"timestamp": now_utc().isoformat(), "api_version": API_VERSION},
    }


async def _tasks_status(request: Request, db: Session, api_key: models.ApiKey) -> Response:
    require_write_permission(api_key)
    check_rate_limit(db, api_key)
    if request.method not in ("PATCH", "PUT"):
        raise ApiError(
            405, "METHOD_NOT_ALLOWED", "Method not allowed. Use PATCH or PUT to update task status."
        )
    body = parse_json_body(await request.body())
    return json_response(update_task_status(db, body))


@router.api_route("/projects-tasks", methods=ALL_METHODS)
async def projects_tasks(request: Request, db: Session = Depends(get_db)):
    return await _serve(request, db, _projects_tasks)


@router.api_route("/tasks/status", methods=ALL_METHODS)
async def tasks_status(request: Request, db: Session = Depends(get_db)):
    return await _serve(request, db, _tasks_status)
