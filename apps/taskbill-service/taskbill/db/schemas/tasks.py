import uuid
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator

from taskbill.utils.statuses import TASK_STATUSES, PRIORITIES, validate_choice


class TaskBase(BaseModel):
    title: str
    description: str = ""
    status: str = "todo"
    priority: str = "medium"
    assigned_to: Optional[str] = None
    due_date: Optional[date] = None
    hours_worked: float = 0
    estimated_hours: Optional[float] = None
    ticket_number: Optional[str] = None


class TaskCreate(TaskBase):
    project_id: uuid.UUID
    progress_percentage: Optional[int] = None

    @field_validator("title")
    @classmethod
    def _validate_title(cls, v: str):
        s = (v or "").strip()
        if not s:
            raise ValueError("title is required")
        return s

    @field_validator("status")
    @classmethod
    def _validate_status(cls, v: str):
        return validate_choice(v, TASK_STATUSES, "status")

    @field_validator("priority")
    @classmethod
    def _validate_priority(cls, v: str):
        return validate_choice(v, PRIORITIES, "priority")


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    assigned_to: Optional[str] = None
    due_date: Optional[date] = None
    hours_worked: Optional[float] = None
    estimated_hours: Optional[float] = None
    progress_percentage: Optional[int] = None
    ticket_number: Optional[str] = None

    @field_validator("status")
    @classmethod
    def _validate_status(cls, v: Optional[str]):
        return v if v is None else validate_choice(v, TASK_STATUSES, "status")

    @field_validator("priority")
    @classmethod
    def _validate_priority(cls, v: Optional[str]):
        return v if v is None else validate_choice(v, PRIORITIES, "priority")


class ProgressUpdate(BaseModel):
    progress_percentage: int


class Task(TaskBase):
    id: uuid.UUID
    project_id: uuid.UUID
    progress_percentage: int
    invoice_status: str
    created_by: Optional[uuid.UUID] = None
    created_on: Optional[date] = None
    completed_on: Optional[date] = None
    completed_at: Optional[datetime] = None
    previous_status: Optional[str] = None
    archived_at: Optional[datetime] = None
    last_progress_update: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)
