import uuid
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from taskbill.utils.statuses import PROJECT_STATUSES, PRIORITIES, RATE_TYPES, validate_choice


class ProjectBase(BaseModel):
    name: str
    description: str = ""
    status: str = "active"
    priority: str = "medium"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    hourly_rate: float = 50
    fixed_rate: Optional[float] = None
    rate_type: str = "hourly"
    inr_conversion_rule: Optional[str] = None
    inr_conversion_factor: float = 1


class ProjectCreate(ProjectBase):
    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str):
        s = (v or "").strip()
        if not s:
            raise ValueError("name is required")
        return s

    @field_validator("status")
    @classmethod
    def _validate_status(cls, v: str):
        return validate_choice(v, PROJECT_STATUSES, "status")

    @field_validator("priority")
    @classmethod
    def _validate_priority(cls, v: str):
        return validate_choice(v, PRIORITIES, "priority")

    @field_validator("rate_type")
    @classmethod
    def _validate_rate_type(cls, v: str):
        return validate_choice(v, RATE_TYPES, "rate_type")

    @field_validator("hourly_rate", "fixed_rate")
    @classmethod
    def _non_negative(cls, v: Optional[float]):
        if v is not None and v < 0:
            raise ValueError("rates must be >= 0")
        return v

    @field_validator("inr_conversion_factor")
    @classmethod
    def _positive_factor(cls, v: float):
        if v <= 0:
            raise ValueError("inr_conversion_factor must be > 0")
        return v

    @model_validator(mode="after")
    def _fixed_rate_required(self):
        if self.rate_type == "fixed" and self.fixed_rate is None:
            raise ValueError("fixed_rate is required when rate_type is 'fixed'")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    hourly_rate: Optional[float] = None
    fixed_rate: Optional[float] = None
    rate_type: Optional[str] = None
    inr_conversion_rule: Optional[str] = None
    inr_conversion_factor: Optional[float] = None

    @field_validator("status")
    @classmethod
    def _validate_status(cls, v: Optional[str]):
        return v if v is None else validate_choice(v, PROJECT_STATUSES, "status")

    @field_validator("priority")
    @classmethod
    def _validate_priority(cls, v: Optional[str]):
        return v if v is None else validate_choice(v, PRIORITIES, "priority")

    @field_validator("rate_type")
    @classmethod
    def _validate_rate_type(cls, v: Optional[str]):
        return v if v is None else validate_choice(v, RATE_TYPES, "rate_type")

    @field_validator("hourly_rate", "fixed_rate")
    @classmethod
    def _non_negative(cls, v: Optional[float]):
        if v is not None and v < 0:
            raise ValueError("rates must be >= 0")
        return v

    @field_validator("inr_conversion_factor")
    @classmethod
    def _positive_factor(cls, v: Optional[float]):
        if v is not None and v <= 0:
            raise ValueError("inr_conversion_factor must be > 0")
        return v


class Project(ProjectBase):
    id: uuid.UUID
    start_date: date
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)
