import uuid
from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict, field_validator

from taskbill.utils.role_permissions import validate_role


class UserBase(BaseModel):
    email: str
    full_name: str | None = None


class User(UserBase):
    id: uuid.UUID
    role: str
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class UserMe(User):
    permissions: Dict[str, bool]


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def _validate_full_name(cls, v: Optional[str]):
        if v is None:
            return v
        s = v.strip()
        if not s or len(s) > 80:
            raise ValueError("full_name must be 1..80 characters")
        return s


class RoleUpdate(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def _validate_role(cls, v: str):
        cleaned = (v or "").strip().lower()
        validate_role(cleaned)
        return cleaned
