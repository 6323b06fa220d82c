from typing import Dict
from pydantic import BaseModel


class CleanupRequest(BaseModel):
    confirm: str


class CleanupCounts(BaseModel):
    counts: Dict[str, int]


class CleanupResult(BaseModel):
    success: bool = True
    deleted: Dict[str, int]
