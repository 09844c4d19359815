from pydantic import Field
from datetime import datetime
from typing import Optional
from uuid import UUID

from .base import ApiModel


class ProgressPingRequest(ApiModel):
    lesson_id: str = Field(..., min_length=1)
    position_sec: float = 0
    duration_sec: float = 0
    completed: bool = False


class ProgressResponse(ApiModel):
    user_id: UUID
    lesson_id: str
    position_sec: float
    duration_sec: float
    percent: int
    completed: bool
    last_ping_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
