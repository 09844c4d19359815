from pydantic import Field
from datetime import datetime
from typing import Optional
from uuid import UUID

from .base import ApiModel


class MicroBreakCreateRequest(ApiModel):
    title: str = Field(..., min_length=1)
    youtube_url: str
    booster_text: str = Field(..., min_length=1, description="Short encouragement shown with the video.")
    is_active: bool = True


class MicroBreakUpdateRequest(ApiModel):
    title: Optional[str] = Field(None, min_length=1)
    youtube_url: Optional[str] = None
    booster_text: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None


class MicroBreakResponse(ApiModel):
    micro_break_id: UUID
    title: str
    youtube_url: str
    booster_text: str
    created_by: UUID
    is_active: bool
    created_at: Optional[datetime] = None
