from pydantic import Field
from datetime import datetime
from typing import Optional, List, Literal
from uuid import UUID

from .base import ApiModel


class LessonCreateRequest(ApiModel):
    """Request model for creating a lesson. video_id and thumbnail_url are derived from video_url."""
    title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=10)
    goal: str = Field(..., min_length=1)
    category: str = Field(..., description="numbers, letters, colors, shapes or emotions")
    level: str = Field(..., description="beginner, intermediate or advanced")
    video_url: str = Field(..., description="A YouTube watch, short or embed URL.")
    status: Literal["draft", "published"] = "published"


class LessonUpdateRequest(ApiModel):
    title: Optional[str] = Field(None, min_length=3)
    description: Optional[str] = Field(None, min_length=10)
    goal: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    level: Optional[str] = None
    video_url: Optional[str] = None
    status: Optional[Literal["draft", "published"]] = None


class LessonResponse(ApiModel):
    lesson_id: UUID
    title: str
    description: str
    goal: str
    category: str
    level: str
    video_url: str
    video_id: str
    thumbnail_url: str
    status: str
    created_by: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LessonListResponse(ApiModel):
    items: List[LessonResponse]
    total: int
    page: int
    pages: int
