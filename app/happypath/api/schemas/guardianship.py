from pydantic import Field
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from .base import ApiModel
from .user import UserSummary


class AssignmentCreateRequest(ApiModel):
    parent_id: UUID
    student_ids: List[UUID] = Field(..., min_length=1, description="All students are linked in one transaction or none.")
    note: Optional[str] = None


class AssignmentResponse(ApiModel):
    assignment_id: UUID
    parent_id: UUID
    student_id: UUID
    assigned_by: UUID
    note: Optional[str] = None
    created_at: Optional[datetime] = None


class AssignmentDetailResponse(ApiModel):
    assignment: AssignmentResponse
    parent: Optional[UserSummary] = None
    student: Optional[UserSummary] = None
    assigned_by: Optional[UserSummary] = None
