from pydantic import Field
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from .base import ApiModel
from .user import UserSummary


class ConversationCreateRequest(ApiModel):
    peer_user_id: UUID = Field(..., description="The teacher (for parents) or parent (for teachers) to talk to.")
    child_id: Optional[UUID] = None


class ConversationResponse(ApiModel):
    conversation_id: UUID
    teacher_id: UUID
    parent_id: UUID
    child_id: Optional[UUID] = None
    last_message_at: Optional[datetime] = None
    last_message_preview: str = ""
    created_at: Optional[datetime] = None


class ConversationListItem(ApiModel):
    conversation: ConversationResponse
    teacher: Optional[UserSummary] = None
    parent: Optional[UserSummary] = None
    unread_count: int = 0


class MessageCreateRequest(ApiModel):
    text: str = Field(..., description="Truncated to 4000 characters.")


class MessageResponse(ApiModel):
    message_id: UUID
    conversation_id: UUID
    sender_id: UUID
    sender_role: str
    text: str
    read_by: List[UUID]
    created_at: Optional[datetime] = None


class UnreadCountResponse(ApiModel):
    count: int


class MarkedCountResponse(ApiModel):
    updated: int
