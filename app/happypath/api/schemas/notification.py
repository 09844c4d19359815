from pydantic import Field
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from ...models.db_models import Role
from .base import ApiModel


class NotificationCreateRequest(ApiModel):
    recipient_ids: List[UUID]
    recipient_role: Role
    title: str
    message: str
    type: Optional[str] = Field(None, description="attention_alert, progress_update, quiz_result, general or system")


class NotificationSentResponse(ApiModel):
    sent: int


class NotificationResponse(ApiModel):
    notification_id: UUID
    title: str
    message: str
    type: str
    purpose: str
    sender_id: UUID
    sender_role: str
    recipient_id: UUID
    recipient_role: str
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class NotificationParty(ApiModel):
    user_id: UUID
    name: str
    role: str


class ReceivedNotificationItem(ApiModel):
    notification: NotificationResponse
    sender: Optional[NotificationParty] = None


class SentNotificationItem(ApiModel):
    notification: NotificationResponse
    recipient: Optional[NotificationParty] = None
