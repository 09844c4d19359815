from fastapi import APIRouter, Depends, Request, Response, status
from typing import List
from uuid import UUID

from ..models.db_models import User, Role
from ..services.notification_service import NotificationService
from .schemas.notification import (
    NotificationCreateRequest, NotificationSentResponse, ReceivedNotificationItem, SentNotificationItem,
)
from .schemas.messaging import MarkedCountResponse
from .schemas.user import UserSummary
from .auth import get_current_user
from .dependencies import get_notification_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post("", response_model=NotificationSentResponse, status_code=status.HTTP_201_CREATED, summary="Send a notification to one or more recipients")
@limiter.limit("30/minute")
async def send_notification(request: Request, body: NotificationCreateRequest, user: User = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    sent = await service.send(user, body.recipient_ids, body.recipient_role, body.title, body.message, type=body.type)
    return NotificationSentResponse(sent=sent)

@router.get("", response_model=List[ReceivedNotificationItem], summary="Notifications received by the current user")
@limiter.limit("120/minute")
async def list_received(request: Request, user: User = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    return await service.list_received(user)

@router.get("/sent", response_model=List[SentNotificationItem], summary="Notifications sent by the current user")
@limiter.limit("60/minute")
async def list_sent(request: Request, user: User = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    return await service.list_sent(user)

@router.get("/recipients", response_model=List[UserSummary], summary="Users the current user may notify with the given role")
@limiter.limit("60/minute")
async def list_recipients(request: Request, role: Role, user: User = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    return await service.list_recipients(user, role)

@router.patch("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT, summary="Mark one notification as read")
@limiter.limit("120/minute")
async def mark_read(request: Request, notification_id: UUID, user: User = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    await service.mark_read(user, notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.post("/mark-all-read", response_model=MarkedCountResponse, summary="Mark all received notifications as read")
@limiter.limit("30/minute")
async def mark_all_read(request: Request, user: User = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    return MarkedCountResponse(updated=await service.mark_all_read(user))
