from fastapi import APIRouter, Depends, Request, Response, Query, status
from typing import List
from uuid import UUID

from ..models.db_models import User, Role
from ..services.messaging_service import MessagingService, DEFAULT_PAGE_SIZE
from .schemas.messaging import (
    ConversationCreateRequest, ConversationResponse, ConversationListItem,
    MessageCreateRequest, MessageResponse, UnreadCountResponse, MarkedCountResponse,
)
from .auth import require_roles
from .dependencies import get_messaging_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/messages", tags=["Messaging"])

participant = require_roles(Role.TEACHER, Role.PARENT)


@router.get("/conversations", response_model=List[ConversationListItem], summary="List conversations, most recent first")
@limiter.limit("60/minute")
async def list_conversations(request: Request, user: User = Depends(participant), service: MessagingService = Depends(get_messaging_service)):
    return await service.list_conversations(user)

@router.post("/conversations", response_model=ConversationResponse, summary="Get or create the conversation with a peer")
@limiter.limit("30/minute")
async def create_conversation(request: Request, response: Response, body: ConversationCreateRequest, user: User = Depends(participant), service: MessagingService = Depends(get_messaging_service)):
    conversation, created = await service.create_conversation(user, body.peer_user_id, body.child_id)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return conversation

@router.get("/unread/count", response_model=UnreadCountResponse, summary="Total unread messages of the current user")
@limiter.limit("120/minute")
async def unread_count(request: Request, user: User = Depends(participant), service: MessagingService = Depends(get_messaging_service)):
    return UnreadCountResponse(count=await service.unread_count(user))

@router.get("/{conversation_id}", response_model=List[MessageResponse], summary="List messages of a conversation")
@limiter.limit("120/minute")
async def list_messages(request: Request, conversation_id: UUID, page: int = Query(1, ge=1), limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100), user: User = Depends(participant), service: MessagingService = Depends(get_messaging_service)):
    return await service.list_messages(user, conversation_id, page=page, limit=limit)

@router.post("/{conversation_id}", response_model=MessageResponse, status_code=status.HTTP_201_CREATED, summary="Send a message")
@limiter.limit("60/minute")
async def send_message(request: Request, conversation_id: UUID, body: MessageCreateRequest, user: User = Depends(participant), service: MessagingService = Depends(get_messaging_service)):
    return await service.send_message(user, conversation_id, body.text)

@router.post("/{conversation_id}/read", response_model=MarkedCountResponse, summary="Mark all messages in a conversation as read")
@limiter.limit("120/minute")
async def mark_read(request: Request, conversation_id: UUID, user: User = Depends(participant), service: MessagingService = Depends(get_messaging_service)):
    return MarkedCountResponse(updated=await service.mark_read(user, conversation_id))
