from fastapi import APIRouter, Depends, Request, status
from typing import List, Optional
from uuid import UUID

from ..models.db_models import User, Role
from ..services.telemetry_service import TelemetryService
from .schemas.telemetry import (
    SessionStartRequest, SessionResponse, EventBatchRequest, EventBatchResponse,
    AttentionAlertRequest, AttentionAlertResponse,
)
from .auth import get_current_user, require_roles
from .dependencies import get_telemetry_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/sessions", tags=["Learning Sessions"])

student_only = require_roles(Role.STUDENT)


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED, summary="Start a learning session")
@limiter.limit("30/minute")
async def start_session(request: Request, body: Optional[SessionStartRequest] = None, student: User = Depends(student_only), service: TelemetryService = Depends(get_telemetry_service)):
    body = body or SessionStartRequest()
    return await service.start_session(student, lesson_id=body.lesson_id, device_info=body.device_info)

@router.post("/{session_id}/end", response_model=SessionResponse, summary="End a learning session")
@limiter.limit("30/minute")
async def end_session(request: Request, session_id: UUID, student: User = Depends(student_only), service: TelemetryService = Depends(get_telemetry_service)):
    return await service.end_session(student, session_id)

@router.post("/{session_id}/events", response_model=EventBatchResponse, status_code=status.HTTP_201_CREATED, summary="Append a batch of attention/emotion events")
@limiter.limit("600/minute")
async def ingest_events(request: Request, session_id: UUID, body: EventBatchRequest, student: User = Depends(student_only), service: TelemetryService = Depends(get_telemetry_service)):
    inserted = await service.ingest_events(student, session_id, [e.to_item() for e in body.events])
    return EventBatchResponse(inserted=inserted)

@router.get("/user/{user_id}", response_model=List[SessionResponse], summary="List a learner's sessions")
@limiter.limit("60/minute")
async def list_user_sessions(request: Request, user_id: UUID, user: User = Depends(get_current_user), service: TelemetryService = Depends(get_telemetry_service)):
    return await service.list_sessions_for_user(user, user_id)

@router.post("/{session_id}/low-attention-alert", response_model=AttentionAlertResponse, summary="Notify the learner's guardian about low attention")
@limiter.limit("10/minute")
async def low_attention_alert(request: Request, session_id: UUID, body: Optional[AttentionAlertRequest] = None, user: User = Depends(get_current_user), service: TelemetryService = Depends(get_telemetry_service)):
    return await service.low_attention_alert(user, session_id, reason=body.reason if body else None)
