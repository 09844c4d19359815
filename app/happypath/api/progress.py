from fastapi import APIRouter, Depends, Request
from typing import List, Optional
from uuid import UUID

from ..models.db_models import User, Role
from ..services.progress_service import ProgressService
from .schemas.progress import ProgressPingRequest, ProgressResponse
from .auth import get_current_user, require_roles
from .dependencies import get_progress_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/progress", tags=["Progress"])


@router.post("/ping", response_model=ProgressResponse, summary="Record video watch progress")
@limiter.limit("240/minute")
async def ping(request: Request, body: ProgressPingRequest, student: User = Depends(require_roles(Role.STUDENT)), service: ProgressService = Depends(get_progress_service)):
    return await service.ping(student, body.lesson_id, body.position_sec, body.duration_sec, completed=body.completed)

@router.get("/me", response_model=List[ProgressResponse], summary="Progress of the current student")
@limiter.limit("60/minute")
async def my_progress(request: Request, student: User = Depends(require_roles(Role.STUDENT)), service: ProgressService = Depends(get_progress_service)):
    return await service.list_for_user(student, student.user_id)

@router.get("/user/{user_id}", response_model=List[ProgressResponse], summary="Progress of a learner")
@limiter.limit("60/minute")
async def user_progress(request: Request, user_id: UUID, user: User = Depends(get_current_user), service: ProgressService = Depends(get_progress_service)):
    return await service.list_for_user(user, user_id)

@router.get("/user/{user_id}/lesson/{lesson_id}", response_model=Optional[ProgressResponse], summary="Progress of a learner on one lesson")
@limiter.limit("60/minute")
async def lesson_progress(request: Request, user_id: UUID, lesson_id: str, user: User = Depends(get_current_user), service: ProgressService = Depends(get_progress_service)):
    return await service.get_for_lesson(user, user_id, lesson_id)
