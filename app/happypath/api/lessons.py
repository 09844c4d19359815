from fastapi import APIRouter, Depends, Request, Response, Query, status
from typing import Optional
from uuid import UUID

from ..models.db_models import User
from ..services.lesson_service import LessonService
from .schemas.lesson import LessonCreateRequest, LessonUpdateRequest, LessonResponse, LessonListResponse
from .auth import get_current_user
from .dependencies import get_lesson_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/lessons", tags=["Lessons"])


@router.post("", response_model=LessonResponse, status_code=status.HTTP_201_CREATED, summary="Create a lesson (teachers only)")
@limiter.limit("30/minute")
async def create_lesson(request: Request, body: LessonCreateRequest, user: User = Depends(get_current_user), service: LessonService = Depends(get_lesson_service)):
    return await service.create_lesson(user, body.title, body.description, body.goal, body.category, body.level, body.video_url, status=body.status)

@router.get("", response_model=LessonListResponse, summary="List lessons. Drafts are only visible to teachers and admins")
@limiter.limit("120/minute")
async def list_lessons(request: Request, status: Optional[str] = None, page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100), user: User = Depends(get_current_user), service: LessonService = Depends(get_lesson_service)):
    return await service.list_lessons(user, status, page=page, limit=limit)

@router.get("/{lesson_id}", response_model=LessonResponse, summary="Get a lesson")
@limiter.limit("120/minute")
async def get_lesson(request: Request, lesson_id: UUID, user: User = Depends(get_current_user), service: LessonService = Depends(get_lesson_service)):
    return await service.get_lesson(user, lesson_id)

@router.put("/{lesson_id}", response_model=LessonResponse, summary="Update a lesson (creator or admin)")
@limiter.limit("30/minute")
async def update_lesson(request: Request, lesson_id: UUID, body: LessonUpdateRequest, user: User = Depends(get_current_user), service: LessonService = Depends(get_lesson_service)):
    return await service.update_lesson(user, lesson_id, body.model_dump(exclude_unset=True))

@router.delete("/{lesson_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a lesson (creator or admin)")
@limiter.limit("30/minute")
async def delete_lesson(request: Request, lesson_id: UUID, user: User = Depends(get_current_user), service: LessonService = Depends(get_lesson_service)):
    await service.delete_lesson(user, lesson_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
