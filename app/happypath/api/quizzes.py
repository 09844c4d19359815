from fastapi import APIRouter, Depends, Request, Response, Query, status
from typing import List, Optional
from uuid import UUID

from ..models.db_models import User, Role
from ..modules.quiz_scoring import SubmittedAnswer
from ..services.quiz_service import QuizService
from .schemas.quiz import (
    QuizCreateRequest, QuizUpdateRequest, QuizActiveRequest, QuizResponse, QuizSummaryResponse,
    PublicQuizResponse, AttemptSubmitRequest, AttemptResultResponse, AttemptResponse, AttemptSummaryResponse,
)
from .auth import get_current_user, require_roles
from .dependencies import get_quiz_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/quizzes", tags=["Quizzes"])

teacher_only = require_roles(Role.TEACHER)


# === BÖLÜM 1: ÖĞRETMEN QUIZ YÖNETİMİ ===

@router.post("", response_model=QuizResponse, status_code=status.HTTP_201_CREATED, summary="Create a quiz")
@limiter.limit("30/minute")
async def create_quiz(request: Request, body: QuizCreateRequest, teacher: User = Depends(teacher_only), service: QuizService = Depends(get_quiz_service)):
    # Sorular dict olarak iletilir; soru kuralları servisin Quiz doğrulamasında 400 olarak döner
    return await service.create_quiz(
        teacher, body.title, [q.model_dump() for q in body.questions], lesson_id=body.lesson_id,
        is_active=body.is_active, language=body.language,
        settings=body.settings.model_dump() if body.settings else None,
    )

@router.get("", response_model=List[QuizSummaryResponse], summary="List quizzes with question counts")
@limiter.limit("60/minute")
async def list_quizzes(request: Request, lesson_id: Optional[str] = Query(None, alias="lessonId"), teacher: User = Depends(teacher_only), service: QuizService = Depends(get_quiz_service)):
    return await service.list_quizzes(teacher, lesson_id)

@router.get("/by-lesson/{lesson_id}", response_model=Optional[PublicQuizResponse], summary="Get the active quiz of a lesson without answer keys")
@limiter.limit("120/minute")
async def get_quiz_for_lesson(request: Request, lesson_id: str, user: User = Depends(get_current_user), service: QuizService = Depends(get_quiz_service)):
    return await service.get_quiz_for_lesson(user, lesson_id)

@router.get("/{quiz_id}", response_model=QuizResponse, summary="Get the full quiz definition (creator only)")
@limiter.limit("60/minute")
async def get_quiz(request: Request, quiz_id: UUID, teacher: User = Depends(teacher_only), service: QuizService = Depends(get_quiz_service)):
    return await service.get_full_quiz(teacher, quiz_id)

@router.put("/{quiz_id}", response_model=QuizResponse, summary="Update a quiz (creator only)")
@limiter.limit("30/minute")
async def update_quiz(request: Request, quiz_id: UUID, body: QuizUpdateRequest, teacher: User = Depends(teacher_only), service: QuizService = Depends(get_quiz_service)):
    return await service.update_quiz(teacher, quiz_id, body.model_dump(exclude_unset=True))

@router.patch("/{quiz_id}/active", response_model=QuizResponse, summary="Activate or deactivate a quiz")
@limiter.limit("30/minute")
async def set_quiz_active(request: Request, quiz_id: UUID, body: QuizActiveRequest, teacher: User = Depends(teacher_only), service: QuizService = Depends(get_quiz_service)):
    return await service.set_active(teacher, quiz_id, body.is_active)

@router.delete("/{quiz_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a quiz and its attempts")
@limiter.limit("30/minute")
async def delete_quiz(request: Request, quiz_id: UUID, teacher: User = Depends(teacher_only), service: QuizService = Depends(get_quiz_service)):
    await service.delete_quiz(teacher, quiz_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# === BÖLÜM 2: DENEMELER ===

@router.post("/{quiz_id}/attempts", response_model=AttemptResultResponse, status_code=status.HTTP_201_CREATED, summary="Submit answers and get the graded result")
@limiter.limit("30/minute")
async def submit_attempt(request: Request, quiz_id: UUID, body: AttemptSubmitRequest, student: User = Depends(require_roles(Role.STUDENT)), service: QuizService = Depends(get_quiz_service)):
    answers = [SubmittedAnswer(**a.model_dump()) for a in body.answers]
    return await service.submit_attempt(student, quiz_id, answers, started_at=body.started_at)

@router.get("/{quiz_id}/attempts", response_model=List[AttemptResponse], summary="List attempts of a quiz")
@limiter.limit("60/minute")
async def list_attempts(request: Request, quiz_id: UUID, user_id: Optional[UUID] = Query(None, alias="userId"), user: User = Depends(require_roles(Role.TEACHER, Role.PARENT)), service: QuizService = Depends(get_quiz_service)):
    return await service.list_attempts(user, quiz_id, user_id)

@router.get("/{quiz_id}/summary", response_model=List[AttemptSummaryResponse], summary="Per-student attempt count, best score and last attempt")
@limiter.limit("60/minute")
async def attempt_summary(request: Request, quiz_id: UUID, user_id: Optional[UUID] = Query(None, alias="userId"), user: User = Depends(require_roles(Role.TEACHER, Role.PARENT)), service: QuizService = Depends(get_quiz_service)):
    return await service.attempt_summary(user, quiz_id, user_id)
