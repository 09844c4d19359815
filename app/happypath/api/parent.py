from fastapi import APIRouter, Depends, Request
from typing import List
from uuid import UUID

from ..models.db_models import User, Role
from ..services.guardianship_service import GuardianshipService
from ..services.quiz_service import QuizService
from .schemas.user import UserSummary
from .schemas.report import ChildQuizHistoryResponse
from .auth import require_roles
from .dependencies import get_guardianship_service, get_quiz_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/parent", tags=["Parent Endpoints"])

parent_only = require_roles(Role.PARENT)


@router.get("/children", response_model=List[UserSummary], summary="List the students linked to the current parent")
@limiter.limit("60/minute")
async def list_children(request: Request, parent: User = Depends(parent_only), service: GuardianshipService = Depends(get_guardianship_service)):
    return await service.list_children_of(parent.user_id)

@router.get("/children/{student_id}/quizzes", response_model=List[ChildQuizHistoryResponse], summary="Quiz history of a linked child")
@limiter.limit("60/minute")
async def child_quiz_history(request: Request, student_id: UUID, parent: User = Depends(parent_only), service: QuizService = Depends(get_quiz_service)):
    return await service.child_quiz_history(parent, student_id)
