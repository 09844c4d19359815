from fastapi import APIRouter, Depends, Request, Query
from datetime import date
from typing import List, Optional
from uuid import UUID

from ..models.db_models import User
from ..services.telemetry_service import TelemetryService
from ..services.quiz_service import QuizService
from .schemas.report import DailySummaryResponse, SessionReportResponse, LearnerQuizSummaryResponse
from .auth import get_current_user
from .dependencies import get_telemetry_service, get_quiz_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/learner/{user_id}/daily", response_model=List[DailySummaryResponse], summary="Daily attention and emotion summaries")
@limiter.limit("60/minute")
async def daily_report(request: Request, user_id: UUID, from_date: Optional[date] = Query(None, alias="from"), to_date: Optional[date] = Query(None, alias="to"), tz: Optional[str] = Query(None, description="UTC (default), an IANA name or a +HH:MM offset"), user: User = Depends(get_current_user), service: TelemetryService = Depends(get_telemetry_service)):
    return await service.daily_report(user, user_id, from_date=from_date, to_date=to_date, tz_name=tz)

@router.get("/session/{session_id}", response_model=SessionReportResponse, summary="Attention trend and emotion timeline of one session")
@limiter.limit("60/minute")
async def session_report(request: Request, session_id: UUID, user: User = Depends(get_current_user), service: TelemetryService = Depends(get_telemetry_service)):
    return await service.session_report(user, session_id)

@router.get("/learner/{user_id}/quizzes", response_model=List[LearnerQuizSummaryResponse], summary="Per-quiz summary of a learner's attempts")
@limiter.limit("60/minute")
async def learner_quizzes(request: Request, user_id: UUID, from_date: Optional[date] = Query(None, alias="from"), to_date: Optional[date] = Query(None, alias="to"), tz: Optional[str] = None, user: User = Depends(get_current_user), service: QuizService = Depends(get_quiz_service)):
    return await service.learner_quiz_summary(user, user_id, from_date=from_date, to_date=to_date, tz_name=tz)
