from fastapi import APIRouter, Depends, Request, Query
from typing import List

# --- Gerekli tüm şemalar, servisler, modeller ve bağımlılıklar ---
from ..services.teacher_service import TeacherService
from ..models.db_models import User, Role
from .schemas.report import StudentOverviewResponse
from .auth import require_roles
from .dependencies import get_teacher_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/teacher", tags=["Teacher Endpoints"])


@router.get("/students", response_model=List[StudentOverviewResponse], summary="Students active in the last N days with their progress")
@limiter.limit("60/minute")
async def get_students(request: Request, days: int = Query(90, ge=1, le=365), teacher: User = Depends(require_roles(Role.TEACHER)), service: TeacherService = Depends(get_teacher_service)):
    return await service.get_students_overview(teacher, days=days)
