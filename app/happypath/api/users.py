from fastapi import APIRouter, Depends, Request, Query
from typing import List, Optional

from ..models.db_models import User, Role
from ..services.user_service import UserService
from .schemas.user import UserSummary
from .auth import require_roles
from .dependencies import get_user_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/users", tags=["User Directory"])


@router.get("", response_model=List[UserSummary], summary="Search users, e.g. to pick a conversation peer")
@limiter.limit("60/minute")
async def search_users(request: Request, role: Optional[Role] = None, q: Optional[str] = None, limit: int = Query(20, ge=1, le=100), user: User = Depends(require_roles(Role.TEACHER, Role.PARENT, Role.ADMIN)), service: UserService = Depends(get_user_service)):
    return await service.search_directory(role, q, limit)
