from fastapi import APIRouter, Depends, Request, Response, Query, status
from typing import List, Optional
from uuid import UUID

from ..models.db_models import User, Role
from ..services.user_service import UserService
from ..services.guardianship_service import GuardianshipService
from .schemas.user import (
    UserResponse, UserListResponse, AdminCreateUserRequest, AdminUpdateUserRequest,
    RoleUpdateRequest, ActiveUpdateRequest,
)
from .schemas.guardianship import AssignmentCreateRequest, AssignmentResponse, AssignmentDetailResponse
from .auth import require_roles
from .dependencies import get_user_service, get_guardianship_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/admin", tags=["Admin Endpoints"])

admin_only = require_roles(Role.ADMIN)


# === BÖLÜM 1: KULLANICI YÖNETİMİ ===

@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED, summary="Create a user with any role")
@limiter.limit("30/minute")
async def create_user(request: Request, body: AdminCreateUserRequest, admin: User = Depends(admin_only), service: UserService = Depends(get_user_service)):
    return await service.admin_create_user(admin, body.name, body.email, body.password, body.role)

@router.get("/users", response_model=UserListResponse, summary="List users with role filter, search and paging")
@limiter.limit("60/minute")
async def list_users(request: Request, role: Optional[Role] = None, q: Optional[str] = None, page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100), admin: User = Depends(admin_only), service: UserService = Depends(get_user_service)):
    return await service.admin_list_users(role, q, page, limit)

@router.patch("/users/{user_id}", response_model=UserResponse, summary="Update name, email or active flag")
@limiter.limit("30/minute")
async def update_user(request: Request, user_id: UUID, body: AdminUpdateUserRequest, admin: User = Depends(admin_only), service: UserService = Depends(get_user_service)):
    return await service.admin_update_user(admin, user_id, name=body.name, email=body.email, is_active=body.is_active)

@router.patch("/users/{user_id}/role", response_model=UserResponse, summary="Change a user's role")
@limiter.limit("30/minute")
async def set_role(request: Request, user_id: UUID, body: RoleUpdateRequest, admin: User = Depends(admin_only), service: UserService = Depends(get_user_service)):
    return await service.admin_set_role(admin, user_id, body.role)

@router.patch("/users/{user_id}/active", response_model=UserResponse, summary="Activate or deactivate a user")
@limiter.limit("30/minute")
async def set_active(request: Request, user_id: UUID, body: ActiveUpdateRequest, admin: User = Depends(admin_only), service: UserService = Depends(get_user_service)):
    return await service.admin_set_active(admin, user_id, body.is_active)

@router.patch("/users/{user_id}/reset-password", status_code=status.HTTP_204_NO_CONTENT, summary="Reset a user's password to the default")
@limiter.limit("10/minute")
async def reset_password(request: Request, user_id: UUID, admin: User = Depends(admin_only), service: UserService = Depends(get_user_service)):
    await service.admin_reset_password(admin, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# === BÖLÜM 2: VELİ-ÖĞRENCİ ATAMALARI ===

@router.post("/assignments", response_model=List[AssignmentResponse], status_code=status.HTTP_201_CREATED, summary="Link students to a parent")
@limiter.limit("30/minute")
async def create_assignments(request: Request, body: AssignmentCreateRequest, admin: User = Depends(admin_only), service: GuardianshipService = Depends(get_guardianship_service)):
    return await service.assign(body.parent_id, body.student_ids, assigned_by=admin.user_id, note=body.note)

@router.get("/assignments", response_model=List[AssignmentDetailResponse], summary="List guardian assignments")
@limiter.limit("60/minute")
async def list_assignments(request: Request, parent_id: Optional[UUID] = Query(None, alias="parentId"), student_id: Optional[UUID] = Query(None, alias="studentId"), admin: User = Depends(admin_only), service: GuardianshipService = Depends(get_guardianship_service)):
    return await service.list_assignments(parent_id=parent_id, student_id=student_id)

@router.delete("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Remove a guardian assignment")
@limiter.limit("30/minute")
async def delete_assignment(request: Request, assignment_id: UUID, admin: User = Depends(admin_only), service: GuardianshipService = Depends(get_guardianship_service)):
    await service.unassign(assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
