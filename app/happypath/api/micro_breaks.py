from fastapi import APIRouter, Depends, Request, Response, status
from typing import List
from uuid import UUID

from ..models.db_models import User
from ..services.micro_break_service import MicroBreakService
from .schemas.micro_break import MicroBreakCreateRequest, MicroBreakUpdateRequest, MicroBreakResponse
from .auth import get_current_user
from .dependencies import get_micro_break_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/micro-breaks", tags=["Micro Breaks"])


@router.get("/public", response_model=List[MicroBreakResponse], summary="Active micro breaks for any signed-in user")
@limiter.limit("120/minute")
async def list_public(request: Request, user: User = Depends(get_current_user), service: MicroBreakService = Depends(get_micro_break_service)):
    return await service.list_public()

@router.get("", response_model=List[MicroBreakResponse], summary="All micro breaks (teachers and admins)")
@limiter.limit("60/minute")
async def list_all(request: Request, user: User = Depends(get_current_user), service: MicroBreakService = Depends(get_micro_break_service)):
    return await service.list_all(user)

@router.post("", response_model=MicroBreakResponse, status_code=status.HTTP_201_CREATED, summary="Create a micro break")
@limiter.limit("30/minute")
async def create(request: Request, body: MicroBreakCreateRequest, user: User = Depends(get_current_user), service: MicroBreakService = Depends(get_micro_break_service)):
    return await service.create(user, body.title, body.youtube_url, body.booster_text, is_active=body.is_active)

@router.put("/{micro_break_id}", response_model=MicroBreakResponse, summary="Update a micro break")
@limiter.limit("30/minute")
async def update(request: Request, micro_break_id: UUID, body: MicroBreakUpdateRequest, user: User = Depends(get_current_user), service: MicroBreakService = Depends(get_micro_break_service)):
    return await service.update(user, micro_break_id, body.model_dump(exclude_unset=True))

@router.delete("/{micro_break_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a micro break")
@limiter.limit("30/minute")
async def delete(request: Request, micro_break_id: UUID, user: User = Depends(get_current_user), service: MicroBreakService = Depends(get_micro_break_service)):
    await service.delete(user, micro_break_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
