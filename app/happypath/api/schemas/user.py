# app/happypath/api/schemas/user.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from ...models.db_models import Role
from .base import ApiModel


class RegisterRequest(ApiModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    role: Optional[str] = Field(None, description="student, parent or teacher. Anything else registers a student.")


class LoginRequest(ApiModel):
    email: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(ApiModel):
    user_id: UUID
    name: str
    email: str
    role: Role
    is_active: bool
    avatar: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserSummary(ApiModel):
    """Dizin ve gömülü katılımcı bilgisi için kısa kullanıcı görünümü."""
    user_id: UUID
    name: str
    email: str
    role: Role


class LoginResponse(ApiModel):
    """ The login response: bearer token plus the logged in user. """
    token: Token
    user: UserResponse


# Internal representation of JWT data
class TokenData(BaseModel):
    sub: Optional[str] = None
    role: Optional[str] = None


# --- Admin ---

class AdminCreateUserRequest(ApiModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    role: Role


class AdminUpdateUserRequest(ApiModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = Field(None, min_length=3)
    is_active: Optional[bool] = None


class RoleUpdateRequest(ApiModel):
    role: Role


class ActiveUpdateRequest(ApiModel):
    is_active: bool


class UserListResponse(ApiModel):
    items: List[UserResponse]
    total: int
    page: int
    pages: int
