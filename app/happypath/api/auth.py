import logging
from fastapi import APIRouter, Depends, HTTPException, status, Response, Request
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from typing import Callable
from uuid import UUID
import jwt
import redis.asyncio as redis
from pydantic import ValidationError

# Gerekli tüm şemaları, modelleri ve bağımlılıkları import edelim
from .schemas.user import Token, TokenData, LoginRequest, RegisterRequest, UserResponse, LoginResponse
from ..models.db_models import User, Role
from ..db.redis_client import RedisClient
from ..services.user_service import UserService
from ..config.config import settings
from .dependencies import get_redis_pool, get_user_service
from .utilities.limiter import limiter

# Bu modül için özel bir logger oluşturuyoruz.
logger = logging.getLogger(__name__)

# --- Router ve Güvenlik Kurulumu ---
router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


# --- Korunmuş Rotalar için Bağımlılık ---
async def get_current_user(
    token: str = Depends(oauth2_scheme),
    redis_pool: redis.ConnectionPool = Depends(get_redis_pool)
) -> User:
    """
    Token'ı decode eder, Pydantic ile doğrular, Redis'te aktif bir oturum
    olup olmadığını kontrol eder ve oturumdaki User nesnesini döndürür.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])

        # --- Pydantic ile Doğrulama ---
        token_data = TokenData.model_validate(payload)
        if token_data.sub is None:
            logger.warning(f"Token is valid but missing 'sub': {payload}")
            raise credentials_exception
        user_id = UUID(token_data.sub)

    except (jwt.PyJWTError, ValidationError, ValueError) as e:
        # JWT hataları (süre dolması, imza hatası), Pydantic doğrulama hataları
        # ve UUID olmayan 'sub' değerleri aynı şekilde reddedilir.
        logger.warning(f"Token validation error: {e}")
        raise credentials_exception

    # --- Redis Oturum Kontrolü ---
    redis_client = RedisClient(pool=redis_pool)
    user_session = await redis_client.get_user_session(user_id)
    if user_session is None:
        logger.warning(f"User '{user_id}' has a valid token but no active session in Redis. Denying access.")
        raise credentials_exception

    # Admin rol değişikliklerinde oturum silindiği için buradaki kullanıcı her zaman güncel roldedir
    return user_session.user_data


def require_roles(*roles: Role) -> Callable:
    """Rotanın izin verdiği rolleri bildiren bağımlılık. Rol uyuşmazlığı 403 döner."""
    async def _checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.warning(f"User '{user.user_id}' with role '{user.role.value}' denied, requires {[r.value for r in roles]}.")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not authorized to perform this action.")
        return user
    return _checker


# --- API Endpoint'leri ---

@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED, summary="Register a new account")
@limiter.limit("10/minute")
async def register(request: Request, register_request: RegisterRequest, service: UserService = Depends(get_user_service)):
    return await service.register(register_request.name, register_request.email, register_request.password, register_request.role)


@router.post("/token", response_model=Token)
@limiter.limit("20/minute")
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    service: UserService = Depends(get_user_service)
):
    """Standard OAuth2 endpoint for Swagger UI. The username field carries the email."""
    token, _ = await service.login(form_data.username, form_data.password)
    return Token(access_token=token)


@router.post("/login", response_model=LoginResponse)
@limiter.limit("20/minute")
async def login(
    request: Request,
    login_request: LoginRequest,
    service: UserService = Depends(get_user_service)
):
    """Login endpoint for mobile/web clients."""
    token, user = await service.login(login_request.email, login_request.password)
    return LoginResponse(token=Token(access_token=token), user=UserResponse.model_validate(user))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("60/minute")
async def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """User logout, deletes the session from Redis."""
    logger.info(f"User '{current_user.user_id}' logging out.")
    await service.logout(current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=UserResponse, summary="Get the current user")
@limiter.limit("60/minute")
async def me(request: Request, current_user: User = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    return await service.me(current_user)
