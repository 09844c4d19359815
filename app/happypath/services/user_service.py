import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

import asyncpg

# --- Required clients and models ---
from ..db.redis_client import RedisClient
from ..db.db_client import AsyncPostgresClient
from ..models.db_models import User, UserCredentials, Role
from ..models.redis_models import UserSessionRedis
from ..config.config import settings
from .security import PasswordHasher, create_access_token
from .errors import InvalidRequestError, AuthenticationError, AuthorizationError, NotFoundError, ConflictError

logger = logging.getLogger(__name__)

# Herkese açık kayıtta seçilebilecek roller; admin yalnızca admin tarafından oluşturulur
SELF_SERVICE_ROLES = (Role.STUDENT, Role.PARENT, Role.TEACHER)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    """
    Kayıt, giriş/çıkış ve admin kullanıcı yönetimi.
    Rol, aktiflik ya da şifre değişikliklerinde hedef kullanıcının Redis oturumu silinir,
    böylece eski rol bilgisi taşıyan token'lar kullanılamaz.
    """
    def __init__(self, redis_client: RedisClient, db_client: AsyncPostgresClient, hasher: Optional[PasswordHasher] = None):
        self.redis_client = redis_client
        self.db_client = db_client
        self.hasher = hasher or PasswordHasher()

    async def _create_user(self, name: str, email: str, password: str, role: Role, created_by: Optional[UUID]) -> User:
        email = normalize_email(email)
        if await self.db_client.email_exists(email):
            raise ConflictError("Email already exists.")
        password_hash = await self.hasher.hash_async(password)
        credentials = UserCredentials(
            user_id=uuid4(), name=name.strip(), email=email, role=role,
            password_hash=password_hash, created_by=created_by, updated_by=created_by
        )
        try:
            user = await self.db_client.add_user(credentials)
        except asyncpg.UniqueViolationError as e:
            raise ConflictError("Email already exists.") from e
        logger.info(f"User '{user.user_id}' created with role '{role.value}'.")
        return user

    # ===== Authentication =====

    async def register(self, name: str, email: str, password: str, role: Optional[str] = None) -> User:
        """Herkese açık kayıt. Bilinmeyen ya da 'admin' rolü sessizce öğrenciye çevrilir."""
        safe_role = Role(role) if role in {r.value for r in SELF_SERVICE_ROLES} else Role.STUDENT
        return await self._create_user(name, email, password, safe_role, created_by=None)

    async def login(self, email: str, password: str) -> Tuple[str, User]:
        """Kimlik bilgilerini doğrular, Redis oturumu açar ve (token, kullanıcı) döndürür."""
        credentials = await self.db_client.get_credentials_by_email(normalize_email(email))
        if credentials is None or not await self.hasher.verify_async(password, credentials.password_hash):
            logger.warning(f"Failed login attempt for '{email}'.")
            raise AuthenticationError("Invalid credentials.")
        if not credentials.is_active:
            logger.warning(f"Deactivated account '{credentials.user_id}' tried to log in.")
            raise AuthorizationError("Account is disabled. Contact admin.")

        await self.db_client.touch_last_login(credentials.user_id)
        now = datetime.now(timezone.utc)
        user = User(**credentials.model_dump(exclude={"password_hash"}))
        user.last_login_at = now

        ttl = settings.SESSION_TTL_SECONDS
        session = UserSessionRedis(
            user_data=user, session_id=uuid4(),
            session_start_time=now, session_end_time=now + timedelta(seconds=ttl)
        )
        await self.redis_client.save_user_session(session, ttl=ttl)
        token = create_access_token(user, expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
        logger.info(f"User '{user.user_id}' ({user.role.value}) logged in.")
        return token, user

    async def logout(self, user: User):
        await self.redis_client.delete_user_session(user.user_id)
        logger.info(f"Session for user '{user.user_id}' deleted.")

    async def me(self, user: User) -> User:
        """Oturumdaki anlık görüntü yerine veritabanındaki güncel kaydı döndürür."""
        fresh = await self.db_client.get_user_by_id(user.user_id)
        if fresh is None:
            raise NotFoundError("User not found.")
        return fresh

    # ===== Admin =====

    async def admin_create_user(self, admin: User, name: str, email: str, password: str, role: Role) -> User:
        return await self._create_user(name, email, password, role, created_by=admin.user_id)

    async def admin_list_users(self, role: Optional[Role], q: Optional[str], page: int, limit: int) -> Dict[str, Any]:
        page, limit = max(page, 1), max(limit, 1)
        items, total = await self.db_client.list_users(
            role.value if role else None, q.strip() if q else None, offset=(page - 1) * limit, limit=limit
        )
        return {"items": items, "total": total, "page": page, "pages": math.ceil(total / limit)}

    async def _update(self, admin: User, user_id: UUID, fields: Dict[str, Any], revoke_session: bool) -> User:
        try:
            user = await self.db_client.update_user(user_id, fields, updated_by=admin.user_id)
        except asyncpg.UniqueViolationError as e:
            raise ConflictError("Email already in use.") from e
        if user is None:
            raise NotFoundError("User not found.")
        if revoke_session:
            await self.redis_client.delete_user_session(user_id)
        logger.info(f"Admin '{admin.user_id}' updated user '{user_id}': {sorted(fields)}")
        return user

    async def admin_update_user(self, admin: User, user_id: UUID, name: Optional[str] = None,
                                email: Optional[str] = None, is_active: Optional[bool] = None) -> User:
        fields: Dict[str, Any] = {}
        if name is not None:
            fields["name"] = name.strip()
        if email is not None:
            fields["email"] = normalize_email(email)
            if await self.db_client.email_exists(fields["email"], exclude_user_id=user_id):
                raise ConflictError("Email already in use.")
        if is_active is not None:
            fields["is_active"] = is_active
        if not fields:
            raise InvalidRequestError("No valid fields to update.")
        return await self._update(admin, user_id, fields, revoke_session=True)

    async def admin_set_role(self, admin: User, user_id: UUID, role: Role) -> User:
        return await self._update(admin, user_id, {"role": role.value}, revoke_session=True)

    async def admin_set_active(self, admin: User, user_id: UUID, is_active: bool) -> User:
        return await self._update(admin, user_id, {"is_active": is_active}, revoke_session=True)

    async def admin_reset_password(self, admin: User, user_id: UUID):
        """Şifreyi varsayılan değere çeker ve açık oturumu kapatır."""
        password_hash = await self.hasher.hash_async(settings.DEFAULT_RESET_PASSWORD)
        updated = await self.db_client.update_password_hash(user_id, password_hash, updated_by=admin.user_id)
        if not updated:
            raise NotFoundError("User not found.")
        await self.redis_client.delete_user_session(user_id)
        logger.info(f"Admin '{admin.user_id}' reset the password of user '{user_id}'.")

    # ===== Directory =====

    async def search_directory(self, role: Optional[Role], q: Optional[str], limit: int = 20) -> List[User]:
        return await self.db_client.search_users(role.value if role else None, q.strip() if q else None, min(max(limit, 1), 100))

    async def seed_admin(self, email: str, password: str, name: str = "Admin") -> Optional[User]:
        """Hiç admin yoksa ilk admin hesabını oluşturur, varsa None döner."""
        if await self.db_client.admin_exists():
            logger.info("An admin account already exists, skipping seed.")
            return None
        return await self._create_user(name, email, password, Role.ADMIN, created_by=None)
