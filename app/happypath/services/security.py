import asyncio
import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from ..config.config import settings
from ..models.db_models import User

logger = logging.getLogger(__name__)


class PasswordHasher:
    """
    bcrypt ile tuzlu şifre hash'leme. Tuz hash'in içine gömülü olduğu için ayrıca saklanmaz.
    """

    def __init__(self, rounds: int = settings.BCRYPT_ROUNDS):
        self._rounds = rounds

    def hash(self, password: str) -> str:
        if not password:
            raise ValueError("Password cannot be empty")
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        if not password or not password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Bozuk ya da bcrypt olmayan hash
            logger.warning("Stored password hash could not be parsed.")
            return False

    # bcrypt çağrıları event loop dışında, bir worker thread'de çalışır
    async def hash_async(self, password: str) -> str:
        return await asyncio.to_thread(self.hash, password)

    async def verify_async(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(self.verify, password, password_hash)


def create_access_token(user: User, expires_delta: timedelta) -> str:
    """Kullanıcı için {sub, role, exp} içeren yeni bir JWT access token oluşturur."""
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {"sub": str(user.user_id), "role": user.role.value, "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
