# app/happypath/api/utilities/limiter.py

from fastapi import Request
import jwt

# Gerekli slowapi ve ayar importları
from slowapi import Limiter
from slowapi.util import get_remote_address

# config.py'den ayarları import et
from ...config.config import settings


def get_limiter_key(request: Request) -> str:
    """
    Rate limit için bir anahtar döndürür.
    Eğer istekte geçerli bir JWT token varsa, kullanıcı kimliğini (sub) anahtar olarak kullanır.
    Yoksa, istemcinin IP adresini kullanır.
    """
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        token = auth_header.split(" ", 1)[1]
        try:
            # Süre kontrolü burada gereksiz, yalnızca kimlik okunuyor.
            payload = jwt.decode(
                token,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM],
                options={"verify_exp": False}
            )
            subject = payload.get("sub")
            if subject:
                return f"user:{subject}"
        except jwt.PyJWTError:
            # Token geçersizse IP bazlı limite geri dön.
            pass

    return get_remote_address(request)


# RATE_LIMITER_REDIS_URL verilmemişse sayaçlar süreç belleğinde tutulur
limiter = Limiter(
    key_func=get_limiter_key,
    storage_uri=settings.RATE_LIMITER_REDIS_URL or "memory://",
    enabled=settings.RATE_LIMIT_ENABLED,
)
