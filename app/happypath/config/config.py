import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str, default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """
    Ortam değişkenlerinden ayarları doğrudan ve basit bir şekilde tutan sınıf.
    """
    # Veritabanı
    DATABASE_URL: str = os.environ.get("DATABASE_URL")

    # Redis: uygulama oturumları ve rate limiter ayrı veritabanlarında tutulur
    APPLICATION_REDIS_URL: str = os.environ.get("APPLICATION_REDIS_URL")
    RATE_LIMITER_REDIS_URL: str = os.environ.get("RATE_LIMITER_REDIS_URL")
    RATE_LIMIT_ENABLED: bool = _as_bool(os.environ.get("RATE_LIMIT_ENABLED"), default=True)

    # JWT ve oturum ayarları
    SECRET_KEY: str = os.environ.get("SECRET_KEY", "change-me")
    ALGORITHM: str = os.environ.get("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", 720))
    SESSION_TTL_SECONDS: int = int(os.environ.get("SESSION_TTL_SECONDS", ACCESS_TOKEN_EXPIRE_MINUTES * 60))
    BCRYPT_ROUNDS: int = int(os.environ.get("BCRYPT_ROUNDS", 12))

    # Yönetici işlemleri
    DEFAULT_RESET_PASSWORD: str = os.environ.get("DEFAULT_RESET_PASSWORD", "password123")
    SEED_ADMIN_EMAIL: str = os.environ.get("SEED_ADMIN_EMAIL", "admin@happypath.local")
    SEED_ADMIN_PASSWORD: str = os.environ.get("SEED_ADMIN_PASSWORD")

    # Harici servisler
    EMOTION_SERVICE_URL: str = os.environ.get("EMOTION_SERVICE_URL")

    # Zamanlanmış görevler
    STALE_SESSION_HOURS: int = int(os.environ.get("STALE_SESSION_HOURS", 6))
    STALE_SESSION_SWEEP_MINUTES: int = int(os.environ.get("STALE_SESSION_SWEEP_MINUTES", 15))

    CORS_ORIGINS: list = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]
    LOG_DIR: str = os.environ.get("LOG_DIR", "logs")

# Ayarların tek ve içe aktarılabilir bir örneğini oluştur
settings = Config()
