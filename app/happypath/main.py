# app/happypath/main.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import redis.asyncio as redis
from redis.exceptions import RedisError
import asyncpg
from apscheduler.schedulers.asyncio import AsyncIOScheduler as Scheduler
import logging

# Rate limiting için gerekli importlar
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

# Proje ayarlarını ve modüllerini import edelim
from .config.config import settings
from .logging.logging_config import setup_logging
from .api import (
    auth, admin, parent, users, lessons, quizzes, sessions, progress,
    reports, messages, notifications, teacher, micro_breaks, emotion,
)
from .services.errors import ServiceError, ConflictError, AuthenticationError

# Gerekli istemci ve görev (task) fonksiyonlarını import edelim
from .db.db_client import AsyncPostgresClient, apply_schema, init_connection
from .tasks.cron import close_stale_sessions

from .api.utilities.limiter import limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Uygulama başlatıldığında ve durdurulduğunda çalışacak olan yaşam döngüsü yöneticisi.
    """
    setup_logging()

    # Rate limiter'ı uygulama state'ine ekle
    app.state.limiter = limiter

    logger.info("Uygulama başlatılıyor...")

    postgres_pool = None
    redis_pool = None
    scheduler = None

    try:
        postgres_pool = await asyncpg.create_pool(
            dsn=settings.DATABASE_URL, min_size=5, max_size=20, init=init_connection
        )
        await apply_schema(postgres_pool)
        redis_pool = redis.ConnectionPool.from_url(
            settings.APPLICATION_REDIS_URL, decode_responses=True
        )

        app.state.postgres_pool = postgres_pool
        app.state.redis_pool = redis_pool
        logger.info("PostgreSQL ve Redis bağlantı havuzları başarıyla oluşturuldu.")

        db_client = AsyncPostgresClient(pool=postgres_pool)

        scheduler = Scheduler()
        scheduler.add_job(close_stale_sessions, "interval", minutes=settings.STALE_SESSION_SWEEP_MINUTES, args=[db_client], id="close_stale_sessions")
        scheduler.start()

        app.state.scheduler = scheduler
        logger.info("Zamanlanmış görevler (cron jobs) başarıyla başlatıldı.")

    except Exception as e:
        logger.error(f"HATA: Başlangıç sırasında bir hata oluştu: {e}", exc_info=True)
        # Hata durumunda state'i temizle
        if postgres_pool is not None:
            await postgres_pool.close()
        app.state.postgres_pool = None
        app.state.redis_pool = None
        app.state.scheduler = None

    yield

    logger.info("Uygulama kapatılıyor...")
    if getattr(app.state, 'scheduler', None):
        app.state.scheduler.shutdown()
        logger.info("Scheduler kapatıldı.")
    if getattr(app.state, 'postgres_pool', None):
        await app.state.postgres_pool.close()
        logger.info("PostgreSQL bağlantı havuzu kapatıldı.")
    if getattr(app.state, 'redis_pool', None):
        await app.state.redis_pool.disconnect()
        logger.info("Redis bağlantı havuzu kapatıldı.")


# Ana FastAPI uygulamasını oluştur
app = FastAPI(
    title="HappyPath API",
    description="Rol tabanlı eğitim platformu: dersler, quizler, dikkat telemetrisi ve veli iletişimi",
    version="1.0.0",
    lifespan=lifespan
)
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Hata Yöneticileri ---

async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Servis katmanı hatalarını, sınıfın taşıdığı durum koduyla JSON cevaba çevirir."""
    content = {"detail": str(exc)}
    if isinstance(exc, ConflictError) and exc.conflicts:
        content["conflicts"] = exc.conflicts
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Veritabanı ayrıntıları istemciye sızdırılmaz
    logger.error(f"{request.method} {request.url.path} failed with a store error: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error."})


app.add_exception_handler(ServiceError, service_error_handler)
app.add_exception_handler(asyncpg.PostgresError, store_error_handler)
app.add_exception_handler(RedisError, store_error_handler)
# Rate limit aşıldığında çalışacak hata yöneticisini ekle
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# API router'larını uygulamaya dahil et
for api_module in (auth, admin, parent, users, lessons, quizzes, sessions, progress,
                   reports, messages, notifications, teacher, micro_breaks, emotion):
    app.include_router(api_module.router, prefix="/api/v1")


@app.get("/health", tags=["System"])
def health_check():
    """Uygulamanın ayakta ve sağlıklı olup olmadığını kontrol etmek için basit bir endpoint."""
    return {"status": "ok", "message": "HappyPath API is running."}
