#app/happypath/api/dependencies.py
from fastapi import Request, Depends
import redis.asyncio as redis
import asyncpg

# Servis ve istemci sınıflarını import etmemiz gerekiyor
from ..db.redis_client import RedisClient
from ..db.db_client import AsyncPostgresClient
from ..services.access_control import AccessControl
from ..services.guardianship_service import GuardianshipService
from ..services.user_service import UserService
from ..services.lesson_service import LessonService
from ..services.quiz_service import QuizService
from ..services.progress_service import ProgressService
from ..services.telemetry_service import TelemetryService
from ..services.teacher_service import TeacherService
from ..services.messaging_service import MessagingService
from ..services.notification_service import NotificationService
from ..services.micro_break_service import MicroBreakService


def get_redis_pool(request: Request) -> redis.ConnectionPool:
    """
    Uygulamanın state'inden Redis bağlantı havuzunu alır ve bir bağımlılık olarak sağlar.
    """
    return request.app.state.redis_pool

def get_postgres_pool(request: Request) -> asyncpg.Pool:
    """
    Uygulamanın state'inden PostgreSQL bağlantı havuzunu alır ve bir bağımlılık olarak sağlar.
    """
    return request.app.state.postgres_pool


def get_db_client(postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)) -> AsyncPostgresClient:
    return AsyncPostgresClient(pool=postgres_pool)


def get_user_service(
    redis_pool: redis.ConnectionPool = Depends(get_redis_pool),
    db_client: AsyncPostgresClient = Depends(get_db_client)
) -> UserService:
    """
    Her istek için yeni bir UserService nesnesi oluşturur.

    Bu fonksiyon, FastAPI'nin Bağımlılık Enjeksiyonu sistemi tarafından kullanılır.
    Uygulama başlangıcında oluşturulan paylaşımlı bağlantı havuzlarını (pools)
    kullanarak yeni istemci ve servis nesneleri oluşturur ve bunları endpoint'e verir.
    """
    return UserService(redis_client=RedisClient(pool=redis_pool), db_client=db_client)


def get_guardianship_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> GuardianshipService:
    return GuardianshipService(db_client=db_client)


def get_access_control(guardianship: GuardianshipService = Depends(get_guardianship_service)) -> AccessControl:
    """Öğrenci verisine erişim kontrolü veli bağı için kayıt defterini kullanır."""
    return AccessControl(guardianship)


def get_lesson_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> LessonService:
    return LessonService(db_client=db_client)


def get_quiz_service(
    db_client: AsyncPostgresClient = Depends(get_db_client),
    access_control: AccessControl = Depends(get_access_control)
) -> QuizService:
    return QuizService(db_client=db_client, access_control=access_control)


def get_progress_service(
    db_client: AsyncPostgresClient = Depends(get_db_client),
    access_control: AccessControl = Depends(get_access_control)
) -> ProgressService:
    return ProgressService(db_client=db_client, access_control=access_control)


def get_telemetry_service(
    db_client: AsyncPostgresClient = Depends(get_db_client),
    access_control: AccessControl = Depends(get_access_control),
    guardianship: GuardianshipService = Depends(get_guardianship_service)
) -> TelemetryService:
    """
    Oturum, olay ve rapor işlemleri için servis. Düşük dikkat uyarısı velinin kim olduğunu
    bulmak için aynı kayıt defterini kullanır.
    """
    return TelemetryService(db_client=db_client, access_control=access_control, guardianship=guardianship)


def get_teacher_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> TeacherService:
    return TeacherService(db_client=db_client)


def get_messaging_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> MessagingService:
    return MessagingService(db_client=db_client)


def get_notification_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> NotificationService:
    return NotificationService(db_client=db_client)


def get_micro_break_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> MicroBreakService:
    return MicroBreakService(db_client=db_client)
