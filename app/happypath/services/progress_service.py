import logging
from typing import List, Optional
from uuid import UUID

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import User, Progress
from ..modules.rounding import round_half_up
from .access_control import AccessControl
from .errors import InvalidRequestError, ConflictError

logger = logging.getLogger(__name__)

MAX_DURATION_SEC = 24 * 3600
COMPLETION_PERCENT = 95
# Aynı (kullanıcı, ders) için eşzamanlı ping yarışında en fazla bu kadar yeniden birleştirme yapılır
MERGE_ATTEMPTS = 5


def _clamp(value: Optional[float], low: float, high: float) -> float:
    return max(low, min(high, value or 0))


def merge_progress(stored: Optional[Progress], user_id: UUID, lesson_id: str,
                   position_sec: float, duration_sec: float, completed: bool = False) -> Progress:
    """
    Bir ping'i kayıtlı ilerlemeyle birleştirir.

    Süre ve konum en büyük değerleri korur, yüzde birleşik değerlerden yeniden hesaplanır ve
    önceki yüzdenin altına düşmez. completed bir kez True olduktan sonra hep True kalır ve
    yüzdeyi 100'e, konumu süreye sabitler.
    """
    duration = _clamp(duration_sec, 0, MAX_DURATION_SEC)
    position = _clamp(position_sec, 0, duration or MAX_DURATION_SEC)

    if stored is not None:
        duration = max(stored.duration_sec, duration)
        position = max(stored.position_sec, position)
    if duration:
        position = min(position, duration)

    percent = min(100, round_half_up(100 * position / duration)) if duration else 0
    if stored is not None:
        percent = max(percent, stored.percent)

    is_done = completed or percent >= COMPLETION_PERCENT or (stored is not None and stored.completed)
    if is_done:
        percent = 100
        position = duration

    return Progress(
        user_id=user_id, lesson_id=lesson_id, position_sec=position,
        duration_sec=duration, percent=percent, completed=is_done
    )


class ProgressService:
    def __init__(self, db_client: AsyncPostgresClient, access_control: AccessControl):
        self.db_client = db_client
        self.access_control = access_control

    async def ping(self, student: User, lesson_id: str, position_sec: float, duration_sec: float, completed: bool = False) -> Progress:
        """
        İzleme ping'ini kaydeder. Yazma, okunan alanlar hâlâ aynıysa uygulanan bir karşılaştır-ve-yaz
        ile yapılır; araya başka bir ping girerse satır yeniden okunup birleştirilir.
        """
        if not lesson_id or not lesson_id.strip():
            raise InvalidRequestError("lessonId is required.")

        for _ in range(MERGE_ATTEMPTS):
            stored = await self.db_client.get_progress(student.user_id, lesson_id)
            merged = merge_progress(stored, student.user_id, lesson_id, position_sec, duration_sec, completed)
            if stored is None:
                result = await self.db_client.insert_progress_if_absent(merged)
            else:
                result = await self.db_client.compare_and_set_progress(stored, merged)
            if result is not None:
                return result
            logger.info(f"Progress for user '{student.user_id}' lesson '{lesson_id}' changed concurrently, merging again.")

        logger.warning(f"Progress merge for user '{student.user_id}' lesson '{lesson_id}' kept losing races.")
        raise ConflictError("Progress is being updated concurrently, please retry.")

    async def list_for_user(self, requester: User, user_id: UUID) -> List[Progress]:
        await self.access_control.ensure_learner_access(requester, user_id)
        return await self.db_client.list_progress(user_id)

    async def get_for_lesson(self, requester: User, user_id: UUID, lesson_id: str) -> Optional[Progress]:
        await self.access_control.ensure_learner_access(requester, user_id)
        return await self.db_client.get_progress(user_id, lesson_id)
