import logging
import math
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import User, Role, Lesson, LESSON_CATEGORIES, LESSON_LEVELS
from ..modules.youtube import extract_video_id, thumbnail_url
from .access_control import Action, Resource, can_read_lesson, can_modify_lesson, is_allowed
from .errors import InvalidRequestError, AuthorizationError, NotFoundError

logger = logging.getLogger(__name__)

LESSON_STATUSES = ("draft", "published")


def _validate_choices(fields: Dict[str, Any]):
    if "category" in fields and fields["category"] not in LESSON_CATEGORIES:
        raise InvalidRequestError(f"category must be one of: {', '.join(LESSON_CATEGORIES)}")
    if "level" in fields and fields["level"] not in LESSON_LEVELS:
        raise InvalidRequestError(f"level must be one of: {', '.join(LESSON_LEVELS)}")
    if "status" in fields and fields["status"] not in LESSON_STATUSES:
        raise InvalidRequestError(f"status must be one of: {', '.join(LESSON_STATUSES)}")


def _video_fields(video_url: str) -> Dict[str, str]:
    """Video bağlantısını kanonik kimliğe ve küçük resim adresine çevirir; geçersizse kayıttan önce reddeder."""
    video_id = extract_video_id(video_url)
    if not video_id:
        raise InvalidRequestError("Invalid YouTube URL.")
    return {"video_url": video_url.strip(), "video_id": video_id, "thumbnail_url": thumbnail_url(video_id, "hq")}


class LessonService:
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def create_lesson(self, teacher: User, title: str, description: str, goal: str, category: str,
                            level: str, video_url: str, status: str = "published") -> Lesson:
        if teacher.role != Role.TEACHER:
            raise AuthorizationError("Only teachers can create lessons.")
        fields = {"title": title, "description": description, "goal": goal,
                  "category": category, "level": level, "status": status}
        _validate_choices(fields)
        fields.update(_video_fields(video_url))
        lesson = await self.db_client.add_lesson(Lesson(lesson_id=uuid4(), created_by=teacher.user_id, **fields))
        logger.info(f"Lesson '{lesson.lesson_id}' created by teacher '{teacher.user_id}'.")
        return lesson

    async def list_lessons(self, user: User, status: Optional[str], page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """Öğretmen ve admin taslakları da görür; diğer roller yalnızca yayınlanmış dersleri görür."""
        if status is not None and status not in LESSON_STATUSES:
            raise InvalidRequestError(f"status must be one of: {', '.join(LESSON_STATUSES)}")
        if not is_allowed(user.role, Action.READ, Resource.LESSON_DRAFT):
            status = "published"
        page, limit = max(page, 1), min(max(limit, 1), 100)
        items, total = await self.db_client.list_lessons(status, offset=(page - 1) * limit, limit=limit)
        return {"items": items, "total": total, "page": page, "pages": math.ceil(total / limit)}

    async def get_lesson(self, user: User, lesson_id: UUID) -> Lesson:
        lesson = await self.db_client.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson not found.")
        if not can_read_lesson(user, lesson):
            raise AuthorizationError("You are not authorized to view this lesson.")
        return lesson

    async def _get_for_modification(self, user: User, lesson_id: UUID) -> Lesson:
        lesson = await self.db_client.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson not found.")
        if not can_modify_lesson(user, lesson):
            logger.warning(f"User '{user.user_id}' tried to modify lesson '{lesson_id}' without ownership.")
            raise AuthorizationError("Only the lesson's creator or an admin can modify it.")
        return lesson

    async def update_lesson(self, user: User, lesson_id: UUID, fields: Dict[str, Any]) -> Lesson:
        await self._get_for_modification(user, lesson_id)
        fields = {k: v for k, v in fields.items() if v is not None}
        if not fields:
            raise InvalidRequestError("No valid fields to update.")
        _validate_choices(fields)
        if "video_url" in fields:
            fields.update(_video_fields(fields["video_url"]))
        lesson = await self.db_client.update_lesson(lesson_id, fields)
        if lesson is None:
            raise NotFoundError("Lesson not found.")
        logger.info(f"Lesson '{lesson_id}' updated by '{user.user_id}'.")
        return lesson

    async def delete_lesson(self, user: User, lesson_id: UUID):
        await self._get_for_modification(user, lesson_id)
        await self.db_client.delete_lesson(lesson_id)
        logger.info(f"Lesson '{lesson_id}' deleted by '{user.user_id}'.")
