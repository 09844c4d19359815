import logging
from typing import Any, Dict, List
from uuid import UUID, uuid4

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import User, MicroBreak
from ..modules.youtube import extract_video_id
from .access_control import Action, Resource, ensure_allowed
from .errors import InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)


def _check_video(url: str) -> str:
    if not extract_video_id(url):
        raise InvalidRequestError("Invalid YouTube URL.")
    return url.strip()


class MicroBreakService:
    """Öğretmen ve adminlerin yönettiği kısa mola videoları kütüphanesi."""
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def create(self, user: User, title: str, youtube_url: str, booster_text: str, is_active: bool = True) -> MicroBreak:
        ensure_allowed(user, Action.WRITE, Resource.MICRO_BREAK)
        item = await self.db_client.add_micro_break(MicroBreak(
            micro_break_id=uuid4(), title=title.strip(), youtube_url=_check_video(youtube_url),
            booster_text=booster_text.strip(), created_by=user.user_id, is_active=is_active
        ))
        logger.info(f"Micro break '{item.micro_break_id}' created by '{user.user_id}'.")
        return item

    async def list_all(self, user: User) -> List[MicroBreak]:
        ensure_allowed(user, Action.READ, Resource.MICRO_BREAK)
        return await self.db_client.list_micro_breaks(active_only=False)

    async def list_public(self) -> List[MicroBreak]:
        return await self.db_client.list_micro_breaks(active_only=True)

    async def update(self, user: User, micro_break_id: UUID, fields: Dict[str, Any]) -> MicroBreak:
        ensure_allowed(user, Action.WRITE, Resource.MICRO_BREAK)
        fields = {k: v for k, v in fields.items() if v is not None}
        if not fields:
            raise InvalidRequestError("No valid fields to update.")
        if "youtube_url" in fields:
            fields["youtube_url"] = _check_video(fields["youtube_url"])
        item = await self.db_client.update_micro_break(micro_break_id, fields)
        if item is None:
            raise NotFoundError("Micro break not found.")
        return item

    async def delete(self, user: User, micro_break_id: UUID):
        ensure_allowed(user, Action.WRITE, Resource.MICRO_BREAK)
        if not await self.db_client.delete_micro_break(micro_break_id):
            raise NotFoundError("Micro break not found.")
        logger.info(f"Micro break '{micro_break_id}' deleted by '{user.user_id}'.")
