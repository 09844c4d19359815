import logging
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import User, Role, Notification, NOTIFICATION_TYPES
from .access_control import ensure_can_notify
from .errors import InvalidRequestError, AuthorizationError, NotFoundError

logger = logging.getLogger(__name__)

MAX_RECIPIENTS = 500
RECIPIENT_LOOKUP_LIMIT = 1000


def derive_purpose(sender_role: Role) -> str:
    return "system" if sender_role == Role.ADMIN else "learning"


class NotificationService:
    """
    Tek yönlü, role göre sınırlandırılmış bildirimler. N alıcıya gönderim N bağımsız kayıt oluşturur;
    okundu bilgisi her alıcının kendi kaydında tutulur.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def send(self, sender: User, recipient_ids: List[UUID], recipient_role: Role,
                   title: str, message: str, type: Optional[str] = None) -> int:
        if recipient_role not in (Role.PARENT, Role.TEACHER):
            raise InvalidRequestError("recipientRole must be 'parent' or 'teacher'.")
        ensure_can_notify(sender, recipient_role)

        recipient_ids = list(dict.fromkeys(recipient_ids))
        if not recipient_ids:
            raise InvalidRequestError("recipientIds must be a non-empty list.")
        if len(recipient_ids) > MAX_RECIPIENTS:
            raise InvalidRequestError(f"At most {MAX_RECIPIENTS} recipients are allowed.")
        if not title.strip() or not message.strip():
            raise InvalidRequestError("title and message are required.")
        notification_type = type or ("system" if sender.role == Role.ADMIN else "general")
        if notification_type not in NOTIFICATION_TYPES:
            raise InvalidRequestError(f"type must be one of: {', '.join(NOTIFICATION_TYPES)}")

        recipients = await self.db_client.get_users_by_ids(recipient_ids)
        valid = {u.user_id for u in recipients if u.role == recipient_role}
        invalid = [str(rid) for rid in recipient_ids if rid not in valid]
        if invalid:
            raise InvalidRequestError(f"Recipients not found with role '{recipient_role.value}': {', '.join(invalid)}")

        purpose = derive_purpose(sender.role)
        notifications = [
            Notification(
                notification_id=uuid4(), title=title.strip(), message=message.strip(), type=notification_type,
                purpose=purpose, sender_id=sender.user_id, sender_role=sender.role.value,
                recipient_id=rid, recipient_role=recipient_role.value,
            )
            for rid in recipient_ids
        ]
        count = await self.db_client.add_notifications(notifications)
        logger.info(f"User '{sender.user_id}' ({sender.role.value}) sent {count} notification(s) to role '{recipient_role.value}'.")
        return count

    async def _with_people(self, notifications: List[Notification], key: str) -> List[Dict[str, Any]]:
        ids = {getattr(n, f"{key}_id") for n in notifications}
        users = {u.user_id: u for u in await self.db_client.get_users_by_ids(ids)}
        result = []
        for n in notifications:
            person = users.get(getattr(n, f"{key}_id"))
            result.append({
                "notification": n,
                key: {"user_id": person.user_id, "name": person.name, "role": getattr(n, f"{key}_role")} if person else None,
            })
        return result

    async def list_received(self, user: User) -> List[Dict[str, Any]]:
        return await self._with_people(await self.db_client.list_received_notifications(user.user_id), "sender")

    async def list_sent(self, user: User) -> List[Dict[str, Any]]:
        return await self._with_people(await self.db_client.list_sent_notifications(user.user_id), "recipient")

    async def mark_read(self, user: User, notification_id: UUID):
        """Yalnızca alıcı kendi kaydını okundu olarak işaretleyebilir."""
        notification = await self.db_client.get_notification(notification_id)
        if notification is None:
            raise NotFoundError("Notification not found.")
        if notification.recipient_id != user.user_id:
            raise AuthorizationError("Not allowed to modify this notification.")
        await self.db_client.mark_notification_read(notification_id)

    async def mark_all_read(self, user: User) -> int:
        return await self.db_client.mark_all_notifications_read(user.user_id)

    async def list_recipients(self, sender: User, role: Role) -> List[User]:
        """Gönderenin rol matrisine göre seçebileceği alıcılar."""
        if role not in (Role.PARENT, Role.TEACHER):
            raise InvalidRequestError("role must be 'parent' or 'teacher'.")
        ensure_can_notify(sender, role)
        return await self.db_client.search_users(role.value, None, RECIPIENT_LOOKUP_LIMIT)
