import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import User, Role, Conversation, Message
from .access_control import conversation_peer_role, split_conversation_pair
from .errors import InvalidRequestError, AuthorizationError, NotFoundError

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4000
PREVIEW_LENGTH = 120
DEFAULT_PAGE_SIZE = 30


def _user_summary(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {"user_id": user.user_id, "name": user.name, "email": user.email, "role": user.role}


class MessagingService:
    """
    Öğretmen ile veli arasındaki birebir konuşmalar. Her konuşmada tam olarak bir öğretmen ve bir veli bulunur.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def _get_participating_conversation(self, user: User, conversation_id: UUID) -> Conversation:
        conversation = await self.db_client.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found.")
        if user.user_id not in (conversation.teacher_id, conversation.parent_id):
            logger.warning(f"User '{user.user_id}' is not a participant of conversation '{conversation_id}'.")
            raise AuthorizationError("You are not a participant of this conversation.")
        return conversation

    async def list_conversations(self, user: User) -> List[Dict[str, Any]]:
        """Katılımcı adları ve okunmamış mesaj sayısıyla, son aktiviteye göre sıralı konuşmalar."""
        conversation_peer_role(user)
        conversations = await self.db_client.list_conversations_for_user(user.user_id)
        if not conversations:
            return []
        unread = await self.db_client.count_unread_by_conversation(user.user_id)
        user_ids = set()
        for c in conversations:
            user_ids.update((c.teacher_id, c.parent_id))
        users = {u.user_id: u for u in await self.db_client.get_users_by_ids(user_ids)}
        return [
            {
                "conversation": c,
                "teacher": _user_summary(users.get(c.teacher_id)),
                "parent": _user_summary(users.get(c.parent_id)),
                "unread_count": unread.get(c.conversation_id, 0),
            }
            for c in conversations
        ]

    async def create_conversation(self, user: User, peer_user_id: UUID, child_id: Optional[UUID] = None) -> Tuple[Conversation, bool]:
        """
        (öğretmen, veli, çocuk) için konuşmayı döndürür, yoksa oluşturur.
        İkinci değer yeni bir konuşma oluşturulduysa True olur.
        """
        conversation_peer_role(user)
        if peer_user_id == user.user_id:
            raise InvalidRequestError("You cannot start a conversation with yourself.")
        peer = await self.db_client.get_user_by_id(peer_user_id)
        if peer is None:
            raise NotFoundError("Peer user not found.")
        teacher, parent = split_conversation_pair(user, peer)

        if child_id is not None:
            child = await self.db_client.get_user_by_id(child_id)
            if child is None or child.role != Role.STUDENT:
                raise InvalidRequestError("childId must refer to a student.")

        conversation, created = await self.db_client.get_or_create_conversation(Conversation(
            conversation_id=uuid4(), teacher_id=teacher.user_id, parent_id=parent.user_id, child_id=child_id
        ))
        if created:
            logger.info(f"Conversation '{conversation.conversation_id}' created between teacher '{teacher.user_id}' and parent '{parent.user_id}'.")
        return conversation, created

    async def list_messages(self, user: User, conversation_id: UUID, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> List[Message]:
        await self._get_participating_conversation(user, conversation_id)
        page, limit = max(page, 1), min(max(limit, 1), 100)
        return await self.db_client.list_messages(conversation_id, offset=(page - 1) * limit, limit=limit)

    async def send_message(self, user: User, conversation_id: UUID, text: str) -> Message:
        conversation_peer_role(user)
        await self._get_participating_conversation(user, conversation_id)
        text = (text or "").strip()[:MAX_MESSAGE_LENGTH]
        if not text:
            raise InvalidRequestError("Message text is required.")
        message = Message(
            message_id=uuid4(), conversation_id=conversation_id, sender_id=user.user_id,
            sender_role=user.role.value, text=text, read_by=[user.user_id]
        )
        return await self.db_client.add_message(message, preview=text[:PREVIEW_LENGTH])

    async def mark_read(self, user: User, conversation_id: UUID) -> int:
        await self._get_participating_conversation(user, conversation_id)
        return await self.db_client.mark_conversation_read(conversation_id, user.user_id)

    async def unread_count(self, user: User) -> int:
        return await self.db_client.count_unread_messages(user.user_id)
