import uuid

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from app.happypath.models.db_models import Conversation, Message
from app.happypath.services.messaging_service import MessagingService, MAX_MESSAGE_LENGTH, PREVIEW_LENGTH
from app.happypath.services.errors import InvalidRequestError, AuthorizationError, NotFoundError


@pytest_asyncio.fixture
async def service_instance():
    """Creates a MessagingService instance with a mocked db client for each test."""
    mock_db_client = AsyncMock()
    mock_db_client.add_message.side_effect = lambda message, preview: message
    return MessagingService(db_client=mock_db_client), mock_db_client


def _conversation(teacher, parent, child_id=None) -> Conversation:
    return Conversation(conversation_id=uuid.uuid4(), teacher_id=teacher.user_id, parent_id=parent.user_id, child_id=child_id)


@pytest.mark.asyncio
class TestConversations:

    async def test_parent_starts_conversation_with_teacher(self, service_instance, parent_user, teacher_user, student_user):
        service, db = service_instance
        db.get_user_by_id.side_effect = lambda uid: {teacher_user.user_id: teacher_user, student_user.user_id: student_user}.get(uid)
        db.get_or_create_conversation.side_effect = lambda c: (c, True)

        conversation, created = await service.create_conversation(parent_user, teacher_user.user_id, child_id=student_user.user_id)

        assert created is True
        assert conversation.teacher_id == teacher_user.user_id
        assert conversation.parent_id == parent_user.user_id
        assert conversation.child_id == student_user.user_id

    async def test_existing_conversation_is_returned(self, service_instance, teacher_user, parent_user):
        service, db = service_instance
        existing = _conversation(teacher_user, parent_user)
        db.get_user_by_id.return_value = parent_user
        db.get_or_create_conversation.return_value = (existing, False)

        conversation, created = await service.create_conversation(teacher_user, parent_user.user_id)

        assert conversation is existing
        assert created is False

    async def test_two_teachers_cannot_talk(self, service_instance, teacher_user, other_teacher_user):
        service, db = service_instance
        db.get_user_by_id.return_value = other_teacher_user
        with pytest.raises(InvalidRequestError):
            await service.create_conversation(teacher_user, other_teacher_user.user_id)
        db.get_or_create_conversation.assert_not_called()

    async def test_students_cannot_message(self, service_instance, student_user, teacher_user):
        service, _ = service_instance
        with pytest.raises(AuthorizationError):
            await service.create_conversation(student_user, teacher_user.user_id)

    async def test_child_must_be_student(self, service_instance, parent_user, teacher_user, other_teacher_user):
        service, db = service_instance
        db.get_user_by_id.side_effect = lambda uid: {teacher_user.user_id: teacher_user, other_teacher_user.user_id: other_teacher_user}.get(uid)
        with pytest.raises(InvalidRequestError, match="childId"):
            await service.create_conversation(parent_user, teacher_user.user_id, child_id=other_teacher_user.user_id)

    async def test_unknown_peer(self, service_instance, parent_user):
        service, db = service_instance
        db.get_user_by_id.return_value = None
        with pytest.raises(NotFoundError):
            await service.create_conversation(parent_user, uuid.uuid4())

    async def test_list_includes_names_and_unread(self, service_instance, teacher_user, parent_user):
        service, db = service_instance
        conversation = _conversation(teacher_user, parent_user)
        db.list_conversations_for_user.return_value = [conversation]
        db.count_unread_by_conversation.return_value = {conversation.conversation_id: 4}
        db.get_users_by_ids.return_value = [teacher_user, parent_user]

        rows = await service.list_conversations(parent_user)

        assert rows[0]["unread_count"] == 4
        assert rows[0]["teacher"]["name"] == teacher_user.name
        assert rows[0]["parent"]["user_id"] == parent_user.user_id


@pytest.mark.asyncio
class TestMessages:

    async def test_send_marks_sender_as_reader(self, service_instance, teacher_user, parent_user):
        service, db = service_instance
        conversation = _conversation(teacher_user, parent_user)
        db.get_conversation.return_value = conversation

        message = await service.send_message(teacher_user, conversation.conversation_id, "  Hello there  ")

        assert isinstance(message, Message)
        assert message.text == "Hello there"
        assert message.read_by == [teacher_user.user_id]
        assert message.sender_role == "teacher"
        assert db.add_message.call_args.kwargs["preview"] == "Hello there"

    async def test_long_message_is_truncated(self, service_instance, teacher_user, parent_user):
        service, db = service_instance
        db.get_conversation.return_value = _conversation(teacher_user, parent_user)

        message = await service.send_message(parent_user, uuid.uuid4(), "x" * (MAX_MESSAGE_LENGTH + 10))

        assert len(message.text) == MAX_MESSAGE_LENGTH
        assert len(db.add_message.call_args.kwargs["preview"]) == PREVIEW_LENGTH

    async def test_blank_message(self, service_instance, teacher_user, parent_user):
        service, db = service_instance
        db.get_conversation.return_value = _conversation(teacher_user, parent_user)
        with pytest.raises(InvalidRequestError):
            await service.send_message(teacher_user, uuid.uuid4(), "   ")

    async def test_outsider_cannot_read(self, service_instance, teacher_user, other_teacher_user, parent_user):
        service, db = service_instance
        db.get_conversation.return_value = _conversation(teacher_user, parent_user)
        with pytest.raises(AuthorizationError):
            await service.list_messages(other_teacher_user, uuid.uuid4())
        db.list_messages.assert_not_called()

    async def test_list_messages_paging(self, service_instance, teacher_user, parent_user):
        service, db = service_instance
        conversation = _conversation(teacher_user, parent_user)
        db.get_conversation.return_value = conversation
        db.list_messages.return_value = []

        await service.list_messages(parent_user, conversation.conversation_id, page=3, limit=500)

        db.list_messages.assert_awaited_once_with(conversation.conversation_id, offset=200, limit=100)

    async def test_mark_read_missing_conversation(self, service_instance, parent_user):
        service, db = service_instance
        db.get_conversation.return_value = None
        with pytest.raises(NotFoundError):
            await service.mark_read(parent_user, uuid.uuid4())

    async def test_unread_count(self, service_instance, parent_user):
        service, db = service_instance
        db.count_unread_messages.return_value = 3
        assert await service.unread_count(parent_user) == 3
