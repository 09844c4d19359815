import uuid

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from app.happypath.models.db_models import Role, Notification
from app.happypath.services.notification_service import NotificationService, derive_purpose
from app.happypath.services.errors import InvalidRequestError, AuthorizationError, NotFoundError


@pytest_asyncio.fixture
async def service_instance():
    """Creates a NotificationService instance with a mocked db client for each test."""
    mock_db_client = AsyncMock()
    mock_db_client.add_notifications.side_effect = lambda notifications: len(notifications)
    return NotificationService(db_client=mock_db_client), mock_db_client


def _notification(sender, recipient) -> Notification:
    return Notification(
        notification_id=uuid.uuid4(), title="Hi", message="Hello", sender_id=sender.user_id,
        sender_role=sender.role.value, recipient_id=recipient.user_id, recipient_role=recipient.role.value,
    )


def test_derive_purpose():
    assert derive_purpose(Role.ADMIN) == "system"
    assert derive_purpose(Role.TEACHER) == "learning"
    assert derive_purpose(Role.PARENT) == "learning"


@pytest.mark.asyncio
class TestSend:

    async def test_teacher_to_parents_creates_one_copy_each(self, service_instance, teacher_user, user_factory):
        service, db = service_instance
        parents = [user_factory(Role.PARENT), user_factory(Role.PARENT)]
        db.get_users_by_ids.return_value = parents

        sent = await service.send(teacher_user, [p.user_id for p in parents] + [parents[0].user_id], Role.PARENT, " Trip ", " Friday ")

        assert sent == 2
        notifications = db.add_notifications.call_args[0][0]
        assert [n.recipient_id for n in notifications] == [p.user_id for p in parents]
        assert all(n.purpose == "learning" and n.type == "general" and not n.is_read for n in notifications)
        assert notifications[0].title == "Trip"

    async def test_admin_notifications_are_system(self, service_instance, admin_user, teacher_user):
        service, db = service_instance
        db.get_users_by_ids.return_value = [teacher_user]

        await service.send(admin_user, [teacher_user.user_id], Role.TEACHER, "Maintenance", "Tonight")

        notification, = db.add_notifications.call_args[0][0]
        assert notification.purpose == "system"
        assert notification.type == "system"

    async def test_recipient_with_wrong_role(self, service_instance, teacher_user, parent_user, other_teacher_user):
        service, db = service_instance
        db.get_users_by_ids.return_value = [parent_user, other_teacher_user]

        with pytest.raises(InvalidRequestError, match=str(other_teacher_user.user_id)):
            await service.send(teacher_user, [parent_user.user_id, other_teacher_user.user_id], Role.PARENT, "T", "M")
        db.add_notifications.assert_not_called()

    async def test_matrix_is_enforced(self, service_instance, parent_user, teacher_user):
        service, db = service_instance
        with pytest.raises(AuthorizationError):
            await service.send(parent_user, [teacher_user.user_id], Role.TEACHER, "T", "M")
        db.get_users_by_ids.assert_not_called()

    async def test_students_are_not_recipients(self, service_instance, admin_user, student_user):
        service, _ = service_instance
        with pytest.raises(InvalidRequestError):
            await service.send(admin_user, [student_user.user_id], Role.STUDENT, "T", "M")

    async def test_empty_recipients_and_blank_text(self, service_instance, teacher_user, parent_user):
        service, _ = service_instance
        with pytest.raises(InvalidRequestError):
            await service.send(teacher_user, [], Role.PARENT, "T", "M")
        with pytest.raises(InvalidRequestError):
            await service.send(teacher_user, [parent_user.user_id], Role.PARENT, "  ", "M")

    async def test_unknown_type(self, service_instance, teacher_user, parent_user):
        service, _ = service_instance
        with pytest.raises(InvalidRequestError, match="type"):
            await service.send(teacher_user, [parent_user.user_id], Role.PARENT, "T", "M", type="gossip")


@pytest.mark.asyncio
class TestInbox:

    async def test_received_embeds_sender(self, service_instance, teacher_user, parent_user):
        service, db = service_instance
        db.list_received_notifications.return_value = [_notification(teacher_user, parent_user)]
        db.get_users_by_ids.return_value = [teacher_user]

        rows = await service.list_received(parent_user)

        assert rows[0]["sender"] == {"user_id": teacher_user.user_id, "name": teacher_user.name, "role": "teacher"}

    async def test_sent_with_deleted_recipient(self, service_instance, teacher_user, parent_user):
        service, db = service_instance
        db.list_sent_notifications.return_value = [_notification(teacher_user, parent_user)]
        db.get_users_by_ids.return_value = []

        rows = await service.list_sent(teacher_user)

        assert rows[0]["recipient"] is None

    async def test_only_recipient_marks_read(self, service_instance, teacher_user, parent_user, user_factory):
        service, db = service_instance
        db.get_notification.return_value = _notification(teacher_user, parent_user)

        with pytest.raises(AuthorizationError):
            await service.mark_read(user_factory(Role.PARENT), uuid.uuid4())
        db.mark_notification_read.assert_not_called()

        await service.mark_read(parent_user, uuid.uuid4())
        db.mark_notification_read.assert_awaited_once()

    async def test_mark_read_missing(self, service_instance, parent_user):
        service, db = service_instance
        db.get_notification.return_value = None
        with pytest.raises(NotFoundError):
            await service.mark_read(parent_user, uuid.uuid4())

    async def test_recipients_follow_matrix(self, service_instance, teacher_user, parent_user):
        service, db = service_instance
        db.search_users.return_value = [parent_user]

        assert await service.list_recipients(teacher_user, Role.PARENT) == [parent_user]
        with pytest.raises(AuthorizationError):
            await service.list_recipients(teacher_user, Role.TEACHER)
