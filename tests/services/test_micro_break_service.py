import uuid

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from app.happypath.services.micro_break_service import MicroBreakService
from app.happypath.services.errors import InvalidRequestError, AuthorizationError, NotFoundError

VIDEO_URL = "https://youtu.be/dQw4w9WgXcQ"


@pytest_asyncio.fixture
async def service_instance():
    """Creates a MicroBreakService instance with a mocked db client for each test."""
    mock_db_client = AsyncMock()
    mock_db_client.add_micro_break.side_effect = lambda item: item
    return MicroBreakService(db_client=mock_db_client), mock_db_client


@pytest.mark.asyncio
class TestMicroBreakService:

    async def test_teacher_creates(self, service_instance, teacher_user):
        service, _ = service_instance
        item = await service.create(teacher_user, " Stretch ", VIDEO_URL, " Reach for the sky! ")
        assert item.title == "Stretch"
        assert item.booster_text == "Reach for the sky!"
        assert item.created_by == teacher_user.user_id

    async def test_invalid_video(self, service_instance, admin_user):
        service, db = service_instance
        with pytest.raises(InvalidRequestError):
            await service.create(admin_user, "Stretch", "not a video", "Go")
        db.add_micro_break.assert_not_called()

    async def test_parents_cannot_manage(self, service_instance, parent_user):
        service, _ = service_instance
        with pytest.raises(AuthorizationError):
            await service.create(parent_user, "Stretch", VIDEO_URL, "Go")
        with pytest.raises(AuthorizationError):
            await service.list_all(parent_user)

    async def test_public_list_only_active(self, service_instance):
        service, db = service_instance
        db.list_micro_breaks.return_value = []
        await service.list_public()
        db.list_micro_breaks.assert_awaited_once_with(active_only=True)

    async def test_update_missing(self, service_instance, teacher_user):
        service, db = service_instance
        db.update_micro_break.return_value = None
        with pytest.raises(NotFoundError):
            await service.update(teacher_user, uuid.uuid4(), {"title": "New"})

    async def test_update_without_fields(self, service_instance, teacher_user):
        service, _ = service_instance
        with pytest.raises(InvalidRequestError):
            await service.update(teacher_user, uuid.uuid4(), {"title": None})

    async def test_delete_missing(self, service_instance, admin_user):
        service, db = service_instance
        db.delete_micro_break.return_value = False
        with pytest.raises(NotFoundError):
            await service.delete(admin_user, uuid.uuid4())
