import uuid

import asyncpg
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from app.happypath.models.db_models import Role, GuardianAssignment
from app.happypath.services.guardianship_service import GuardianshipService
from app.happypath.services.errors import InvalidRequestError, NotFoundError, ConflictError


@pytest_asyncio.fixture
async def service_instance():
    """Creates a GuardianshipService instance with a mocked db client for each test."""
    mock_db_client = AsyncMock()
    return GuardianshipService(db_client=mock_db_client), mock_db_client


def _assignment(parent_id, student_id, admin_id) -> GuardianAssignment:
    return GuardianAssignment(assignment_id=uuid.uuid4(), parent_id=parent_id, student_id=student_id, assigned_by=admin_id)


@pytest.mark.asyncio
class TestGuardianshipService:

    async def test_assign_success(self, service_instance, parent_user, admin_user, user_factory):
        service, db = service_instance
        students = [user_factory(Role.STUDENT), user_factory(Role.STUDENT)]
        db.get_user_by_id.return_value = parent_user
        db.get_users_by_ids.return_value = students
        db.get_assignments_for_students.return_value = []
        db.add_assignments.side_effect = lambda rows: rows

        created = await service.assign(parent_user.user_id, [s.user_id for s in students], assigned_by=admin_user.user_id, note="siblings")

        assert [a.student_id for a in created] == [s.user_id for s in students]
        assert all(a.parent_id == parent_user.user_id and a.assigned_by == admin_user.user_id for a in created)
        db.add_assignments.assert_awaited_once()

    async def test_assign_deduplicates_student_ids(self, service_instance, parent_user, student_user, admin_user):
        service, db = service_instance
        db.get_user_by_id.return_value = parent_user
        db.get_users_by_ids.return_value = [student_user]
        db.get_assignments_for_students.return_value = []
        db.add_assignments.side_effect = lambda rows: rows

        created = await service.assign(parent_user.user_id, [student_user.user_id, student_user.user_id], assigned_by=admin_user.user_id)

        assert len(created) == 1

    async def test_assign_rejects_non_parent(self, service_instance, teacher_user, student_user, admin_user):
        service, db = service_instance
        db.get_user_by_id.return_value = teacher_user

        with pytest.raises(InvalidRequestError, match="Invalid parent."):
            await service.assign(teacher_user.user_id, [student_user.user_id], assigned_by=admin_user.user_id)
        db.add_assignments.assert_not_called()

    async def test_assign_rejects_non_students(self, service_instance, parent_user, teacher_user, admin_user):
        service, db = service_instance
        db.get_user_by_id.return_value = parent_user
        db.get_users_by_ids.return_value = [teacher_user]

        with pytest.raises(InvalidRequestError, match=str(teacher_user.user_id)):
            await service.assign(parent_user.user_id, [teacher_user.user_id], assigned_by=admin_user.user_id)

    async def test_assign_conflict_reports_students_and_writes_nothing(self, service_instance, parent_user, admin_user, user_factory):
        """Senaryo: öğrencilerden birinin zaten velisi var; hiçbir bağ oluşturulmaz."""
        service, db = service_instance
        free, taken = user_factory(Role.STUDENT), user_factory(Role.STUDENT)
        db.get_user_by_id.return_value = parent_user
        db.get_users_by_ids.return_value = [free, taken]
        db.get_assignments_for_students.return_value = [_assignment(uuid.uuid4(), taken.user_id, admin_user.user_id)]

        with pytest.raises(ConflictError) as exc_info:
            await service.assign(parent_user.user_id, [free.user_id, taken.user_id], assigned_by=admin_user.user_id)

        assert exc_info.value.conflicts == [str(taken.user_id)]
        assert exc_info.value.status_code == 409
        db.add_assignments.assert_not_called()

    async def test_assign_race_on_unique_index_becomes_conflict(self, service_instance, parent_user, student_user, admin_user):
        service, db = service_instance
        db.get_user_by_id.return_value = parent_user
        db.get_users_by_ids.return_value = [student_user]
        db.get_assignments_for_students.side_effect = [[], [_assignment(uuid.uuid4(), student_user.user_id, admin_user.user_id)]]
        db.add_assignments.side_effect = asyncpg.UniqueViolationError("duplicate key")

        with pytest.raises(ConflictError) as exc_info:
            await service.assign(parent_user.user_id, [student_user.user_id], assigned_by=admin_user.user_id)

        assert exc_info.value.conflicts == [str(student_user.user_id)]

    async def test_unassign_missing_raises_not_found(self, service_instance):
        service, db = service_instance
        db.delete_assignment.return_value = False

        with pytest.raises(NotFoundError):
            await service.unassign(uuid.uuid4())

    async def test_list_children_sorted_by_name(self, service_instance, parent_user, admin_user, user_factory):
        service, db = service_instance
        zoe, adam = user_factory(Role.STUDENT, "Zoe"), user_factory(Role.STUDENT, "Adam")
        db.list_assignments.return_value = [
            _assignment(parent_user.user_id, zoe.user_id, admin_user.user_id),
            _assignment(parent_user.user_id, adam.user_id, admin_user.user_id),
        ]
        db.get_users_by_ids.return_value = [zoe, adam]

        children = await service.list_children_of(parent_user.user_id)

        assert [c.name for c in children] == ["Adam", "Zoe"]

    async def test_get_guardian_id(self, service_instance, parent_user, student_user, admin_user):
        service, db = service_instance
        db.get_guardian_assignment_of.return_value = _assignment(parent_user.user_id, student_user.user_id, admin_user.user_id)
        assert await service.get_guardian_id(student_user.user_id) == parent_user.user_id

        db.get_guardian_assignment_of.return_value = None
        assert await service.get_guardian_id(student_user.user_id) is None

    async def test_list_assignments_embeds_people(self, service_instance, parent_user, student_user, admin_user):
        service, db = service_instance
        db.list_assignments.return_value = [_assignment(parent_user.user_id, student_user.user_id, admin_user.user_id)]
        db.get_users_by_ids.return_value = [parent_user, student_user, admin_user]

        rows = await service.list_assignments(parent_id=parent_user.user_id)

        assert rows[0]["parent"] == parent_user
        assert rows[0]["student"] == student_user
        assert rows[0]["assigned_by"] == admin_user
        db.list_assignments.assert_awaited_once_with(parent_id=parent_user.user_id, student_id=None)
