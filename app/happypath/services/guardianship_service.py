import logging
from typing import Dict, List, Optional
from uuid import UUID, uuid4

import asyncpg

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import User, Role, GuardianAssignment
from .errors import InvalidRequestError, NotFoundError, ConflictError

logger = logging.getLogger(__name__)


class GuardianshipService:
    """
    Veli -> öğrenci bağlarını yönetir. Bir öğrencinin en fazla bir velisi olabilir;
    bu kural eklemeden önce açıkça kontrol edilir, veritabanındaki UNIQUE kısıtı ise son sözü söyler.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def assign(self, parent_id: UUID, student_ids: List[UUID], assigned_by: UUID, note: Optional[str] = None) -> List[GuardianAssignment]:
        student_ids = list(dict.fromkeys(student_ids))
        if not student_ids:
            raise InvalidRequestError("At least one student id is required.")

        parent = await self.db_client.get_user_by_id(parent_id)
        if parent is None or parent.role != Role.PARENT:
            raise InvalidRequestError("Invalid parent.")

        students = await self.db_client.get_users_by_ids(student_ids)
        valid_ids = {s.user_id for s in students if s.role == Role.STUDENT}
        invalid = [str(sid) for sid in student_ids if sid not in valid_ids]
        if invalid:
            logger.warning(f"Assignment rejected, not students: {invalid}")
            raise InvalidRequestError(f"Some ids are not students: {', '.join(invalid)}")

        existing = await self.db_client.get_assignments_for_students(student_ids)
        if existing:
            conflicts = [str(a.student_id) for a in existing]
            logger.warning(f"Assignment rejected, students already have a guardian: {conflicts}")
            raise ConflictError("Some students are already assigned to a parent.", conflicts=conflicts)

        new_assignments = [
            GuardianAssignment(assignment_id=uuid4(), parent_id=parent_id, student_id=sid, assigned_by=assigned_by, note=note)
            for sid in student_ids
        ]
        try:
            created = await self.db_client.add_assignments(new_assignments)
        except asyncpg.UniqueViolationError as e:
            # Ön kontrol ile ekleme arasında başka bir atama yarışı kazandı; hangi öğrencilerin çakıştığını yeniden oku.
            racing = await self.db_client.get_assignments_for_students(student_ids)
            conflicts = [str(a.student_id) for a in racing]
            logger.warning(f"Concurrent guardian assignment detected for students {conflicts}.")
            raise ConflictError("Some students are already assigned to a parent.", conflicts=conflicts) from e

        logger.info(f"Parent '{parent_id}' linked to {len(created)} student(s) by '{assigned_by}'.")
        return created

    async def unassign(self, assignment_id: UUID):
        """Bağı siler. Öğrencinin oturum, olay ve ilerleme kayıtları öğrenci id'si ile tutulduğu için etkilenmez."""
        deleted = await self.db_client.delete_assignment(assignment_id)
        if not deleted:
            raise NotFoundError("Assignment not found.")
        logger.info(f"Guardian assignment '{assignment_id}' removed.")

    async def list_children_of(self, parent_id: UUID) -> List[User]:
        assignments = await self.db_client.list_assignments(parent_id=parent_id)
        children = await self.db_client.get_users_by_ids([a.student_id for a in assignments])
        return sorted(children, key=lambda u: u.name)

    async def is_linked(self, parent_id: UUID, student_id: UUID) -> bool:
        return await self.db_client.assignment_exists(parent_id, student_id)

    async def get_guardian_id(self, student_id: UUID) -> Optional[UUID]:
        assignment = await self.db_client.get_guardian_assignment_of(student_id)
        return assignment.parent_id if assignment else None

    async def list_assignments(self, parent_id: Optional[UUID] = None, student_id: Optional[UUID] = None) -> List[Dict]:
        """Admin listesi: her atama veli, öğrenci ve atayan kullanıcının kısa bilgisiyle birlikte döner."""
        assignments = await self.db_client.list_assignments(parent_id=parent_id, student_id=student_id)
        user_ids = set()
        for a in assignments:
            user_ids.update((a.parent_id, a.student_id, a.assigned_by))
        users = {u.user_id: u for u in await self.db_client.get_users_by_ids(user_ids)}
        return [
            {
                "assignment": a,
                "parent": users.get(a.parent_id),
                "student": users.get(a.student_id),
                "assigned_by": users.get(a.assigned_by),
            }
            for a in assignments
        ]
