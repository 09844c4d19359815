"""
Merkezi erişim kontrolü.

Rol x kaynak politikası tek bir tabloda tutulur ve öğrenciye ait veriyi (oturum, olay,
ilerleme, rapor, quiz geçmişi) açan her servis aynı `ensure_learner_access` kontrolünü kullanır.
"""
import logging
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple
from uuid import UUID

from ..models.db_models import User, Role, Lesson, Quiz
from .errors import AuthorizationError, InvalidRequestError

logger = logging.getLogger(__name__)


class Resource(str, Enum):
    USER_SELF = "user_self"
    USER_OTHER = "user_other"
    LESSON_PUBLISHED = "lesson_published"
    LESSON_DRAFT = "lesson_draft"
    GUARDIAN_ASSIGNMENT = "guardian_assignment"
    LEARNER_DATA = "learner_data"
    QUIZ_DEFINITION = "quiz_definition"
    QUIZ_PLAY = "quiz_play"
    NOTIFICATION = "notification"
    CONVERSATION = "conversation"
    MICRO_BREAK = "micro_break"


class Action(str, Enum):
    READ = "read"
    WRITE = "write"
    SEND = "send"


_R, _W, _S = Action.READ, Action.WRITE, Action.SEND

# Koşulsuz izinler. Sahiplik ve veli bağı gibi koşullar aşağıdaki yardımcılarla ayrıca denetlenir:
# LESSON_DRAFT/teacher ve QUIZ_DEFINITION/teacher yazma izni sahiplik, LEARNER_DATA/parent okuma
# izni veli bağı, LEARNER_DATA/student izni ise kendi verisi şartına bağlıdır.
POLICY: Dict[Resource, Dict[Role, FrozenSet[Action]]] = {
    Resource.USER_SELF: {
        Role.STUDENT: frozenset({_R, _W}), Role.PARENT: frozenset({_R}),
        Role.TEACHER: frozenset({_R}), Role.ADMIN: frozenset({_R, _W}),
    },
    Resource.USER_OTHER: {Role.ADMIN: frozenset({_R, _W})},
    Resource.LESSON_PUBLISHED: {
        Role.STUDENT: frozenset({_R}), Role.PARENT: frozenset({_R}),
        Role.TEACHER: frozenset({_R, _W}), Role.ADMIN: frozenset({_R, _W}),
    },
    Resource.LESSON_DRAFT: {Role.TEACHER: frozenset({_R, _W}), Role.ADMIN: frozenset({_R, _W})},
    Resource.GUARDIAN_ASSIGNMENT: {Role.PARENT: frozenset({_R}), Role.ADMIN: frozenset({_R, _W})},
    Resource.LEARNER_DATA: {
        Role.STUDENT: frozenset({_R, _W}), Role.PARENT: frozenset({_R}), Role.TEACHER: frozenset({_R}),
    },
    Resource.QUIZ_DEFINITION: {Role.TEACHER: frozenset({_R, _W})},
    Resource.QUIZ_PLAY: {Role.STUDENT: frozenset({_R, _S})},
    Resource.NOTIFICATION: {
        Role.PARENT: frozenset({_R, _S}), Role.TEACHER: frozenset({_R, _S}), Role.ADMIN: frozenset({_S}),
    },
    Resource.CONVERSATION: {Role.PARENT: frozenset({_R, _S}), Role.TEACHER: frozenset({_R, _S})},
    Resource.MICRO_BREAK: {Role.TEACHER: frozenset({_R, _W}), Role.ADMIN: frozenset({_R, _W})},
}

# Gönderen rolü -> izin verilen alıcı rolleri
NOTIFY_MATRIX: Dict[Role, Tuple[Role, ...]] = {
    Role.ADMIN: (Role.PARENT, Role.TEACHER),
    Role.TEACHER: (Role.PARENT,),
    Role.PARENT: (Role.PARENT,),
}

# Konuşmada karşı tarafın olması gereken rol
CONVERSATION_PEER: Dict[Role, Role] = {
    Role.TEACHER: Role.PARENT,
    Role.PARENT: Role.TEACHER,
}


def is_allowed(role: Role, action: Action, resource: Resource) -> bool:
    return action in POLICY.get(resource, {}).get(role, frozenset())


def ensure_allowed(user: User, action: Action, resource: Resource):
    if not is_allowed(user.role, action, resource):
        logger.warning(f"User '{user.user_id}' ({user.role.value}) denied {action.value} on {resource.value}.")
        raise AuthorizationError("You are not authorized to perform this action.")


def can_read_lesson(user: User, lesson: Lesson) -> bool:
    """Yayınlanmış dersler herkese açık; taslaklar sahibine, öğretmenlere ve admine görünür."""
    if lesson.status == "published":
        return is_allowed(user.role, Action.READ, Resource.LESSON_PUBLISHED)
    return lesson.created_by == user.user_id or is_allowed(user.role, Action.READ, Resource.LESSON_DRAFT)


def can_modify_lesson(user: User, lesson: Lesson) -> bool:
    return lesson.created_by == user.user_id or user.role == Role.ADMIN


def ensure_quiz_owner(user: User, quiz: Quiz):
    ensure_allowed(user, Action.WRITE, Resource.QUIZ_DEFINITION)
    if quiz.created_by != user.user_id:
        logger.warning(f"Teacher '{user.user_id}' is not the owner of quiz '{quiz.quiz_id}'.")
        raise AuthorizationError("You are not the owner of this quiz.")


def allowed_recipient_roles(sender_role: Role) -> Tuple[Role, ...]:
    return NOTIFY_MATRIX.get(sender_role, ())


def ensure_can_notify(sender: User, recipient_role: Role):
    """Rol matrisini istemcinin beyan ettiği değil, doğrulanmış gönderenin gerçek rolüyle uygular."""
    ensure_allowed(sender, Action.SEND, Resource.NOTIFICATION)
    if recipient_role not in allowed_recipient_roles(sender.role):
        logger.warning(f"User '{sender.user_id}' ({sender.role.value}) may not notify role '{recipient_role.value}'.")
        raise AuthorizationError(f"Role '{sender.role.value}' cannot send notifications to '{recipient_role.value}'.")


def conversation_peer_role(user: User) -> Role:
    peer = CONVERSATION_PEER.get(user.role)
    if peer is None:
        raise AuthorizationError("Only teachers and parents can use messaging.")
    return peer


def split_conversation_pair(a: User, b: User) -> Tuple[User, User]:
    """Bir öğretmen ve bir veliden oluşan çifti (öğretmen, veli) sırasıyla döndürür."""
    roles = {a.role, b.role}
    if roles != {Role.TEACHER, Role.PARENT}:
        raise InvalidRequestError("A conversation needs exactly one teacher and one parent.")
    return (a, b) if a.role == Role.TEACHER else (b, a)


class AccessControl:
    """
    Öğrenci verisine erişim kararlarını veren paylaşımlı kontrol.
    Veli bağı sorgusu için Guardianship kaydına ihtiyaç duyar.
    """
    def __init__(self, guardianship):
        self.guardianship = guardianship

    async def can_access_learner(self, requester: User, learner_id: UUID) -> bool:
        if requester.role == Role.TEACHER:
            return True
        if requester.role == Role.PARENT:
            return await self.guardianship.is_linked(requester.user_id, learner_id)
        if requester.role == Role.STUDENT:
            return requester.user_id == learner_id
        return False

    async def ensure_learner_access(self, requester: User, learner_id: Optional[UUID]):
        """Öğretmen her zaman, veli yalnızca bağlı çocuğu için, öğrenci yalnızca kendisi için erişebilir."""
        if learner_id is None or not await self.can_access_learner(requester, learner_id):
            logger.warning(f"User '{requester.user_id}' ({requester.role.value}) denied access to learner '{learner_id}'.")
            raise AuthorizationError("You are not authorized to access this learner's data.")
