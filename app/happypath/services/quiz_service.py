import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import ValidationError

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import User, Role, Quiz, QuizAttempt, QuizQuestion, QuizSettings
from ..modules.quiz_scoring import (
    SubmittedAnswer, grade_answers, sanitize_quiz, summarize_learner_quizzes, build_child_history,
)
from ..modules.attention_summary import parse_timezone, resolve_range
from .access_control import AccessControl, Action, Resource, ensure_allowed, ensure_quiz_owner
from .errors import InvalidRequestError, AuthorizationError, NotFoundError, LimitExceededError

logger = logging.getLogger(__name__)


class QuizService:
    """
    Quiz tanımları, sunucu tarafında puanlama ve deneme raporları.
    Cevap anahtarı yalnızca quiz'i oluşturan öğretmene gösterilir.
    """
    def __init__(self, db_client: AsyncPostgresClient, access_control: AccessControl):
        self.db_client = db_client
        self.access_control = access_control

    async def _get_quiz(self, quiz_id: UUID) -> Quiz:
        quiz = await self.db_client.get_quiz(quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found.")
        return quiz

    async def _get_owned_quiz(self, teacher: User, quiz_id: UUID) -> Quiz:
        quiz = await self._get_quiz(quiz_id)
        ensure_quiz_owner(teacher, quiz)
        return quiz

    # ===== Teacher CRUD =====

    async def create_quiz(self, teacher: User, title: str, questions: List[QuizQuestion], lesson_id: Optional[str] = None,
                          is_active: bool = True, language: str = "en", settings: Optional[QuizSettings] = None) -> Quiz:
        ensure_allowed(teacher, Action.WRITE, Resource.QUIZ_DEFINITION)
        try:
            quiz = Quiz(
                quiz_id=uuid4(), title=title, lesson_id=lesson_id, is_active=is_active, language=language,
                settings=settings or QuizSettings(), questions=questions, created_by=teacher.user_id
            )
        except ValidationError as e:
            raise InvalidRequestError(f"Invalid quiz: {e.errors()[0]['msg']}") from e
        _ensure_unique_question_ids(quiz.questions)
        created = await self.db_client.add_quiz(quiz)
        logger.info(f"Quiz '{created.quiz_id}' created by teacher '{teacher.user_id}'.")
        return created

    async def list_quizzes(self, teacher: User, lesson_id: Optional[str] = None) -> List[Dict[str, Any]]:
        ensure_allowed(teacher, Action.READ, Resource.QUIZ_DEFINITION)
        quizzes = await self.db_client.list_quizzes(lesson_id)
        return [
            {
                "quiz_id": q.quiz_id, "title": q.title, "lesson_id": q.lesson_id, "is_active": q.is_active,
                "questions_count": len(q.questions), "created_at": q.created_at, "updated_at": q.updated_at,
            }
            for q in quizzes
        ]

    async def get_full_quiz(self, teacher: User, quiz_id: UUID) -> Quiz:
        return await self._get_owned_quiz(teacher, quiz_id)

    async def update_quiz(self, teacher: User, quiz_id: UUID, fields: Dict[str, Any]) -> Quiz:
        current = await self._get_owned_quiz(teacher, quiz_id)
        fields = {k: v for k, v in fields.items() if v is not None}
        if not fields:
            raise InvalidRequestError("No valid fields to update.")
        try:
            # Birleşik hali doğrula: soru/seçenek kuralları güncellemeden sonra da geçerli olmalı
            merged = Quiz(**{**current.model_dump(), **fields})
        except ValidationError as e:
            raise InvalidRequestError(f"Invalid quiz: {e.errors()[0]['msg']}") from e
        _ensure_unique_question_ids(merged.questions)

        db_fields = {k: getattr(merged, k) for k in fields}
        if "settings" in db_fields:
            db_fields["settings"] = merged.settings.model_dump(mode="json")
        if "questions" in db_fields:
            db_fields["questions"] = [q.model_dump(mode="json") for q in merged.questions]
        updated = await self.db_client.update_quiz(quiz_id, db_fields)
        if updated is None:
            raise NotFoundError("Quiz not found.")
        logger.info(f"Quiz '{quiz_id}' updated by teacher '{teacher.user_id}'.")
        return updated

    async def set_active(self, teacher: User, quiz_id: UUID, is_active: bool) -> Quiz:
        await self._get_owned_quiz(teacher, quiz_id)
        updated = await self.db_client.update_quiz(quiz_id, {"is_active": is_active})
        if updated is None:
            raise NotFoundError("Quiz not found.")
        return updated

    async def delete_quiz(self, teacher: User, quiz_id: UUID):
        """Quiz'i ve ona ait tüm denemeleri siler."""
        await self._get_owned_quiz(teacher, quiz_id)
        await self.db_client.delete_quiz(quiz_id)
        logger.info(f"Quiz '{quiz_id}' and its attempts deleted by teacher '{teacher.user_id}'.")

    # ===== Student =====

    async def get_quiz_for_lesson(self, user: User, lesson_id: str) -> Optional[Dict[str, Any]]:
        """Dersin aktif quiz'ini cevap anahtarı olmadan döndürür. Aktif quiz yoksa None."""
        if user.role not in (Role.STUDENT, Role.PARENT, Role.TEACHER):
            raise AuthorizationError("You are not authorized to view quizzes.")
        quiz = await self.db_client.get_active_quiz_by_lesson(lesson_id)
        return sanitize_quiz(quiz) if quiz else None

    async def submit_attempt(self, student: User, quiz_id: UUID, answers: List[SubmittedAnswer],
                             started_at: Optional[datetime] = None) -> Dict[str, Any]:
        ensure_allowed(student, Action.SEND, Resource.QUIZ_PLAY)
        quiz = await self.db_client.get_quiz(quiz_id)
        if quiz is None or not quiz.is_active:
            raise NotFoundError("Quiz not available.")

        settings = quiz.settings
        prior = await self.db_client.count_completed_attempts(student.user_id, quiz_id)
        if prior >= settings.max_attempts:
            logger.warning(f"Student '{student.user_id}' reached max attempts for quiz '{quiz_id}'.")
            raise LimitExceededError("Max attempts reached.")

        graded, correct, total, score_pct = grade_answers(quiz, answers)
        attempt = await self.db_client.add_attempt(QuizAttempt(
            attempt_id=uuid4(), user_id=student.user_id, quiz_id=quiz_id, lesson_id=quiz.lesson_id,
            started_at=started_at, completed_at=datetime.now(timezone.utc), answers=graded,
            correct=correct, total=total, score_pct=score_pct, status="completed"
        ))
        logger.info(f"Student '{student.user_id}' scored {score_pct}% on quiz '{quiz_id}'.")
        return {
            "attempt_id": attempt.attempt_id,
            "correct": correct,
            "total": total,
            "score_pct": score_pct,
            "passed": score_pct >= settings.passing_score,
            "allow_retry": settings.allow_retry,
            "max_attempts": settings.max_attempts,
            "remaining_attempts": max(0, settings.max_attempts - (prior + 1)),
        }

    # ===== Reports =====

    async def _ensure_attempt_reader(self, requester: User, user_id: Optional[UUID]):
        """Öğretmen herkesi görür; veli userId ile bağlı olduğu bir çocuğu belirtmek zorundadır."""
        if requester.role == Role.TEACHER:
            return
        if requester.role == Role.PARENT:
            await self.access_control.ensure_learner_access(requester, user_id)
            return
        raise AuthorizationError("You are not authorized to view quiz attempts.")

    async def list_attempts(self, requester: User, quiz_id: UUID, user_id: Optional[UUID] = None) -> List[QuizAttempt]:
        await self._get_quiz(quiz_id)
        await self._ensure_attempt_reader(requester, user_id)
        return await self.db_client.list_attempts(quiz_id, user_id)

    async def attempt_summary(self, requester: User, quiz_id: UUID, user_id: Optional[UUID] = None) -> List[Dict[str, Any]]:
        await self._get_quiz(quiz_id)
        await self._ensure_attempt_reader(requester, user_id)
        return await self.db_client.summarize_attempts(quiz_id, user_id)

    async def learner_quiz_summary(self, requester: User, user_id: UUID, from_date: Optional[date] = None,
                                   to_date: Optional[date] = None, tz_name: Optional[str] = None) -> List[Dict[str, Any]]:
        """Günlük raporla aynı aralık kuralları: from/to verilen saat diliminde, varsayılan son 7 gün."""
        await self.access_control.ensure_learner_access(requester, user_id)
        try:
            start, end = resolve_range(from_date, to_date, parse_timezone(tz_name))
        except ValueError as e:
            raise InvalidRequestError(str(e)) from e
        attempts = await self.db_client.get_attempts_for_user(user_id, start=start, end=end)
        if not attempts:
            return []
        quizzes = {q.quiz_id: q for q in await self.db_client.get_quizzes_by_ids(a.quiz_id for a in attempts)}
        return summarize_learner_quizzes(attempts, quizzes)

    async def child_quiz_history(self, parent: User, student_id: UUID) -> List[Dict[str, Any]]:
        if parent.role != Role.PARENT:
            raise AuthorizationError("This operation is only valid for parents.")
        await self.access_control.ensure_learner_access(parent, student_id)
        attempts = await self.db_client.get_attempts_for_user(student_id, status="completed")
        if not attempts:
            return []
        quizzes = {q.quiz_id: q for q in await self.db_client.get_quizzes_by_ids(a.quiz_id for a in attempts)}
        return build_child_history(attempts, quizzes)


def _ensure_unique_question_ids(questions: List[QuizQuestion]):
    ids = [q.question_id for q in questions]
    if len(ids) != len(set(ids)):
        raise InvalidRequestError("Question ids must be unique within a quiz.")
