import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

import asyncpg

from ..models.db_models import (
    User, UserCredentials, GuardianAssignment, Lesson, Quiz, QuizAttempt, Progress,
    LearningSession, TelemetryEvent, Conversation, Message, Notification, MicroBreak,
)

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("schema.sql")

USER_COLUMNS = """
    user_id, name, email, role, is_active, avatar, created_by, updated_by,
    last_login_at, created_at, updated_at
"""

# Dinamik UPDATE sorgularında izin verilen kolonlar
USER_UPDATABLE = {"name", "email", "role", "is_active", "avatar"}
LESSON_UPDATABLE = {"title", "description", "goal", "category", "level", "video_url", "video_id", "thumbnail_url", "status"}
QUIZ_UPDATABLE = {"title", "lesson_id", "is_active", "language", "settings", "questions"}
MICRO_BREAK_UPDATABLE = {"title", "youtube_url", "booster_text", "is_active"}


async def init_connection(connection: asyncpg.Connection):
    """Havuzdaki her bağlantı için JSON/JSONB kolonlarını dict/list olarak çözer."""
    for type_name in ("json", "jsonb"):
        await connection.set_type_codec(
            type_name, encoder=json.dumps, decoder=json.loads, schema="pg_catalog"
        )


async def apply_schema(pool: asyncpg.Pool):
    """schema.sql dosyasını çalıştırır. Tüm ifadeler IF NOT EXISTS ile yazıldığı için tekrar çalıştırılabilir."""
    ddl = SCHEMA_PATH.read_text(encoding="utf-8")
    async with pool.acquire() as connection:
        await connection.execute(ddl)


def _build_set_clause(fields: Dict[str, Any], allowed: set, start_index: int) -> Tuple[str, List[Any]]:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Columns not updatable: {sorted(unknown)}")
    parts, values = [], []
    for offset, (column, value) in enumerate(fields.items()):
        parts.append(f"{column} = ${start_index + offset}")
        values.append(value)
    return ", ".join(parts), values


class AsyncPostgresClient:
    """
    Tüm veritabanı operasyonlarını yöneten PostgreSQL istemcisi.
    Her metod havuzdan kısa ömürlü bir bağlantı alır; çok satırlı yazmalar tek transaction içinde yapılır.
    """
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    # ===== Users =====

    async def add_user(self, user: UserCredentials) -> User:
        """Yeni kullanıcıyı ekler. E-posta çakışmasında UniqueViolationError yükselir."""
        query = f"""
            INSERT INTO users (user_id, name, email, password_hash, role, is_active, avatar, created_by, updated_by)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            RETURNING {USER_COLUMNS};
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, user.user_id, user.name, user.email, user.password_hash, user.role.value,
                user.is_active, user.avatar, user.created_by, user.updated_by
            )
            return User(**record)

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        query = f"SELECT {USER_COLUMNS} FROM users WHERE user_id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return User(**record) if record else None

    async def get_users_by_ids(self, user_ids: Iterable[UUID]) -> List[User]:
        """Verilen ID listesine göre kullanıcıları döndürür."""
        ids = list(set(user_ids))
        if not ids:
            return []
        query = f"SELECT {USER_COLUMNS} FROM users WHERE user_id = ANY($1::uuid[]);"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, ids)
            return [User(**record) for record in records]

    async def get_credentials_by_email(self, email: str) -> Optional[UserCredentials]:
        """Giriş akışı için şifre hash'i dahil kullanıcı kaydını getirir."""
        query = f"SELECT {USER_COLUMNS}, password_hash FROM users WHERE email = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, email)
            return UserCredentials(**record) if record else None

    async def email_exists(self, email: str, exclude_user_id: Optional[UUID] = None) -> bool:
        query = "SELECT EXISTS (SELECT 1 FROM users WHERE email = $1 AND ($2::uuid IS NULL OR user_id <> $2));"
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, email, exclude_user_id)

    async def list_users(self, role: Optional[str], q: Optional[str], offset: int, limit: int) -> Tuple[List[User], int]:
        """Rol ve serbest metin filtresiyle sayfalı kullanıcı listesi ve toplam sayıyı döndürür."""
        where = """
            WHERE ($1::text IS NULL OR role = $1)
              AND ($2::text IS NULL OR name ILIKE '%' || $2 || '%' OR email ILIKE '%' || $2 || '%')
        """
        list_query = f"SELECT {USER_COLUMNS} FROM users {where} ORDER BY created_at DESC OFFSET $3 LIMIT $4;"
        count_query = f"SELECT count(*) FROM users {where};"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(list_query, role, q, offset, limit)
            total = await connection.fetchval(count_query, role, q)
            return [User(**record) for record in records], total

    async def search_users(self, role: Optional[str], q: Optional[str], limit: int) -> List[User]:
        """Kişi seçiciler için isme göre sıralı kısa kullanıcı listesi."""
        query = f"""
            SELECT {USER_COLUMNS} FROM users
            WHERE ($1::text IS NULL OR role = $1)
              AND ($2::text IS NULL OR name ILIKE '%' || $2 || '%' OR email ILIKE '%' || $2 || '%')
            ORDER BY name ASC LIMIT $3;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, role, q, limit)
            return [User(**record) for record in records]

    async def update_user(self, user_id: UUID, fields: Dict[str, Any], updated_by: UUID) -> Optional[User]:
        """İzin verilen alanları günceller ve updated_by/updated_at damgalarını basar."""
        set_clause, values = _build_set_clause(fields, USER_UPDATABLE, start_index=3)
        query = f"""
            UPDATE users SET {set_clause}, updated_by = $2, updated_at = now()
            WHERE user_id = $1
            RETURNING {USER_COLUMNS};
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id, updated_by, *values)
            return User(**record) if record else None

    async def update_password_hash(self, user_id: UUID, password_hash: str, updated_by: UUID) -> bool:
        query = """
            UPDATE users SET password_hash = $2, updated_by = $3, updated_at = now()
            WHERE user_id = $1;
        """
        async with self._pool.acquire() as connection:
            result = await connection.execute(query, user_id, password_hash, updated_by)
            return result.endswith(" 1")

    async def touch_last_login(self, user_id: UUID):
        async with self._pool.acquire() as connection:
            await connection.execute("UPDATE users SET last_login_at = now() WHERE user_id = $1;", user_id)

    async def get_system_admin(self) -> Optional[User]:
        """Sistem bildirimlerinin göndereni olarak kullanılacak en eski aktif admini döndürür."""
        query = f"""
            SELECT {USER_COLUMNS} FROM users
            WHERE role = 'admin' AND is_active = TRUE
            ORDER BY created_at ASC LIMIT 1;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query)
            return User(**record) if record else None

    async def admin_exists(self) -> bool:
        async with self._pool.acquire() as connection:
            return await connection.fetchval("SELECT EXISTS (SELECT 1 FROM users WHERE role = 'admin');")

    # ===== Guardian Assignments =====

    async def get_assignments_for_students(self, student_ids: List[UUID]) -> List[GuardianAssignment]:
        """Verilen öğrencilerden zaten bir veliye bağlı olanların kayıtlarını döndürür."""
        if not student_ids:
            return []
        query = "SELECT * FROM guardian_assignments WHERE student_id = ANY($1::uuid[]);"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, student_ids)
            return [GuardianAssignment(**record) for record in records]

    async def add_assignments(self, assignments: List[GuardianAssignment]) -> List[GuardianAssignment]:
        """
        Atamaları tek transaction içinde ekler. Benzersizlik ihlalinde hiçbir satır yazılmaz
        ve UniqueViolationError çağırana iletilir.
        """
        if not assignments:
            return []
        query = """
            INSERT INTO guardian_assignments (assignment_id, parent_id, student_id, assigned_by, note)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *;
        """
        created = []
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                for a in assignments:
                    record = await connection.fetchrow(
                        query, a.assignment_id, a.parent_id, a.student_id, a.assigned_by, a.note
                    )
                    created.append(GuardianAssignment(**record))
        return created

    async def get_assignment(self, assignment_id: UUID) -> Optional[GuardianAssignment]:
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                "SELECT * FROM guardian_assignments WHERE assignment_id = $1;", assignment_id
            )
            return GuardianAssignment(**record) if record else None

    async def delete_assignment(self, assignment_id: UUID) -> bool:
        """Atamayı kalıcı olarak siler. Öğrencinin oturum/ilerleme verisine dokunmaz."""
        async with self._pool.acquire() as connection:
            result = await connection.execute(
                "DELETE FROM guardian_assignments WHERE assignment_id = $1;", assignment_id
            )
            return result.endswith(" 1")

    async def list_assignments(self, parent_id: Optional[UUID] = None, student_id: Optional[UUID] = None) -> List[GuardianAssignment]:
        query = """
            SELECT * FROM guardian_assignments
            WHERE ($1::uuid IS NULL OR parent_id = $1)
              AND ($2::uuid IS NULL OR student_id = $2)
            ORDER BY created_at DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, parent_id, student_id)
            return [GuardianAssignment(**record) for record in records]

    async def assignment_exists(self, parent_id: UUID, student_id: UUID) -> bool:
        query = "SELECT EXISTS (SELECT 1 FROM guardian_assignments WHERE parent_id = $1 AND student_id = $2);"
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, parent_id, student_id)

    async def get_guardian_assignment_of(self, student_id: UUID) -> Optional[GuardianAssignment]:
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                "SELECT * FROM guardian_assignments WHERE student_id = $1;", student_id
            )
            return GuardianAssignment(**record) if record else None

    # ===== Lessons =====

    async def add_lesson(self, lesson: Lesson) -> Lesson:
        query = """
            INSERT INTO lessons (lesson_id, title, description, goal, category, level, video_url,
                                 video_id, thumbnail_url, status, created_by)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, lesson.lesson_id, lesson.title, lesson.description, lesson.goal, lesson.category,
                lesson.level, lesson.video_url, lesson.video_id, lesson.thumbnail_url, lesson.status,
                lesson.created_by
            )
            return Lesson(**record)

    async def get_lesson(self, lesson_id: UUID) -> Optional[Lesson]:
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow("SELECT * FROM lessons WHERE lesson_id = $1;", lesson_id)
            return Lesson(**record) if record else None

    async def list_lessons(self, status: Optional[str], offset: int, limit: int) -> Tuple[List[Lesson], int]:
        """Duruma göre filtrelenmiş, en yeni önce sıralı sayfalı ders listesi."""
        where = "WHERE ($1::text IS NULL OR status = $1)"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(
                f"SELECT * FROM lessons {where} ORDER BY created_at DESC OFFSET $2 LIMIT $3;", status, offset, limit
            )
            total = await connection.fetchval(f"SELECT count(*) FROM lessons {where};", status)
            return [Lesson(**record) for record in records], total

    async def update_lesson(self, lesson_id: UUID, fields: Dict[str, Any]) -> Optional[Lesson]:
        set_clause, values = _build_set_clause(fields, LESSON_UPDATABLE, start_index=2)
        query = f"UPDATE lessons SET {set_clause}, updated_at = now() WHERE lesson_id = $1 RETURNING *;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, lesson_id, *values)
            return Lesson(**record) if record else None

    async def delete_lesson(self, lesson_id: UUID) -> bool:
        async with self._pool.acquire() as connection:
            result = await connection.execute("DELETE FROM lessons WHERE lesson_id = $1;", lesson_id)
            return result.endswith(" 1")

    # ===== Quizzes =====

    async def add_quiz(self, quiz: Quiz) -> Quiz:
        query = """
            INSERT INTO quizzes (quiz_id, title, lesson_id, is_active, language, settings, questions, created_by)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, quiz.quiz_id, quiz.title, quiz.lesson_id, quiz.is_active, quiz.language,
                quiz.settings.model_dump(mode="json"),
                [question.model_dump(mode="json") for question in quiz.questions],
                quiz.created_by
            )
            return Quiz(**record)

    async def get_quiz(self, quiz_id: UUID) -> Optional[Quiz]:
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow("SELECT * FROM quizzes WHERE quiz_id = $1;", quiz_id)
            return Quiz(**record) if record else None

    async def get_quizzes_by_ids(self, quiz_ids: Iterable[UUID]) -> List[Quiz]:
        ids = list(set(quiz_ids))
        if not ids:
            return []
        async with self._pool.acquire() as connection:
            records = await connection.fetch("SELECT * FROM quizzes WHERE quiz_id = ANY($1::uuid[]);", ids)
            return [Quiz(**record) for record in records]

    async def get_active_quiz_by_lesson(self, lesson_id: str) -> Optional[Quiz]:
        query = """
            SELECT * FROM quizzes WHERE lesson_id = $1 AND is_active = TRUE
            ORDER BY updated_at DESC LIMIT 1;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, lesson_id)
            return Quiz(**record) if record else None

    async def list_quizzes(self, lesson_id: Optional[str] = None) -> List[Quiz]:
        query = "SELECT * FROM quizzes WHERE ($1::text IS NULL OR lesson_id = $1) ORDER BY updated_at DESC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, lesson_id)
            return [Quiz(**record) for record in records]

    async def update_quiz(self, quiz_id: UUID, fields: Dict[str, Any]) -> Optional[Quiz]:
        """Quiz alanlarını günceller. settings/questions JSON uyumlu dict/list olarak gelmelidir."""
        set_clause, values = _build_set_clause(fields, QUIZ_UPDATABLE, start_index=2)
        query = f"UPDATE quizzes SET {set_clause}, updated_at = now() WHERE quiz_id = $1 RETURNING *;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, quiz_id, *values)
            return Quiz(**record) if record else None

    async def delete_quiz(self, quiz_id: UUID) -> bool:
        """Quiz'i siler; denemeler FK üzerinden (ON DELETE CASCADE) birlikte silinir."""
        async with self._pool.acquire() as connection:
            result = await connection.execute("DELETE FROM quizzes WHERE quiz_id = $1;", quiz_id)
            return result.endswith(" 1")

    # ===== Quiz Attempts =====

    async def count_completed_attempts(self, user_id: UUID, quiz_id: UUID) -> int:
        query = "SELECT count(*) FROM quiz_attempts WHERE user_id = $1 AND quiz_id = $2 AND status = 'completed';"
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, user_id, quiz_id)

    async def add_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        query = """
            INSERT INTO quiz_attempts (attempt_id, user_id, quiz_id, lesson_id, started_at, completed_at,
                                       answers, correct, total, score_pct, status)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, attempt.attempt_id, attempt.user_id, attempt.quiz_id, attempt.lesson_id,
                attempt.started_at, attempt.completed_at,
                [answer.model_dump(mode="json") for answer in attempt.answers],
                attempt.correct, attempt.total, attempt.score_pct, attempt.status
            )
            return QuizAttempt(**record)

    async def list_attempts(self, quiz_id: UUID, user_id: Optional[UUID] = None) -> List[QuizAttempt]:
        query = """
            SELECT * FROM quiz_attempts
            WHERE quiz_id = $1 AND ($2::uuid IS NULL OR user_id = $2)
            ORDER BY created_at DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, quiz_id, user_id)
            return [QuizAttempt(**record) for record in records]

    async def summarize_attempts(self, quiz_id: UUID, user_id: Optional[UUID] = None) -> List[Dict[str, Any]]:
        """Öğrenci başına deneme sayısı, en iyi skor ve son deneme zamanı."""
        query = """
            SELECT user_id, count(*) AS attempts, max(score_pct) AS best_score, max(created_at) AS last_at
            FROM quiz_attempts
            WHERE quiz_id = $1 AND ($2::uuid IS NULL OR user_id = $2)
            GROUP BY user_id
            ORDER BY best_score DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, quiz_id, user_id)
            return [dict(record) for record in records]

    async def get_attempts_for_user(self, user_id: UUID, start: Optional[datetime] = None,
                                    end: Optional[datetime] = None, status: Optional[str] = None) -> List[QuizAttempt]:
        query = """
            SELECT * FROM quiz_attempts
            WHERE user_id = $1
              AND ($2::timestamptz IS NULL OR created_at >= $2)
              AND ($3::timestamptz IS NULL OR created_at <= $3)
              AND ($4::text IS NULL OR status = $4)
            ORDER BY COALESCE(completed_at, created_at) DESC, created_at DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, user_id, start, end, status)
            return [QuizAttempt(**record) for record in records]

    # ===== Progress =====

    async def get_progress(self, user_id: UUID, lesson_id: str) -> Optional[Progress]:
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                "SELECT * FROM progress WHERE user_id = $1 AND lesson_id = $2;", user_id, lesson_id
            )
            return Progress(**record) if record else None

    async def list_progress(self, user_id: UUID) -> List[Progress]:
        async with self._pool.acquire() as connection:
            records = await connection.fetch(
                "SELECT * FROM progress WHERE user_id = $1 ORDER BY updated_at DESC;", user_id
            )
            return [Progress(**record) for record in records]

    async def insert_progress_if_absent(self, progress: Progress) -> Optional[Progress]:
        """İlk ping için satırı oluşturur. Eşzamanlı bir ekleme kazandıysa None döner."""
        query = """
            INSERT INTO progress (user_id, lesson_id, position_sec, duration_sec, percent, completed, last_ping_at)
            VALUES ($1, $2, $3, $4, $5, $6, now())
            ON CONFLICT (user_id, lesson_id) DO NOTHING
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, progress.user_id, progress.lesson_id, progress.position_sec,
                progress.duration_sec, progress.percent, progress.completed
            )
            return Progress(**record) if record else None

    async def compare_and_set_progress(self, expected: Progress, merged: Progress) -> Optional[Progress]:
        """
        Satırı yalnızca okunduğu andaki birleştirilmiş alanlar hâlâ aynıysa günceller.
        Arada başka bir ping yazdıysa hiçbir satır değişmez ve None döner.
        """
        query = """
            UPDATE progress
            SET position_sec = $7, duration_sec = $8, percent = $9, completed = $10,
                last_ping_at = now(), updated_at = now()
            WHERE user_id = $1 AND lesson_id = $2
              AND position_sec = $3 AND duration_sec = $4 AND percent = $5 AND completed = $6
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, expected.user_id, expected.lesson_id,
                expected.position_sec, expected.duration_sec, expected.percent, expected.completed,
                merged.position_sec, merged.duration_sec, merged.percent, merged.completed
            )
            return Progress(**record) if record else None

    # ===== Learning Sessions & Telemetry =====

    async def add_session(self, session: LearningSession) -> LearningSession:
        query = """
            INSERT INTO learning_sessions (session_id, user_id, lesson_id, device_info, started_at)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, session.session_id, session.user_id, session.lesson_id, session.device_info, session.started_at
            )
            return LearningSession(**record)

    async def get_session(self, session_id: UUID) -> Optional[LearningSession]:
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow("SELECT * FROM learning_sessions WHERE session_id = $1;", session_id)
            return LearningSession(**record) if record else None

    async def end_session(self, session_id: UUID, ended_at: datetime) -> Optional[LearningSession]:
        """Oturumu kapatır. Zaten kapalıysa ilk bitiş zamanı korunur."""
        query = """
            UPDATE learning_sessions SET ended_at = COALESCE(ended_at, $2)
            WHERE session_id = $1
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, session_id, ended_at)
            return LearningSession(**record) if record else None

    async def list_sessions_for_user(self, user_id: UUID) -> List[LearningSession]:
        async with self._pool.acquire() as connection:
            records = await connection.fetch(
                "SELECT * FROM learning_sessions WHERE user_id = $1 ORDER BY started_at DESC;", user_id
            )
            return [LearningSession(**record) for record in records]

    async def add_events(self, events: List[TelemetryEvent]) -> int:
        """Olayları tek transaction içinde ekler: ya hepsi yazılır ya hiçbiri."""
        if not events:
            return 0
        query = """
            INSERT INTO telemetry_events (event_id, session_id, ts, type, attention_score, attention_signals,
                                          emotion_label, emotion_scores, latency_ms)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9);
        """
        event_data = [(
            e.event_id, e.session_id, e.ts, e.type, e.attention_score, e.attention_signals,
            e.emotion_label, e.emotion_scores, e.latency_ms
        ) for e in events]
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                await connection.executemany(query, event_data)
        return len(event_data)

    async def get_events_for_session(self, session_id: UUID) -> List[TelemetryEvent]:
        async with self._pool.acquire() as connection:
            records = await connection.fetch(
                "SELECT * FROM telemetry_events WHERE session_id = $1 ORDER BY ts ASC;", session_id
            )
            return [TelemetryEvent(**record) for record in records]

    async def get_events_for_user_range(self, user_id: UUID, start: datetime, end: datetime) -> List[TelemetryEvent]:
        """
        [start, end] aralığıyla örtüşen oturumların o aralıktaki olaylarını getirir.
        Açık oturumlar (ended_at NULL) her zaman örtüşüyor kabul edilir.
        """
        query = """
            SELECT e.* FROM telemetry_events e
            JOIN learning_sessions s ON s.session_id = e.session_id
            WHERE s.user_id = $1
              AND s.started_at <= $3
              AND (s.ended_at >= $2 OR s.ended_at IS NULL)
              AND e.ts >= $2 AND e.ts <= $3
            ORDER BY e.ts ASC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, user_id, start, end)
            return [TelemetryEvent(**record) for record in records]

    async def close_stale_sessions(self, cutoff: datetime) -> List[UUID]:
        """
        cutoff'tan önce başlamış ve o zamandan beri olay almamış açık oturumları kapatır.
        Bitiş zamanı son olayın zamanı, hiç olay yoksa başlangıç zamanıdır.
        """
        query = """
            UPDATE learning_sessions s
            SET ended_at = COALESCE(
                (SELECT max(e.ts) FROM telemetry_events e WHERE e.session_id = s.session_id),
                s.started_at
            )
            WHERE s.ended_at IS NULL
              AND s.started_at < $1
              AND NOT EXISTS (
                  SELECT 1 FROM telemetry_events e WHERE e.session_id = s.session_id AND e.ts >= $1
              )
            RETURNING s.session_id;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, cutoff)
            return [record["session_id"] for record in records]

    async def get_active_students_overview(self, since: datetime) -> List[Dict[str, Any]]:
        """since'ten beri oturum açmış öğrencilerin ilerleme özetini döndürür."""
        query = """
            WITH active AS (
                SELECT user_id, max(started_at) AS last_active
                FROM learning_sessions
                WHERE started_at >= $1
                GROUP BY user_id
            )
            SELECT u.user_id, u.name, u.email, a.last_active,
                   COALESCE(avg(p.percent), 0) AS avg_percent,
                   count(p.lesson_id) FILTER (WHERE p.completed) AS completed_modules,
                   count(p.lesson_id) AS total_modules
            FROM active a
            JOIN users u ON u.user_id = a.user_id AND u.role = 'student'
            LEFT JOIN progress p ON p.user_id = a.user_id
            GROUP BY u.user_id, u.name, u.email, a.last_active
            ORDER BY a.last_active DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, since)
            return [dict(record) for record in records]

    # ===== Conversations & Messages =====

    async def get_or_create_conversation(self, conversation: Conversation) -> Tuple[Conversation, bool]:
        """
        (öğretmen, veli, çocuk) anahtarı için konuşmayı oluşturur ya da mevcut olanı döndürür.
        İkinci değer yeni bir kayıt oluşturulup oluşturulmadığını belirtir.
        """
        insert_query = """
            INSERT INTO conversations (conversation_id, teacher_id, parent_id, child_id)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT DO NOTHING
            RETURNING *;
        """
        select_query = """
            SELECT * FROM conversations
            WHERE teacher_id = $1 AND parent_id = $2 AND child_id IS NOT DISTINCT FROM $3;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                insert_query, conversation.conversation_id, conversation.teacher_id,
                conversation.parent_id, conversation.child_id
            )
            if record:
                return Conversation(**record), True
            record = await connection.fetchrow(
                select_query, conversation.teacher_id, conversation.parent_id, conversation.child_id
            )
            return Conversation(**record), False

    async def get_conversation(self, conversation_id: UUID) -> Optional[Conversation]:
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                "SELECT * FROM conversations WHERE conversation_id = $1;", conversation_id
            )
            return Conversation(**record) if record else None

    async def list_conversations_for_user(self, user_id: UUID) -> List[Conversation]:
        query = """
            SELECT * FROM conversations WHERE teacher_id = $1 OR parent_id = $1
            ORDER BY last_message_at DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, user_id)
            return [Conversation(**record) for record in records]

    async def count_unread_by_conversation(self, user_id: UUID) -> Dict[UUID, int]:
        """Kullanıcının göndermediği ve okumadığı mesaj sayısını konuşma bazında döndürür."""
        query = """
            SELECT m.conversation_id, count(*) AS unread
            FROM messages m
            JOIN conversations c ON c.conversation_id = m.conversation_id
            WHERE (c.teacher_id = $1 OR c.parent_id = $1)
              AND m.sender_id <> $1
              AND NOT ($1 = ANY(m.read_by))
            GROUP BY m.conversation_id;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, user_id)
            return {record["conversation_id"]: record["unread"] for record in records}

    async def count_unread_messages(self, user_id: UUID) -> int:
        query = """
            SELECT count(*) FROM messages m
            JOIN conversations c ON c.conversation_id = m.conversation_id
            WHERE (c.teacher_id = $1 OR c.parent_id = $1)
              AND m.sender_id <> $1
              AND NOT ($1 = ANY(m.read_by));
        """
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, user_id)

    async def add_message(self, message: Message, preview: str) -> Message:
        """Mesajı ekler ve konuşmanın son mesaj bilgisini aynı transaction içinde günceller."""
        insert_query = """
            INSERT INTO messages (message_id, conversation_id, sender_id, sender_role, text, read_by)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *;
        """
        update_query = """
            UPDATE conversations SET last_message_at = $2, last_message_preview = $3
            WHERE conversation_id = $1;
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                record = await connection.fetchrow(
                    insert_query, message.message_id, message.conversation_id, message.sender_id,
                    message.sender_role, message.text, message.read_by
                )
                await connection.execute(update_query, message.conversation_id, record["created_at"], preview)
            return Message(**record)

    async def list_messages(self, conversation_id: UUID, offset: int, limit: int) -> List[Message]:
        """En yeni önce sayfalar; sayfa içinde eskiden yeniye sıralı döndürür."""
        query = """
            SELECT * FROM (
                SELECT * FROM messages WHERE conversation_id = $1
                ORDER BY created_at DESC OFFSET $2 LIMIT $3
            ) page ORDER BY created_at ASC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, conversation_id, offset, limit)
            return [Message(**record) for record in records]

    async def mark_conversation_read(self, conversation_id: UUID, user_id: UUID) -> int:
        query = """
            UPDATE messages SET read_by = array_append(read_by, $2)
            WHERE conversation_id = $1 AND NOT ($2 = ANY(read_by));
        """
        async with self._pool.acquire() as connection:
            result = await connection.execute(query, conversation_id, user_id)
            return int(result.split()[-1])

    # ===== Notifications =====

    async def add_notifications(self, notifications: List[Notification]) -> int:
        """Her alıcı için bağımsız bir kayıt; hepsi tek transaction içinde yazılır."""
        if not notifications:
            return 0
        query = """
            INSERT INTO notifications (notification_id, title, message, type, purpose, sender_id, sender_role,
                                       recipient_id, recipient_role, is_read)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10);
        """
        data = [(
            n.notification_id, n.title, n.message, n.type, n.purpose, n.sender_id, n.sender_role,
            n.recipient_id, n.recipient_role, n.is_read
        ) for n in notifications]
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                await connection.executemany(query, data)
        return len(data)

    async def list_received_notifications(self, user_id: UUID) -> List[Notification]:
        async with self._pool.acquire() as connection:
            records = await connection.fetch(
                "SELECT * FROM notifications WHERE recipient_id = $1 ORDER BY created_at DESC;", user_id
            )
            return [Notification(**record) for record in records]

    async def list_sent_notifications(self, user_id: UUID) -> List[Notification]:
        async with self._pool.acquire() as connection:
            records = await connection.fetch(
                "SELECT * FROM notifications WHERE sender_id = $1 ORDER BY created_at DESC;", user_id
            )
            return [Notification(**record) for record in records]

    async def get_notification(self, notification_id: UUID) -> Optional[Notification]:
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                "SELECT * FROM notifications WHERE notification_id = $1;", notification_id
            )
            return Notification(**record) if record else None

    async def mark_notification_read(self, notification_id: UUID):
        query = """
            UPDATE notifications SET is_read = TRUE, read_at = now()
            WHERE notification_id = $1 AND is_read = FALSE;
        """
        async with self._pool.acquire() as connection:
            await connection.execute(query, notification_id)

    async def mark_all_notifications_read(self, user_id: UUID) -> int:
        query = """
            UPDATE notifications SET is_read = TRUE, read_at = now()
            WHERE recipient_id = $1 AND is_read = FALSE;
        """
        async with self._pool.acquire() as connection:
            result = await connection.execute(query, user_id)
            return int(result.split()[-1])

    # ===== Micro Breaks =====

    async def add_micro_break(self, item: MicroBreak) -> MicroBreak:
        query = """
            INSERT INTO micro_breaks (micro_break_id, title, youtube_url, booster_text, created_by, is_active)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, item.micro_break_id, item.title, item.youtube_url, item.booster_text,
                item.created_by, item.is_active
            )
            return MicroBreak(**record)

    async def list_micro_breaks(self, active_only: bool) -> List[MicroBreak]:
        query = """
            SELECT * FROM micro_breaks WHERE ($1 = FALSE OR is_active = TRUE)
            ORDER BY created_at DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, active_only)
            return [MicroBreak(**record) for record in records]

    async def update_micro_break(self, micro_break_id: UUID, fields: Dict[str, Any]) -> Optional[MicroBreak]:
        set_clause, values = _build_set_clause(fields, MICRO_BREAK_UPDATABLE, start_index=2)
        query = f"UPDATE micro_breaks SET {set_clause} WHERE micro_break_id = $1 RETURNING *;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, micro_break_id, *values)
            return MicroBreak(**record) if record else None

    async def delete_micro_break(self, micro_break_id: UUID) -> bool:
        async with self._pool.acquire() as connection:
            result = await connection.execute("DELETE FROM micro_breaks WHERE micro_break_id = $1;", micro_break_id)
            return result.endswith(" 1")
