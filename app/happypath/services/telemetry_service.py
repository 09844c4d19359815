import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import User, Role, LearningSession, TelemetryEvent, Notification, EMOTION_LABELS
from ..modules.attention_summary import (
    DailySummary, parse_timezone, resolve_range, build_daily_summaries, session_trend,
)
from .access_control import AccessControl
from .guardianship_service import GuardianshipService
from .errors import InvalidRequestError, AuthorizationError, NotFoundError, ConfigurationError

logger = logging.getLogger(__name__)

MAX_EVENTS_PER_BATCH = 500

ALERT_TEMPLATES = {
    "multiple_episodes": (
        "Attention alert",
        "{name} had several low-attention episodes during a learning session. "
        "A short break or some encouragement may help.",
    ),
    "long_episode": (
        "Attention alert",
        "{name} stayed in low attention for an extended period during a learning session.",
    ),
    "student_break": (
        "Break requested",
        "{name} asked for a break during a learning session.",
    ),
}
DEFAULT_ALERT_REASON = "multiple_episodes"


def normalize_event(session_id: UUID, item: Dict[str, Any], index: int) -> TelemetryEvent:
    """
    Tek bir olay girdisini dikkat ya da duygu olayına çevirir.

    En az biri zorunludur: [0,1] aralığında dikkat skoru ya da kapalı kümeden bir duygu etiketi.
    type verilmemişse içerikten çıkarılır, verilmişse içerikle uyuşmalıdır. Olayın zaman damgası
    oturum penceresine göre doğrulanmaz.
    """
    score = item.get("attention_score")
    label = item.get("emotion_label")
    event_type = item.get("type")

    if score is not None and not 0 <= score <= 1:
        raise InvalidRequestError(f"Event {index}: attention score must be between 0 and 1.")
    if label is not None and label not in EMOTION_LABELS:
        raise InvalidRequestError(f"Event {index}: unknown emotion label '{label}'.")

    if event_type is None:
        if score is not None and label is not None:
            raise InvalidRequestError(f"Event {index}: carries both attention and emotion, 'type' is required.")
        event_type = "attention" if score is not None else "emotion" if label is not None else None
    if event_type is None:
        raise InvalidRequestError(f"Event {index}: an attention score or an emotion label is required.")
    if event_type == "attention" and score is None:
        raise InvalidRequestError(f"Event {index}: attention event without a score.")
    if event_type == "emotion" and label is None:
        raise InvalidRequestError(f"Event {index}: emotion event without a label.")
    if event_type not in ("attention", "emotion"):
        raise InvalidRequestError(f"Event {index}: unknown type '{event_type}'.")

    ts = item.get("ts") or datetime.now(timezone.utc)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)

    is_attention = event_type == "attention"
    return TelemetryEvent(
        event_id=uuid4(), session_id=session_id, ts=ts, type=event_type,
        attention_score=score if is_attention else None,
        attention_signals=item.get("attention_signals") if is_attention else None,
        emotion_label=None if is_attention else label,
        emotion_scores=None if is_attention else item.get("emotion_scores"),
        latency_ms=item.get("latency_ms"),
    )


class TelemetryService:
    """
    Öğrenme oturumu yaşam döngüsü, olay toplama ve okuma anında hesaplanan raporlar.
    """
    def __init__(self, db_client: AsyncPostgresClient, access_control: AccessControl, guardianship: GuardianshipService):
        self.db_client = db_client
        self.access_control = access_control
        self.guardianship = guardianship

    async def _get_session(self, session_id: UUID) -> LearningSession:
        session = await self.db_client.get_session(session_id)
        if session is None:
            raise NotFoundError("Session not found.")
        return session

    async def _get_own_session(self, student: User, session_id: UUID) -> LearningSession:
        session = await self._get_session(session_id)
        if session.user_id != student.user_id:
            logger.warning(f"Student '{student.user_id}' tried to use session '{session_id}' of another user.")
            raise AuthorizationError("This session does not belong to you.")
        return session

    # ===== Session lifecycle =====

    async def start_session(self, student: User, lesson_id: Optional[str] = None,
                            device_info: Optional[Dict[str, Any]] = None) -> LearningSession:
        if student.role != Role.STUDENT:
            raise AuthorizationError("Only students can start learning sessions.")
        session = await self.db_client.add_session(LearningSession(
            session_id=uuid4(), user_id=student.user_id, lesson_id=lesson_id,
            device_info=device_info, started_at=datetime.now(timezone.utc)
        ))
        logger.info(f"Learning session '{session.session_id}' started by student '{student.user_id}'.")
        return session

    async def end_session(self, student: User, session_id: UUID) -> LearningSession:
        """Oturumu kapatır. Zaten kapalı bir oturum için ilk bitiş zamanı korunur."""
        await self._get_own_session(student, session_id)
        session = await self.db_client.end_session(session_id, datetime.now(timezone.utc))
        logger.info(f"Learning session '{session_id}' ended.")
        return session

    async def ingest_events(self, student: User, session_id: UUID, items: List[Dict[str, Any]]) -> int:
        """
        Olayları ekler. Tek bir geçersiz öğe tüm partiyi reddeder; geçerli partiler tek
        transaction içinde yazılır. Kapanmış oturumlara da olay eklenebilir.
        """
        if not items:
            raise InvalidRequestError("At least one event is required.")
        if len(items) > MAX_EVENTS_PER_BATCH:
            raise InvalidRequestError(f"At most {MAX_EVENTS_PER_BATCH} events can be sent at once.")
        await self._get_own_session(student, session_id)

        events = [normalize_event(session_id, item, index) for index, item in enumerate(items)]
        inserted = await self.db_client.add_events(events)
        logger.info(f"{inserted} event(s) ingested for session '{session_id}'.")
        return inserted

    async def list_sessions_for_user(self, requester: User, user_id: UUID) -> List[LearningSession]:
        await self.access_control.ensure_learner_access(requester, user_id)
        return await self.db_client.list_sessions_for_user(user_id)

    # ===== Reports =====

    async def daily_report(self, requester: User, user_id: UUID, from_date: Optional[date] = None,
                           to_date: Optional[date] = None, tz_name: Optional[str] = None) -> List[DailySummary]:
        await self.access_control.ensure_learner_access(requester, user_id)
        try:
            tz = parse_timezone(tz_name)
            start, end = resolve_range(from_date, to_date, tz)
        except ValueError as e:
            raise InvalidRequestError(str(e)) from e
        events = await self.db_client.get_events_for_user_range(user_id, start, end)
        return build_daily_summaries(events, tz)

    async def session_report(self, requester: User, session_id: UUID) -> Dict[str, Any]:
        session = await self._get_session(session_id)
        await self.access_control.ensure_learner_access(requester, session.user_id)
        events = await self.db_client.get_events_for_session(session_id)
        return {"session_id": session_id, "user_id": session.user_id, **session_trend(events)}

    # ===== Low attention alert =====

    async def low_attention_alert(self, requester: User, session_id: UUID, reason: Optional[str] = None) -> Dict[str, Any]:
        """
        İstemcinin gönderdiği düşük dikkat sinyali için öğrencinin velisine sistem bildirimi oluşturur.

        Bildirimin göndereni aktif bir admin hesabıdır; hiç admin yoksa bu bir yapılandırma hatasıdır.
        Öğrencinin velisi yoksa uyarı sessizce atlanır.
        """
        reason = reason or DEFAULT_ALERT_REASON
        if reason not in ALERT_TEMPLATES:
            raise InvalidRequestError(f"reason must be one of: {', '.join(ALERT_TEMPLATES)}")

        session = await self._get_session(session_id)
        if requester.role not in (Role.STUDENT, Role.TEACHER):
            raise AuthorizationError("Only the student or a teacher can raise an attention alert.")
        await self.access_control.ensure_learner_access(requester, session.user_id)

        admin = await self.db_client.get_system_admin()
        if admin is None:
            logger.error("No active admin account exists to send system notifications.")
            raise ConfigurationError("No admin account is configured to send system notifications.")

        guardian_id = await self.guardianship.get_guardian_id(session.user_id)
        if guardian_id is None:
            logger.info(f"Student '{session.user_id}' has no guardian, attention alert skipped.")
            return {"notified": False, "reason": reason}

        student = await self.db_client.get_user_by_id(session.user_id)
        title, template = ALERT_TEMPLATES[reason]
        notification = Notification(
            notification_id=uuid4(), title=title,
            message=template.format(name=student.name if student else "Your child"),
            type="attention_alert", purpose="system",
            sender_id=admin.user_id, sender_role="admin",
            recipient_id=guardian_id, recipient_role="parent",
        )
        await self.db_client.add_notifications([notification])
        logger.info(f"Attention alert ({reason}) sent to guardian '{guardian_id}' for session '{session_id}'.")
        return {"notified": True, "reason": reason, "notification_id": notification.notification_id}
