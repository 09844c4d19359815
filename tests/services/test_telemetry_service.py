import uuid
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from app.happypath.models.db_models import LearningSession
from app.happypath.services.telemetry_service import TelemetryService, normalize_event, MAX_EVENTS_PER_BATCH
from app.happypath.services.errors import (
    InvalidRequestError, AuthorizationError, NotFoundError, ConfigurationError,
)

SESSION_ID = uuid.uuid4()


class TestNormalizeEvent:

    def test_attention_event_inferred(self):
        event = normalize_event(SESSION_ID, {"attention_score": 0.4, "attention_signals": {"gaze": "away"}}, 0)
        assert event.type == "attention"
        assert event.attention_score == 0.4
        assert event.emotion_label is None
        assert event.ts.tzinfo is not None

    def test_emotion_event_inferred(self):
        event = normalize_event(SESSION_ID, {"emotion_label": "happy", "emotion_scores": {"happy": 0.9}}, 0)
        assert event.type == "emotion"
        assert event.attention_score is None

    def test_explicit_type_drops_other_payload(self):
        event = normalize_event(SESSION_ID, {"type": "emotion", "attention_score": 0.3, "emotion_label": "sad"}, 0)
        assert event.type == "emotion"
        assert event.attention_score is None
        assert event.emotion_label == "sad"

    def test_naive_timestamp_becomes_utc(self):
        event = normalize_event(SESSION_ID, {"attention_score": 0.5, "ts": datetime(2024, 3, 1, 10, 0)}, 0)
        assert event.ts == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("item, message", [
        ({}, "required"),
        ({"attention_score": 1.5}, "between 0 and 1"),
        ({"attention_score": -0.1}, "between 0 and 1"),
        ({"emotion_label": "bored"}, "unknown emotion label"),
        ({"attention_score": 0.5, "emotion_label": "happy"}, "'type' is required"),
        ({"type": "attention", "emotion_label": "happy"}, "without a score"),
        ({"type": "emotion", "attention_score": 0.2}, "without a label"),
        ({"type": "heartbeat", "attention_score": 0.2}, "unknown type"),
    ])
    def test_invalid_items(self, item, message):
        with pytest.raises(InvalidRequestError, match=message):
            normalize_event(SESSION_ID, item, 3)

    def test_boundaries_are_valid(self):
        assert normalize_event(SESSION_ID, {"attention_score": 0}, 0).attention_score == 0
        assert normalize_event(SESSION_ID, {"attention_score": 1}, 0).attention_score == 1


def _session(user_id, ended=False) -> LearningSession:
    now = datetime.now(timezone.utc)
    return LearningSession(session_id=SESSION_ID, user_id=user_id, started_at=now, ended_at=now if ended else None)


@pytest_asyncio.fixture
async def service_instance():
    """Creates a TelemetryService instance with mocked dependencies for each test."""
    mock_db_client = AsyncMock()
    mock_db_client.add_session.side_effect = lambda session: session
    mock_db_client.add_events.side_effect = lambda events: len(events)
    mock_access_control = AsyncMock()
    mock_guardianship = AsyncMock()
    service = TelemetryService(db_client=mock_db_client, access_control=mock_access_control, guardianship=mock_guardianship)
    return service, mock_db_client, mock_access_control, mock_guardianship


@pytest.mark.asyncio
class TestSessions:

    async def test_start_session(self, service_instance, student_user):
        service, db, _, _ = service_instance

        session = await service.start_session(student_user, lesson_id="lesson-1", device_info={"os": "web"})

        assert session.user_id == student_user.user_id
        assert session.ended_at is None

    async def test_only_students_start_sessions(self, service_instance, teacher_user):
        service, db, _, _ = service_instance
        with pytest.raises(AuthorizationError):
            await service.start_session(teacher_user)
        db.add_session.assert_not_called()

    async def test_end_other_students_session(self, service_instance, student_user, other_student_user):
        service, db, _, _ = service_instance
        db.get_session.return_value = _session(other_student_user.user_id)
        with pytest.raises(AuthorizationError):
            await service.end_session(student_user, SESSION_ID)
        db.end_session.assert_not_called()

    async def test_end_missing_session(self, service_instance, student_user):
        service, db, _, _ = service_instance
        db.get_session.return_value = None
        with pytest.raises(NotFoundError):
            await service.end_session(student_user, SESSION_ID)


@pytest.mark.asyncio
class TestIngest:

    async def test_ingest_into_closed_session(self, service_instance, student_user):
        """Senaryo: oturum kapandıktan sonra gelen geç olaylar da kabul edilir."""
        service, db, _, _ = service_instance
        db.get_session.return_value = _session(student_user.user_id, ended=True)

        inserted = await service.ingest_events(student_user, SESSION_ID, [
            {"attention_score": 0.3}, {"emotion_label": "neutral"},
        ])

        assert inserted == 2
        events = db.add_events.call_args[0][0]
        assert [e.type for e in events] == ["attention", "emotion"]

    async def test_one_bad_event_rejects_batch(self, service_instance, student_user):
        service, db, _, _ = service_instance
        db.get_session.return_value = _session(student_user.user_id)

        with pytest.raises(InvalidRequestError, match="Event 1"):
            await service.ingest_events(student_user, SESSION_ID, [{"attention_score": 0.3}, {"attention_score": 7}])
        db.add_events.assert_not_called()

    async def test_empty_and_oversized_batches(self, service_instance, student_user):
        service, db, _, _ = service_instance
        with pytest.raises(InvalidRequestError):
            await service.ingest_events(student_user, SESSION_ID, [])
        with pytest.raises(InvalidRequestError):
            await service.ingest_events(student_user, SESSION_ID, [{"attention_score": 0.5}] * (MAX_EVENTS_PER_BATCH + 1))
        db.get_session.assert_not_called()

    async def test_ingest_into_foreign_session(self, service_instance, student_user, other_student_user):
        service, db, _, _ = service_instance
        db.get_session.return_value = _session(other_student_user.user_id)
        with pytest.raises(AuthorizationError):
            await service.ingest_events(student_user, SESSION_ID, [{"attention_score": 0.5}])


@pytest.mark.asyncio
class TestReports:

    async def test_daily_report_bad_timezone(self, service_instance, teacher_user, student_user):
        service, db, _, _ = service_instance
        with pytest.raises(InvalidRequestError):
            await service.daily_report(teacher_user, student_user.user_id, tz_name="Mars/Olympus")
        db.get_events_for_user_range.assert_not_called()

    async def test_daily_report_no_events(self, service_instance, teacher_user, student_user):
        service, db, access, _ = service_instance
        db.get_events_for_user_range.return_value = []

        assert await service.daily_report(teacher_user, student_user.user_id, tz_name="Europe/Istanbul") == []
        access.ensure_learner_access.assert_awaited_once_with(teacher_user, student_user.user_id)

    async def test_session_report_checks_session_owner(self, service_instance, parent_user, student_user):
        service, db, access, _ = service_instance
        db.get_session.return_value = _session(student_user.user_id)
        db.get_events_for_session.return_value = []

        report = await service.session_report(parent_user, SESSION_ID)

        access.ensure_learner_access.assert_awaited_once_with(parent_user, student_user.user_id)
        assert report["session_id"] == SESSION_ID
        assert report["user_id"] == student_user.user_id


@pytest.mark.asyncio
class TestLowAttentionAlert:

    async def test_alert_notifies_guardian(self, service_instance, student_user, parent_user, admin_user):
        service, db, _, guardianship = service_instance
        db.get_session.return_value = _session(student_user.user_id)
        db.get_system_admin.return_value = admin_user
        db.get_user_by_id.return_value = student_user
        guardianship.get_guardian_id.return_value = parent_user.user_id

        result = await service.low_attention_alert(student_user, SESSION_ID)

        assert result["notified"] is True
        assert result["reason"] == "multiple_episodes"
        notification, = db.add_notifications.call_args[0][0]
        assert notification.recipient_id == parent_user.user_id
        assert notification.sender_id == admin_user.user_id
        assert notification.purpose == "system"
        assert notification.type == "attention_alert"
        assert student_user.name in notification.message

    async def test_alert_without_guardian_is_skipped(self, service_instance, student_user, admin_user):
        service, db, _, guardianship = service_instance
        db.get_session.return_value = _session(student_user.user_id)
        db.get_system_admin.return_value = admin_user
        guardianship.get_guardian_id.return_value = None

        result = await service.low_attention_alert(student_user, SESSION_ID, reason="student_break")

        assert result == {"notified": False, "reason": "student_break"}
        db.add_notifications.assert_not_called()

    async def test_alert_without_admin_is_configuration_error(self, service_instance, student_user):
        service, db, _, _ = service_instance
        db.get_session.return_value = _session(student_user.user_id)
        db.get_system_admin.return_value = None

        with pytest.raises(ConfigurationError) as exc_info:
            await service.low_attention_alert(student_user, SESSION_ID)
        assert exc_info.value.status_code == 500

    async def test_alert_unknown_reason(self, service_instance, student_user):
        service, db, _, _ = service_instance
        with pytest.raises(InvalidRequestError):
            await service.low_attention_alert(student_user, SESSION_ID, reason="sleepy")
        db.get_session.assert_not_called()

    async def test_parents_cannot_raise_alerts(self, service_instance, parent_user, student_user):
        service, db, _, _ = service_instance
        db.get_session.return_value = _session(student_user.user_id)
        with pytest.raises(AuthorizationError):
            await service.low_attention_alert(parent_user, SESSION_ID)
