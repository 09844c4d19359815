import uuid
from datetime import datetime, timezone

import asyncpg
import pytest

from app.happypath.api import emotion as emotion_api
from app.happypath.api.dependencies import (
    get_guardianship_service, get_lesson_service, get_telemetry_service, get_messaging_service,
    get_notification_service, get_quiz_service, get_progress_service,
)
from app.happypath.models.db_models import Conversation, GuardianAssignment, Progress, Role
from app.happypath.services.errors import ConflictError, NotFoundError, AuthorizationError, ConfigurationError
from app.happypath.tools.emotion_predictor import EmotionServiceError


class TestRoleGuards:

    def test_admin_routes_reject_other_roles(self, client, login_as, mock_service, teacher_user):
        login_as(teacher_user)
        service = mock_service(get_guardianship_service)

        response = client.get("/api/v1/admin/assignments")

        assert response.status_code == 403
        service.list_assignments.assert_not_called()

    def test_students_cannot_message(self, client, login_as, mock_service, student_user):
        login_as(student_user)
        mock_service(get_messaging_service)
        assert client.get("/api/v1/messages/conversations").status_code == 403

    def test_parents_cannot_start_sessions(self, client, login_as, mock_service, parent_user):
        login_as(parent_user)
        mock_service(get_telemetry_service)
        assert client.post("/api/v1/sessions").status_code == 403


class TestGuardianAssignments:

    def test_create_assignments(self, client, login_as, mock_service, admin_user, parent_user, student_user):
        login_as(admin_user)
        service = mock_service(get_guardianship_service)
        service.assign.return_value = [GuardianAssignment(
            assignment_id=uuid.uuid4(), parent_id=parent_user.user_id, student_id=student_user.user_id,
            assigned_by=admin_user.user_id,
        )]

        response = client.post("/api/v1/admin/assignments", json={"parentId": str(parent_user.user_id), "studentIds": [str(student_user.user_id)]})

        assert response.status_code == 201
        assert response.json()[0]["studentId"] == str(student_user.user_id)
        service.assign.assert_awaited_once_with(parent_user.user_id, [student_user.user_id], assigned_by=admin_user.user_id, note=None)

    def test_conflict_lists_students(self, client, login_as, mock_service, admin_user, parent_user, student_user):
        login_as(admin_user)
        service = mock_service(get_guardianship_service)
        service.assign.side_effect = ConflictError("Some students already have a guardian.", conflicts=[str(student_user.user_id)])

        response = client.post("/api/v1/admin/assignments", json={"parentId": str(parent_user.user_id), "studentIds": [str(student_user.user_id)]})

        assert response.status_code == 409
        assert response.json()["conflicts"] == [str(student_user.user_id)]

    def test_empty_student_list_is_rejected(self, client, login_as, mock_service, admin_user, parent_user):
        login_as(admin_user)
        mock_service(get_guardianship_service)
        response = client.post("/api/v1/admin/assignments", json={"parentId": str(parent_user.user_id), "studentIds": []})
        assert response.status_code == 422


class TestErrorMapping:

    def test_not_found(self, client, login_as, mock_service, student_user):
        login_as(student_user)
        service = mock_service(get_lesson_service)
        service.get_lesson.side_effect = NotFoundError("Lesson not found.")

        response = client.get(f"/api/v1/lessons/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json() == {"detail": "Lesson not found."}

    def test_forbidden_from_service(self, client, login_as, mock_service, parent_user, student_user):
        login_as(parent_user)
        service = mock_service(get_progress_service)
        service.list_for_user.side_effect = AuthorizationError("You are not authorized to view this learner's data.")

        response = client.get(f"/api/v1/progress/user/{student_user.user_id}")

        assert response.status_code == 403

    def test_configuration_error_is_500(self, client, login_as, mock_service, student_user):
        login_as(student_user)
        service = mock_service(get_telemetry_service)
        service.low_attention_alert.side_effect = ConfigurationError("No admin account is configured to send system notifications.")

        response = client.post(f"/api/v1/sessions/{uuid.uuid4()}/low-attention-alert")

        assert response.status_code == 500

    def test_database_errors_are_hidden(self, client, login_as, mock_service, teacher_user):
        login_as(teacher_user)
        service = mock_service(get_quiz_service)
        service.list_quizzes.side_effect = asyncpg.PostgresError("relation does not exist")

        response = client.get("/api/v1/quizzes")

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error."}


class TestTelemetryRoutes:

    def test_events_are_flattened(self, client, login_as, mock_service, student_user):
        login_as(student_user)
        service = mock_service(get_telemetry_service)
        service.ingest_events.return_value = 2
        session_id = uuid.uuid4()

        response = client.post(f"/api/v1/sessions/{session_id}/events", json={"events": [
            {"type": "attention", "attention": {"score": 0.25, "signals": {"gaze": "away"}}},
            {"emotionLabel": "happy", "latencyMs": 12},
        ]})

        assert response.status_code == 201
        assert response.json() == {"inserted": 2}
        _, called_session, items = service.ingest_events.call_args[0]
        assert called_session == session_id
        assert items[0]["attention_score"] == 0.25
        assert items[0]["attention_signals"] == {"gaze": "away"}
        assert items[1]["emotion_label"] == "happy"
        assert items[1]["latency_ms"] == 12

    def test_progress_ping(self, client, login_as, mock_service, student_user):
        login_as(student_user)
        service = mock_service(get_progress_service)
        service.ping.return_value = Progress(user_id=student_user.user_id, lesson_id="lesson-1", position_sec=30, duration_sec=60, percent=50)

        response = client.post("/api/v1/progress/ping", json={"lessonId": "lesson-1", "positionSec": 30, "durationSec": 60})

        assert response.status_code == 200
        assert response.json()["percent"] == 50


class TestMessagingRoutes:

    @pytest.mark.parametrize("created, expected_status", [(True, 201), (False, 200)])
    def test_conversation_status_reflects_creation(self, client, login_as, mock_service, teacher_user, parent_user, created, expected_status):
        login_as(parent_user)
        service = mock_service(get_messaging_service)
        conversation = Conversation(conversation_id=uuid.uuid4(), teacher_id=teacher_user.user_id, parent_id=parent_user.user_id)
        service.create_conversation.return_value = (conversation, created)

        response = client.post("/api/v1/messages/conversations", json={"peerUserId": str(teacher_user.user_id)})

        assert response.status_code == expected_status
        assert response.json()["conversationId"] == str(conversation.conversation_id)


class TestNotificationRoutes:

    def test_send_returns_count(self, client, login_as, mock_service, teacher_user, parent_user):
        login_as(teacher_user)
        service = mock_service(get_notification_service)
        service.send.return_value = 1

        response = client.post("/api/v1/notifications", json={
            "recipientIds": [str(parent_user.user_id)], "recipientRole": "parent", "title": "Trip", "message": "Friday",
        })

        assert response.status_code == 201
        assert response.json() == {"sent": 1}
        args = service.send.call_args
        assert args[0][2] == Role.PARENT


class TestEmotionRoute:

    def test_empty_frame(self, client, login_as, student_user):
        login_as(student_user)
        response = client.post("/api/v1/emotion/predict", files={"frame": ("frame.jpg", b"", "image/jpeg")})
        assert response.status_code == 400

    def test_upstream_failure_is_bad_gateway(self, client, login_as, student_user, monkeypatch):
        login_as(student_user)

        async def failing_predict(image_bytes):
            raise EmotionServiceError("Emotion service is unavailable.")
        monkeypatch.setattr(emotion_api, "predict_emotion", failing_predict)

        response = client.post("/api/v1/emotion/predict", files={"frame": ("frame.jpg", b"\xff\xd8", "image/jpeg")})

        assert response.status_code == 502

    def test_prediction_is_passed_through(self, client, login_as, student_user, monkeypatch):
        login_as(student_user)

        async def fake_predict(image_bytes):
            return {"label": "happy", "scores": {"happy": 0.9}}
        monkeypatch.setattr(emotion_api, "predict_emotion", fake_predict)

        response = client.post("/api/v1/emotion/predict", files={"frame": ("frame.jpg", b"\xff\xd8", "image/jpeg")})

        assert response.status_code == 200
        assert response.json()["label"] == "happy"
