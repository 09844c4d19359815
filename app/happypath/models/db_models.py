# app/happypath/models/db_models.py

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Literal
from uuid import UUID


class Role(str, Enum):
    STUDENT = "student"
    PARENT = "parent"
    TEACHER = "teacher"
    ADMIN = "admin"


EMOTION_LABELS = ("happy", "surprise", "neutral", "fear", "angry", "sad", "disgust")
LESSON_CATEGORIES = ("numbers", "letters", "colors", "shapes", "emotions")
LESSON_LEVELS = ("beginner", "intermediate", "advanced")
NOTIFICATION_TYPES = ("attention_alert", "progress_update", "quiz_result", "general", "system")

EventType = Literal["attention", "emotion"]
EmotionLabel = Literal["happy", "surprise", "neutral", "fear", "angry", "sad", "disgust"]


class User(BaseModel):
    """
    Represents a user in the system, mapping to the 'users' table.
    The password hash is deliberately not part of this model.
    """
    user_id: UUID = Field(..., description="Primary key")
    name: str
    email: str
    role: Role
    is_active: bool = True
    avatar: Optional[str] = None
    created_by: Optional[UUID] = None
    updated_by: Optional[UUID] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserCredentials(User):
    """User row including the stored bcrypt hash. Only the auth flow reads this."""
    password_hash: str


class GuardianAssignment(BaseModel):
    """
    Represents a parent -> student link, mapping to the 'guardian_assignments' table.
    """
    assignment_id: UUID
    parent_id: UUID
    student_id: UUID = Field(..., description="Unique: a student has at most one guardian")
    assigned_by: UUID = Field(..., description="Admin who created the link")
    note: Optional[str] = None
    created_at: Optional[datetime] = None


class Lesson(BaseModel):
    lesson_id: UUID
    title: str
    description: str
    goal: str
    category: str
    level: str
    video_url: str
    video_id: str = Field(..., min_length=11, max_length=11)
    thumbnail_url: str
    status: Literal["draft", "published"] = "published"
    created_by: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QuizOption(BaseModel):
    id: str = Field(..., min_length=1, description="Stable client id used in answers")
    label_text: str = ""
    image_url: str = ""


class QuizQuestion(BaseModel):
    question_id: str
    type: Literal["single", "image"] = "single"
    prompt_text: str = ""
    prompt_image_url: str = ""
    prompt_audio_url: str = ""
    options: List[QuizOption] = Field(..., min_length=2, max_length=4)
    correct_option_id: str = Field(..., description="Answer key, never sent to students")
    order: int = 0

    @model_validator(mode="after")
    def correct_option_must_exist(self):
        if self.correct_option_id not in {o.id for o in self.options}:
            raise ValueError(f"correct_option_id '{self.correct_option_id}' is not one of the question's options")
        return self


class QuizSettings(BaseModel):
    allow_retry: bool = True
    max_attempts: int = Field(3, ge=1)
    passing_score: int = Field(60, ge=0, le=100)


class Quiz(BaseModel):
    quiz_id: UUID
    title: str
    lesson_id: Optional[str] = None
    is_active: bool = True
    language: str = "en"
    settings: QuizSettings = Field(default_factory=QuizSettings)
    questions: List[QuizQuestion] = Field(..., min_length=1)
    created_by: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AttemptAnswer(BaseModel):
    question_id: str
    selected_option_id: str
    is_correct: bool = False
    time_taken_sec: float = 0


class QuizAttempt(BaseModel):
    """Immutable record of one grading pass, mapping to the 'quiz_attempts' table."""
    attempt_id: UUID
    user_id: UUID
    quiz_id: UUID
    lesson_id: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    answers: List[AttemptAnswer] = Field(default_factory=list)
    correct: int = 0
    total: int = 0
    score_pct: int = 0
    status: Literal["completed", "abandoned"] = "completed"
    created_at: Optional[datetime] = None


class Progress(BaseModel):
    """Per (user, lesson) watch progress; percent and completion never regress."""
    user_id: UUID
    lesson_id: str
    position_sec: float = 0
    duration_sec: float = 0
    percent: int = 0
    completed: bool = False
    last_ping_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LearningSession(BaseModel):
    """
    One learning session of a student, mapping to the 'learning_sessions' table.
    ended_at is None while the session is open.
    """
    session_id: UUID
    user_id: UUID
    lesson_id: Optional[str] = None
    device_info: Optional[Dict[str, Any]] = None
    started_at: datetime
    ended_at: Optional[datetime] = None


class TelemetryEvent(BaseModel):
    """Append-only attention or emotion observation belonging to one session."""
    event_id: UUID
    session_id: UUID
    ts: datetime
    type: EventType
    attention_score: Optional[float] = Field(None, ge=0, le=1)
    attention_signals: Optional[Dict[str, Any]] = None
    emotion_label: Optional[EmotionLabel] = None
    emotion_scores: Optional[Dict[str, float]] = None
    latency_ms: Optional[float] = None


class Conversation(BaseModel):
    """Exactly one teacher and one parent, optionally scoped to a child."""
    conversation_id: UUID
    teacher_id: UUID
    parent_id: UUID
    child_id: Optional[UUID] = None
    last_message_at: Optional[datetime] = None
    last_message_preview: str = ""
    created_at: Optional[datetime] = None


class Message(BaseModel):
    message_id: UUID
    conversation_id: UUID
    sender_id: UUID
    sender_role: Literal["teacher", "parent"]
    text: str = ""
    read_by: List[UUID] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class Notification(BaseModel):
    """One recipient's copy of a notification; read state is per document."""
    notification_id: UUID
    title: str
    message: str
    type: str = "general"
    purpose: Literal["system", "learning"] = "learning"
    sender_id: UUID
    sender_role: Literal["admin", "teacher", "parent"]
    recipient_id: UUID
    recipient_role: Literal["parent", "teacher"]
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class MicroBreak(BaseModel):
    micro_break_id: UUID
    title: str
    youtube_url: str
    booster_text: str
    created_by: UUID
    is_active: bool = True
    created_at: Optional[datetime] = None
