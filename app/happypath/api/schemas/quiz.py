from pydantic import Field
from datetime import datetime
from typing import Optional, List, Literal
from uuid import UUID

from .base import ApiModel


class OptionSchema(ApiModel):
    id: str
    label_text: str = ""
    image_url: str = ""


class QuestionSchema(ApiModel):
    # Seçenek sayısı ve doğru cevabın seçenekler arasında olması servis katmanında doğrulanır (400)
    question_id: str
    type: Literal["single", "image"] = "single"
    prompt_text: str = ""
    prompt_image_url: str = ""
    prompt_audio_url: str = ""
    options: List[OptionSchema]
    correct_option_id: str
    order: int = 0


class SettingsSchema(ApiModel):
    allow_retry: bool = True
    max_attempts: int = 3
    passing_score: int = 60


class QuizCreateRequest(ApiModel):
    title: str = Field(..., min_length=1)
    lesson_id: Optional[str] = None
    is_active: bool = True
    language: str = "en"
    settings: Optional[SettingsSchema] = None
    questions: List[QuestionSchema]


class QuizUpdateRequest(ApiModel):
    title: Optional[str] = Field(None, min_length=1)
    lesson_id: Optional[str] = None
    is_active: Optional[bool] = None
    language: Optional[str] = None
    settings: Optional[SettingsSchema] = None
    questions: Optional[List[QuestionSchema]] = None


class QuizActiveRequest(ApiModel):
    is_active: bool


class QuizResponse(ApiModel):
    """Full definition including answer keys. Only the creating teacher receives this."""
    quiz_id: UUID
    title: str
    lesson_id: Optional[str] = None
    is_active: bool
    language: str
    settings: SettingsSchema
    questions: List[QuestionSchema]
    created_by: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QuizSummaryResponse(ApiModel):
    quiz_id: UUID
    title: str
    lesson_id: Optional[str] = None
    is_active: bool
    questions_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PublicQuestionSchema(ApiModel):
    question_id: str
    type: str
    prompt_text: str = ""
    prompt_image_url: str = ""
    prompt_audio_url: str = ""
    order: int = 0
    options: List[OptionSchema]


class PublicQuizResponse(ApiModel):
    """Student view of an active quiz: no answer keys."""
    quiz_id: UUID
    title: str
    lesson_id: Optional[str] = None
    language: str
    settings: SettingsSchema
    questions: List[PublicQuestionSchema]


class AnswerSchema(ApiModel):
    question_id: str
    selected_option_id: str
    time_taken_sec: float = Field(0, ge=0)


class AttemptSubmitRequest(ApiModel):
    answers: List[AnswerSchema] = Field(..., min_length=1)
    started_at: Optional[datetime] = None


class AttemptResultResponse(ApiModel):
    attempt_id: UUID
    correct: int
    total: int
    score_pct: int
    passed: bool
    allow_retry: bool
    max_attempts: int
    remaining_attempts: int


class AttemptAnswerSchema(ApiModel):
    question_id: str
    selected_option_id: str
    is_correct: bool
    time_taken_sec: float = 0


class AttemptResponse(ApiModel):
    attempt_id: UUID
    user_id: UUID
    quiz_id: UUID
    lesson_id: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    answers: List[AttemptAnswerSchema]
    correct: int
    total: int
    score_pct: int
    status: str
    created_at: Optional[datetime] = None


class AttemptSummaryResponse(ApiModel):
    user_id: UUID
    attempts: int
    best_score: int
    last_at: Optional[datetime] = None
