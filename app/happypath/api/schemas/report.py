from datetime import datetime
from typing import Optional, List, Dict
from uuid import UUID

from .base import ApiModel


class AttentionStatsResponse(ApiModel):
    avg: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    samples: int
    low: int
    med: int
    high: int
    low_pct: float
    med_pct: float
    high_pct: float


class DailySummaryResponse(ApiModel):
    date: str
    attention: AttentionStatsResponse
    emotions: Dict[str, int]


class AttentionPoint(ApiModel):
    ts: datetime
    score: float


class EmotionPoint(ApiModel):
    ts: datetime
    label: str


class SessionReportResponse(ApiModel):
    session_id: UUID
    user_id: UUID
    attention_trend: List[AttentionPoint]
    emotions: List[EmotionPoint]


class LearnerQuizSummaryResponse(ApiModel):
    quiz_id: UUID
    quiz_title: str
    lesson_id: Optional[str] = None
    attempts: int
    completed_attempts: int
    abandoned_attempts: int
    best_score: int
    avg_score: float
    last_score: int
    first_attempt_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    passed_attempts: int
    passing_score: int


class QuizHistoryQuestion(ApiModel):
    id: str
    question: str
    answer: str
    correct: bool


class ChildQuizHistoryResponse(ApiModel):
    id: UUID
    module_id: Optional[str] = None
    module_name: str
    date: Optional[datetime] = None
    score: int
    total_questions: int
    correct_answers: int
    time_spent: Optional[int] = None
    questions: List[QuizHistoryQuestion]


class StudentOverviewResponse(ApiModel):
    user_id: UUID
    name: str
    email: str
    last_active: Optional[datetime] = None
    progress_percent: int
    completed_modules: int
    total_modules: int
