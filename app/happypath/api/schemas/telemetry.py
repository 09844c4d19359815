from pydantic import Field
from datetime import datetime
from typing import Optional, List, Dict, Any
from uuid import UUID

from .base import ApiModel


class SessionStartRequest(ApiModel):
    lesson_id: Optional[str] = None
    device_info: Optional[Dict[str, Any]] = None


class SessionResponse(ApiModel):
    session_id: UUID
    user_id: UUID
    lesson_id: Optional[str] = None
    device_info: Optional[Dict[str, Any]] = None
    started_at: datetime
    ended_at: Optional[datetime] = None


class AttentionIn(ApiModel):
    score: Optional[float] = None
    signals: Optional[Dict[str, Any]] = None


class EmotionIn(ApiModel):
    label: Optional[str] = None
    scores: Optional[Dict[str, float]] = None


class EventIn(ApiModel):
    """
    Tek bir telemetri olayı. İstemciler iç içe ({"attention": {"score": 0.6}}) ya da düz
    ({"attentionScore": 0.6}) biçim gönderebilir; iç içe değer varsa önceliklidir.
    Skor aralığı ve etiket kümesi burada değil servis katmanında doğrulanır.
    """
    ts: Optional[datetime] = None
    type: Optional[str] = None
    attention: Optional[AttentionIn] = None
    attention_score: Optional[float] = None
    attention_signals: Optional[Dict[str, Any]] = None
    emotion: Optional[EmotionIn] = None
    emotion_label: Optional[str] = None
    emotion_scores: Optional[Dict[str, float]] = None
    latency_ms: Optional[float] = None

    def to_item(self) -> Dict[str, Any]:
        attention = self.attention or AttentionIn()
        emotion = self.emotion or EmotionIn()
        return {
            "ts": self.ts,
            "type": self.type,
            "attention_score": attention.score if attention.score is not None else self.attention_score,
            "attention_signals": attention.signals or self.attention_signals,
            "emotion_label": emotion.label or self.emotion_label,
            "emotion_scores": emotion.scores or self.emotion_scores,
            "latency_ms": self.latency_ms,
        }


class EventBatchRequest(ApiModel):
    events: List[EventIn] = Field(..., description="One invalid event rejects the whole batch.")


class EventBatchResponse(ApiModel):
    inserted: int


class AttentionAlertRequest(ApiModel):
    reason: Optional[str] = Field(None, description="multiple_episodes, long_episode or student_break")


class AttentionAlertResponse(ApiModel):
    notified: bool
    reason: str
    notification_id: Optional[UUID] = None
