"""
Telemetri olaylarından günlük dikkat/duygu özetleri üretir.

Tamamen saf fonksiyonlardır: aynı olay kümesi her zaman aynı özeti verir, veritabanına
ya da sürecin yerel saat ayarına dokunmaz. Saat dilimi her zaman açıkça parametre olarak gelir.
"""
import re
from collections import Counter, defaultdict
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field

from ..models.db_models import EMOTION_LABELS, TelemetryEvent

LOW_THRESHOLD = 0.4
HIGH_THRESHOLD = 0.7
DEFAULT_RANGE_DAYS = 7

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):?(\d{2})$")


class AttentionStats(BaseModel):
    avg: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    samples: int = 0
    low: int = 0
    med: int = 0
    high: int = 0
    low_pct: float = 0
    med_pct: float = 0
    high_pct: float = 0


class DailySummary(BaseModel):
    date: str = Field(..., description="YYYY-MM-DD in the requested time zone")
    attention: AttentionStats
    emotions: Dict[str, int]


def parse_timezone(value: Optional[str]) -> tzinfo:
    """
    'UTC', IANA adları ('Europe/Istanbul') ve '+05:30' / '-0300' biçimindeki sabit ofsetleri kabul eder.
    Boş değer UTC'dir. Tanınmayan değer ValueError yükseltir.
    """
    if value is None or not value.strip() or value.strip().upper() in ("UTC", "Z"):
        return timezone.utc
    value = value.strip()
    match = _OFFSET_RE.match(value)
    if match:
        sign, hours, minutes = match.groups()
        if int(hours) > 23 or int(minutes) > 59:
            raise ValueError(f"Invalid UTC offset: {value}")
        delta = timedelta(hours=int(hours), minutes=int(minutes))
        return timezone(-delta if sign == "-" else delta)
    try:
        return ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown time zone: {value}") from e


def resolve_range(from_date: Optional[date], to_date: Optional[date], tz: tzinfo,
                  now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    from/to günlerini verilen saat diliminde [günün başı, günün sonu] aralığına çevirir.
    Verilmeyen uçlar için 7 günlük pencere kullanılır; yalnızca to verilirse pencere to'dan geriye sayılır.
    """
    now = now or datetime.now(timezone.utc)
    end = datetime.combine(to_date, time.max, tzinfo=tz) if to_date else now
    start = (datetime.combine(from_date, time.min, tzinfo=tz) if from_date
             else end - timedelta(days=DEFAULT_RANGE_DAYS))
    if start > end:
        raise ValueError("'from' must not be after 'to'.")
    return start, end


def _bucket(score: float) -> str:
    if score < LOW_THRESHOLD:
        return "low"
    if score < HIGH_THRESHOLD:
        return "med"
    return "high"


def summarize_day(day: str, events: Iterable[TelemetryEvent]) -> DailySummary:
    scores: List[float] = []
    emotions = Counter()
    for event in events:
        if event.type == "attention" and event.attention_score is not None:
            scores.append(event.attention_score)
        elif event.type == "emotion" and event.emotion_label is not None:
            emotions[event.emotion_label] += 1

    stats = AttentionStats(samples=len(scores))
    if scores:
        buckets = Counter(_bucket(s) for s in scores)
        stats.avg = sum(scores) / len(scores)
        stats.min = min(scores)
        stats.max = max(scores)
        stats.low, stats.med, stats.high = buckets["low"], buckets["med"], buckets["high"]
        stats.low_pct = stats.low / stats.samples
        stats.med_pct = stats.med / stats.samples
        stats.high_pct = stats.high / stats.samples

    return DailySummary(date=day, attention=stats, emotions={label: emotions[label] for label in EMOTION_LABELS})


def build_daily_summaries(events: Iterable[TelemetryEvent], tz: tzinfo = timezone.utc) -> List[DailySummary]:
    """Olayları kendi zaman damgalarına göre tz'deki takvim gününe gruplar ve günleri artan sırada döndürür."""
    by_day: Dict[str, List[TelemetryEvent]] = defaultdict(list)
    for event in events:
        ts = event.ts if event.ts.tzinfo else event.ts.replace(tzinfo=timezone.utc)
        by_day[ts.astimezone(tz).strftime("%Y-%m-%d")].append(event)
    return [summarize_day(day, by_day[day]) for day in sorted(by_day)]


def session_trend(events: Iterable[TelemetryEvent]) -> Dict[str, List[Dict]]:
    """Tek bir oturum için zamana göre sıralı dikkat skorları ve duygu etiketleri."""
    ordered = sorted(events, key=lambda e: e.ts)
    return {
        "attention_trend": [{"ts": e.ts, "score": e.attention_score} for e in ordered if e.type == "attention"],
        "emotions": [{"ts": e.ts, "label": e.emotion_label} for e in ordered if e.type == "emotion"],
    }
