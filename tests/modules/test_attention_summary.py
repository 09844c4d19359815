import uuid
from datetime import date, datetime, timedelta, timezone

import pytest

from app.happypath.models.db_models import TelemetryEvent
from app.happypath.modules.attention_summary import (
    parse_timezone, resolve_range, summarize_day, build_daily_summaries, session_trend,
)

SESSION_ID = uuid.uuid4()


def attention(ts: datetime, score: float) -> TelemetryEvent:
    return TelemetryEvent(event_id=uuid.uuid4(), session_id=SESSION_ID, ts=ts, type="attention", attention_score=score)

def emotion(ts: datetime, label: str) -> TelemetryEvent:
    return TelemetryEvent(event_id=uuid.uuid4(), session_id=SESSION_ID, ts=ts, type="emotion", emotion_label=label)


class TestSummarizeDay:

    def test_bucket_percentages_and_average(self):
        """Senaryo: [0.2, 0.5, 0.8, 0.9] -> low 1, med 1, high 2, ortalama 0.6."""
        ts = datetime(2024, 3, 1, 10, tzinfo=timezone.utc)
        summary = summarize_day("2024-03-01", [attention(ts, s) for s in (0.2, 0.5, 0.8, 0.9)])

        stats = summary.attention
        assert stats.samples == 4
        assert (stats.low, stats.med, stats.high) == (1, 1, 2)
        assert stats.low_pct == pytest.approx(0.25)
        assert stats.med_pct == pytest.approx(0.25)
        assert stats.high_pct == pytest.approx(0.5)
        assert stats.avg == pytest.approx(0.6)
        assert stats.min == pytest.approx(0.2)
        assert stats.max == pytest.approx(0.9)

    def test_thresholds_are_half_open(self):
        ts = datetime(2024, 3, 1, tzinfo=timezone.utc)
        summary = summarize_day("2024-03-01", [attention(ts, 0.4), attention(ts, 0.7), attention(ts, 0.39)])
        assert (summary.attention.low, summary.attention.med, summary.attention.high) == (1, 1, 1)

    def test_no_attention_samples_gives_zero_percentages(self):
        ts = datetime(2024, 3, 1, tzinfo=timezone.utc)
        summary = summarize_day("2024-03-01", [emotion(ts, "happy"), emotion(ts, "happy"), emotion(ts, "sad")])

        assert summary.attention.samples == 0
        assert summary.attention.avg is None
        assert summary.attention.low_pct == summary.attention.med_pct == summary.attention.high_pct == 0
        assert summary.emotions["happy"] == 2
        assert summary.emotions["sad"] == 1
        # Kapalı kümedeki tüm etiketler sıfırla da olsa yer alır
        assert summary.emotions["disgust"] == 0


class TestBuildDailySummaries:

    def test_groups_by_calendar_day_in_requested_timezone(self):
        """Senaryo: 22:30 UTC olayı +03:00'te ertesi güne düşer."""
        late = datetime(2024, 3, 1, 22, 30, tzinfo=timezone.utc)
        early = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        events = [attention(late, 0.9), attention(early, 0.1)]

        utc_days = build_daily_summaries(events, timezone.utc)
        assert [d.date for d in utc_days] == ["2024-03-01"]

        local_days = build_daily_summaries(events, parse_timezone("+03:00"))
        assert [d.date for d in local_days] == ["2024-03-01", "2024-03-02"]
        assert local_days[1].attention.high == 1

    def test_same_events_give_same_summaries(self):
        ts = datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
        events = [attention(ts + timedelta(minutes=i), 0.25 * (i % 5)) for i in range(10)]
        assert build_daily_summaries(events) == build_daily_summaries(list(reversed(events)))

    def test_empty_input(self):
        assert build_daily_summaries([]) == []


class TestTimezoneAndRange:

    @pytest.mark.parametrize("value", [None, "", "UTC", "utc", "Z"])
    def test_utc_aliases(self, value):
        assert parse_timezone(value) == timezone.utc

    def test_offset_and_iana_names(self):
        assert parse_timezone("+05:30").utcoffset(None) == timedelta(hours=5, minutes=30)
        assert parse_timezone("-0300").utcoffset(None) == timedelta(hours=-3)
        assert parse_timezone("Europe/Istanbul") is not None

    @pytest.mark.parametrize("value", ["Mars/Olympus", "+25:00", "not a zone"])
    def test_unknown_timezone_raises(self, value):
        with pytest.raises(ValueError):
            parse_timezone(value)

    def test_default_range_is_last_seven_days(self):
        now = datetime(2024, 3, 10, 12, tzinfo=timezone.utc)
        start, end = resolve_range(None, None, timezone.utc, now=now)
        assert end == now
        assert start == now - timedelta(days=7)

    def test_only_to_given_counts_back_from_to(self):
        """Senaryo: yalnızca geçmiş bir to verilir; başlangıç to'dan 7 gün öncesidir."""
        now = datetime(2024, 3, 20, 12, tzinfo=timezone.utc)
        start, end = resolve_range(None, date(2024, 3, 1), timezone.utc, now=now)
        assert end.date() == date(2024, 3, 1)
        assert start == end - timedelta(days=7)
        assert start < end

    def test_explicit_range_covers_whole_days(self):
        tz = parse_timezone("+03:00")
        start, end = resolve_range(date(2024, 3, 1), date(2024, 3, 2), tz)
        assert start == datetime(2024, 2, 29, 21, 0, tzinfo=timezone.utc)
        assert end.astimezone(tz).date() == date(2024, 3, 2)
        assert end.astimezone(tz).hour == 23

    def test_from_after_to_raises(self):
        with pytest.raises(ValueError):
            resolve_range(date(2024, 3, 5), date(2024, 3, 1), timezone.utc)


def test_session_trend_orders_by_timestamp():
    t0 = datetime(2024, 3, 1, 10, tzinfo=timezone.utc)
    events = [attention(t0 + timedelta(seconds=20), 0.3), emotion(t0 + timedelta(seconds=10), "happy"), attention(t0, 0.8)]

    trend = session_trend(events)

    assert [p["score"] for p in trend["attention_trend"]] == [0.8, 0.3]
    assert trend["emotions"] == [{"ts": t0 + timedelta(seconds=10), "label": "happy"}]
