from datetime import datetime, timedelta

import pytest

from productivity_insights.retention import RecordQuery, RetentionStore
from productivity_insights.telemetry import RecordMetadata, TelemetryRecord, TemporalPayload

NOW = datetime(2025, 1, 8, 10, 0)


def sample_record(record_id, kind="temporal", timestamp=NOW, relevance=0.7, category="real_time", expires_at=None):
    return TelemetryRecord(
        id=record_id,
        kind=kind,
        category=category,
        payload=TemporalPayload(hour=timestamp.hour, day_of_week=3, is_weekend=False, is_business_hours=True, day_quarter=1),
        timestamp=timestamp,
        relevance_score=relevance,
        source="test",
        metadata=RecordMetadata("automatic", 1.0),
        expires_at=expires_at,
    )


def test_put_keeps_newest_per_kind():
    store = RetentionStore(max_data_points_per_type=3)
    store.put(sample_record(f"r{i}", timestamp=NOW + timedelta(minutes=i)) for i in range(5))
    store.put([sample_record("other", kind="environmental")])

    kept = [record.id for record in store.query(RecordQuery(kinds=["temporal"]))]
    assert kept == ["r2", "r3", "r4"]
    assert store.counts() == {"temporal": 3, "environmental": 1}
    assert len(store) == 4


def test_query_filters_sort_and_limit():
    store = RetentionStore(min_relevance_score=0.1)
    store.put(
        [
            sample_record("low", relevance=0.05),
            sample_record("early", timestamp=NOW - timedelta(hours=5), relevance=0.3),
            sample_record("mid", timestamp=NOW - timedelta(hours=1), relevance=0.9),
            sample_record("hist", timestamp=NOW, relevance=0.5, category="historical"),
        ]
    )

    assert "low" not in [record.id for record in store.query()]

    recent = store.query(RecordQuery(start=NOW - timedelta(hours=2), categories=["real_time"]))
    assert [record.id for record in recent] == ["mid"]

    ranked = store.query(RecordQuery(order_by="relevance", descending=True, limit=2))
    assert [record.id for record in ranked] == ["mid", "hist"]

    everything = store.query(RecordQuery(min_relevance=0.0, order_by="timestamp"))
    assert everything[0].id == "early"


def test_query_rejects_unknown_order():
    store = RetentionStore()
    with pytest.raises(ValueError):
        store.query(RecordQuery(order_by="source"))


def test_evict_expired_uses_explicit_or_default_retention():
    store = RetentionStore(default_retention_hours=24)
    store.put(
        [
            sample_record("old", timestamp=NOW - timedelta(hours=30)),
            sample_record("fresh", timestamp=NOW - timedelta(hours=1)),
            sample_record("short", timestamp=NOW - timedelta(hours=1), expires_at=NOW - timedelta(minutes=1)),
            sample_record("boundary", timestamp=NOW - timedelta(hours=24)),
        ]
    )

    assert store.evict_expired(NOW) == 2
    assert sorted(record.id for record in store.query()) == ["boundary", "fresh"]


def test_record_validates_kind_and_relevance():
    with pytest.raises(ValueError):
        sample_record("bad-kind", kind="weather")
    with pytest.raises(ValueError):
        sample_record("bad-score", relevance=1.5)


def test_trim_keeps_newest_of_one_kind():
    store = RetentionStore()
    store.put(sample_record(f"r{i}", timestamp=NOW + timedelta(minutes=i)) for i in range(4))
    store.put([sample_record("env", kind="environmental")])

    assert store.trim("temporal", 2) == 2
    assert store.trim("task_patterns", 2) == 0
    assert [record.id for record in store.query(RecordQuery(kinds=["temporal"]))] == ["r2", "r3"]
    assert store.counts() == {"temporal": 2, "environmental": 1}
