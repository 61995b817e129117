"""Cross-record statistics and trend detection."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import numpy as np

from productivity_insights.telemetry import TelemetryRecord, payload_fields

TREND_THRESHOLD_PCT = 5.0


@dataclass
class Trend:
    metric: str
    direction: str
    magnitude: float
    confidence: float
    timespan: float


@dataclass
class AggregationResult:
    kind: str
    aggregated: dict[str, Any]
    data_points: int
    time_range: tuple[datetime, datetime]
    confidence: float
    trends: list[Trend] = field(default_factory=list)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _pct_change(old: float, new: float) -> float:
    if old == 0:
        return 0.0
    return ((new - old) / old) * 100.0


def _chronological(records: list[TelemetryRecord]) -> list[TelemetryRecord]:
    return sorted(records, key=lambda record: record.timestamp)


def aggregate(records: list[TelemetryRecord]) -> dict[str, Any]:
    """Summarize every payload field seen across ``records``.

    The type of a field's earliest value decides the summary: numbers get
    avg/min/max/count, mappings and lists keep the latest value, anything
    else becomes a frequency histogram of its string form.
    """

    values_by_field: dict[str, list[Any]] = {}
    for record in _chronological(records):
        for name, value in payload_fields(record.payload).items():
            if value is not None:
                values_by_field.setdefault(name, []).append(value)

    aggregated: dict[str, Any] = {}
    for name, values in values_by_field.items():
        first = values[0]
        if _is_number(first):
            numbers = np.asarray([value for value in values if _is_number(value)], dtype=float)
            aggregated[name] = {
                "avg": float(numbers.mean()),
                "min": float(numbers.min()),
                "max": float(numbers.max()),
                "count": int(numbers.size),
            }
        elif isinstance(first, (dict, list, tuple)):
            aggregated[name] = values[-1]
        else:
            aggregated[name] = dict(Counter(str(value) for value in values))
    return aggregated


def trends(records: list[TelemetryRecord], window: tuple[datetime, datetime]) -> list[Trend]:
    """First-to-last percent change for every numeric field with 2+ samples."""

    start, end = window
    timespan = (end - start).total_seconds() / 3600.0

    samples: dict[str, list[float]] = {}
    for record in _chronological(records):
        for name, value in payload_fields(record.payload).items():
            if _is_number(value):
                samples.setdefault(name, []).append(float(value))

    result: list[Trend] = []
    for name, values in samples.items():
        if len(values) < 2:
            continue
        change = _pct_change(values[0], values[-1])
        if change > TREND_THRESHOLD_PCT:
            direction = "increasing"
        elif change < -TREND_THRESHOLD_PCT:
            direction = "decreasing"
        else:
            direction = "stable"
        result.append(
            Trend(
                metric=name,
                direction=direction,
                magnitude=abs(change),
                confidence=min(len(values) / 10, 1.0),
                timespan=timespan,
            )
        )
    return result
