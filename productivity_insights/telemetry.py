"""Typed telemetry records produced by the collectors.

Each record carries exactly one payload dataclass. Payloads are a closed
tagged union: consumers dispatch on the payload class (or its ``tag``)
instead of probing string keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta
from typing import Any, ClassVar, Optional, Union

TELEMETRY_KINDS = ("user_behavior", "task_patterns", "productivity_metrics", "environmental", "temporal")
RECORD_CATEGORIES = ("real_time", "historical", "predictive")


@dataclass
class TaskActivityPayload:
    tag: ClassVar[str] = "task_activity"

    tasks_created_last_24h: int
    avg_tasks_per_hour: float
    status_distribution: dict[str, int]
    priority_distribution: dict[str, int]


@dataclass
class SessionActivityPayload:
    tag: ClassVar[str] = "session_activity"

    sessions_last_24h: int
    avg_session_duration: float
    avg_productivity_score: float


@dataclass
class ProjectDistributionPayload:
    tag: ClassVar[str] = "project_distribution"

    project_distribution: dict[str, int]
    total_projects: int
    active_projects: int


@dataclass
class DeadlineRiskPayload:
    tag: ClassVar[str] = "deadline_risk"

    tasks_with_deadlines: int
    overdue_tasks: int = 0
    due_soon_tasks: int = 0
    overdue_percentage: float = 0.0
    avg_days_to_deadline: float = 0.0


@dataclass
class HourlyProductivityPayload:
    tag: ClassVar[str] = "hourly_productivity"

    hourly_productivity: dict[int, float]
    peak_hours: list[int]
    average_productivity: float


@dataclass
class EnvironmentalPayload:
    tag: ClassVar[str] = "environmental"

    context: dict[str, Any]


@dataclass
class TemporalPayload:
    tag: ClassVar[str] = "temporal"

    hour: int
    day_of_week: int
    is_weekend: bool
    is_business_hours: bool
    day_quarter: int


TelemetryPayload = Union[
    TaskActivityPayload,
    SessionActivityPayload,
    ProjectDistributionPayload,
    DeadlineRiskPayload,
    HourlyProductivityPayload,
    EnvironmentalPayload,
    TemporalPayload,
]


@dataclass
class RecordMetadata:
    collection_method: str
    confidence: float
    data_sources: list[str] = field(default_factory=list)


@dataclass
class TelemetryRecord:
    """One timestamped observation owned by the retention store."""

    id: str
    kind: str
    category: str
    payload: TelemetryPayload
    timestamp: datetime
    relevance_score: float
    source: str
    metadata: RecordMetadata
    expires_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.kind not in TELEMETRY_KINDS:
            raise ValueError(f"Unknown telemetry kind '{self.kind}'")
        if self.category not in RECORD_CATEGORIES:
            raise ValueError(f"Unknown record category '{self.category}'")
        if not 0.0 <= self.relevance_score <= 1.0:
            raise ValueError(f"relevance_score out of range: {self.relevance_score}")

    def expiry(self, default_retention_hours: float) -> datetime:
        if self.expires_at is not None:
            return self.expires_at
        return self.timestamp + timedelta(hours=default_retention_hours)

    def is_expired(self, now: datetime, default_retention_hours: float) -> bool:
        return now > self.expiry(default_retention_hours)


def payload_fields(payload: TelemetryPayload) -> dict[str, Any]:
    """Flatten a payload into field name -> value for aggregation."""

    if isinstance(payload, EnvironmentalPayload):
        return dict(payload.context)
    return {item.name: getattr(payload, item.name) for item in fields(payload)}
