"""Telemetry collectors.

Every collector is a pure function of its input entities and ``now``; none
of them touch the retention store.
"""

from __future__ import annotations

import itertools
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Any, Optional

from productivity_insights.schema import Project, Task, TaskSession
from productivity_insights.telemetry import (
    DeadlineRiskPayload,
    EnvironmentalPayload,
    HourlyProductivityPayload,
    ProjectDistributionPayload,
    RecordMetadata,
    SessionActivityPayload,
    TaskActivityPayload,
    TelemetryRecord,
    TemporalPayload,
)

UNASSIGNED_PROJECT = "unassigned"
PEAK_HOUR_FACTOR = 1.2
DUE_SOON_HOURS = 48

_RECENT_WINDOW = timedelta(hours=24)


_sequence = itertools.count(1)


def _suffix(now: datetime) -> str:
    """Millisecond stamp plus a process-wide sequence so ids stay unique within one millisecond."""
    return f"{int(now.timestamp() * 1000)}-{next(_sequence)}"


def day_of_week(moment: datetime) -> int:
    """Day index with Sunday as 0, matching stored work-day preferences."""
    return moment.isoweekday() % 7


def collect_user_behavior(tasks: list[Task], sessions: list[TaskSession], now: datetime) -> list[TelemetryRecord]:
    """Task-creation and session activity over the trailing 24 hours."""

    records: list[TelemetryRecord] = []

    recent_tasks = [task for task in tasks if now - task.created_at <= _RECENT_WINDOW]
    if recent_tasks:
        records.append(
            TelemetryRecord(
                id=f"user-behavior-tasks-{_suffix(now)}",
                kind="user_behavior",
                category="real_time",
                payload=TaskActivityPayload(
                    tasks_created_last_24h=len(recent_tasks),
                    avg_tasks_per_hour=len(recent_tasks) / 24,
                    status_distribution=dict(Counter(task.status for task in recent_tasks)),
                    priority_distribution=dict(Counter(task.priority for task in recent_tasks)),
                ),
                timestamp=now,
                relevance_score=min(len(recent_tasks) / 10, 1.0),
                source="task_creation_patterns",
                metadata=RecordMetadata("automatic", 0.8, ["tasks"]),
            )
        )

    recent_sessions = [session for session in sessions if now - session.started_at <= _RECENT_WINDOW]
    if recent_sessions:
        count = len(recent_sessions)
        records.append(
            TelemetryRecord(
                id=f"user-behavior-sessions-{_suffix(now)}",
                kind="user_behavior",
                category="real_time",
                payload=SessionActivityPayload(
                    sessions_last_24h=count,
                    avg_session_duration=sum(s.duration_minutes or 0 for s in recent_sessions) / count,
                    avg_productivity_score=sum(s.productivity_score or 0 for s in recent_sessions) / count,
                ),
                timestamp=now,
                relevance_score=min(count / 5, 1.0),
                source="work_session_patterns",
                metadata=RecordMetadata("automatic", 0.9, ["task_sessions"]),
            )
        )

    return records


def project_distribution(tasks: list[Task], projects: list[Project]) -> dict[str, int]:
    per_project = Counter(task.project_id for task in tasks)
    distribution = {project.name: per_project.get(project.id, 0) for project in projects}
    unassigned = per_project.get(None, 0)
    if unassigned:
        distribution[UNASSIGNED_PROJECT] = unassigned
    return distribution


def deadline_risk(tasks: list[Task], now: datetime) -> DeadlineRiskPayload:
    with_deadlines = [task for task in tasks if task.due_date is not None]
    if not with_deadlines:
        return DeadlineRiskPayload(tasks_with_deadlines=0)

    overdue = [task for task in with_deadlines if task.due_date < now]
    due_soon = [task for task in with_deadlines if now < task.due_date <= now + timedelta(hours=DUE_SOON_HOURS)]
    days_remaining = [max(0.0, (task.due_date - now).total_seconds() / 86400) for task in with_deadlines]

    return DeadlineRiskPayload(
        tasks_with_deadlines=len(with_deadlines),
        overdue_tasks=len(overdue),
        due_soon_tasks=len(due_soon),
        overdue_percentage=len(overdue) / len(with_deadlines) * 100.0,
        avg_days_to_deadline=sum(days_remaining) / len(days_remaining),
    )


def collect_task_patterns(tasks: list[Task], projects: list[Project], now: datetime) -> list[TelemetryRecord]:
    """Per-project distribution and deadline-risk statistics."""

    risk = deadline_risk(tasks, now)
    return [
        TelemetryRecord(
            id=f"task-patterns-projects-{_suffix(now)}",
            kind="task_patterns",
            category="historical",
            payload=ProjectDistributionPayload(
                project_distribution=project_distribution(tasks, projects),
                total_projects=len(projects),
                active_projects=sum(1 for project in projects if project.status == "active"),
            ),
            timestamp=now,
            relevance_score=0.8 if projects else 0.3,
            source="project_task_analysis",
            metadata=RecordMetadata("automatic", 0.85, ["tasks", "projects"]),
        ),
        TelemetryRecord(
            id=f"task-patterns-deadlines-{_suffix(now)}",
            kind="task_patterns",
            category="predictive",
            payload=risk,
            timestamp=now,
            relevance_score=0.9 if risk.tasks_with_deadlines > 0 else 0.2,
            source="deadline_pattern_analysis",
            metadata=RecordMetadata("automatic", 0.7, ["tasks"]),
        ),
    ]


def hourly_productivity(sessions: list[TaskSession]) -> dict[int, float]:
    scores_by_hour: dict[int, list[float]] = defaultdict(list)
    for session in sessions:
        if session.productivity_score is not None:
            scores_by_hour[session.started_at.hour].append(session.productivity_score)

    return {
        hour: (sum(scores_by_hour[hour]) / len(scores_by_hour[hour]) if scores_by_hour[hour] else 0.0)
        for hour in range(24)
    }


def peak_hours(hourly: dict[int, float]) -> list[int]:
    """Hours whose mean beats the 24-bucket average by 20%, best first."""

    average = sum(hourly.values()) / len(hourly)
    peaks = [hour for hour, score in hourly.items() if score > average * PEAK_HOUR_FACTOR]
    return sorted(peaks, key=lambda hour: hourly[hour], reverse=True)


def collect_productivity(sessions: list[TaskSession], now: datetime) -> list[TelemetryRecord]:
    if not sessions:
        return []

    hourly = hourly_productivity(sessions)
    return [
        TelemetryRecord(
            id=f"productivity-hourly-{_suffix(now)}",
            kind="productivity_metrics",
            category="historical",
            payload=HourlyProductivityPayload(
                hourly_productivity=hourly,
                peak_hours=peak_hours(hourly),
                average_productivity=sum(hourly.values()) / 24,
            ),
            timestamp=now,
            relevance_score=0.9,
            source="productivity_analysis",
            metadata=RecordMetadata("automatic", 0.85, ["task_sessions"]),
        )
    ]


def collect_environmental(
    context: Optional[dict[str, Any]],
    now: datetime,
    platform_signals: Optional[dict[str, Any]] = None,
) -> list[TelemetryRecord]:
    """Ambient context from the caller; caller values win over platform ones."""

    if not context:
        return []

    merged = {**(platform_signals or {}), **context}
    return [
        TelemetryRecord(
            id=f"environmental-{_suffix(now)}",
            kind="environmental",
            category="real_time",
            payload=EnvironmentalPayload(context=merged),
            timestamp=now,
            relevance_score=0.4,
            source="environment_context",
            metadata=RecordMetadata("provided", 0.6, sorted({"caller", *(["platform"] if platform_signals else [])})),
        )
    ]


def collect_temporal(now: datetime) -> list[TelemetryRecord]:
    weekday = day_of_week(now)
    is_weekend = weekday in (0, 6)
    return [
        TelemetryRecord(
            id=f"temporal-{_suffix(now)}",
            kind="temporal",
            category="real_time",
            payload=TemporalPayload(
                hour=now.hour,
                day_of_week=weekday,
                is_weekend=is_weekend,
                is_business_hours=not is_weekend and 9 <= now.hour < 17,
                day_quarter=now.hour // 6,
            ),
            timestamp=now,
            relevance_score=0.7,
            source="system_clock",
            metadata=RecordMetadata("automatic", 1.0, ["clock"]),
        )
    ]
