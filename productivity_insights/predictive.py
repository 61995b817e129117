"""Predictive analysis from historical tasks and sessions.

Confidences in this module are percentages (0-100).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

import numpy as np

from productivity_insights.config import PredictiveConfig
from productivity_insights.logging_config import get_logger
from productivity_insights.schema import Project, Task, TaskSession

logger = get_logger(__name__)

PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}
SIMILARITY_THRESHOLD = 30
MIN_VELOCITY_SAMPLES = 10
STABLE_CHANGE_PCT = 10.0
PROJECT_KEYWORDS = ("project",)
DURATION_KEYWORDS = ("time", "duration", "how long")
PRODUCTIVITY_KEYWORDS = ("productivity", "performance", "velocity")
TREND_WORDING = {"increasing": "improving", "decreasing": "declining", "stable": "stable"}


@dataclass
class PredictiveInsight:
    type: str
    title: str
    description: str
    confidence: float
    data: Any
    actionable: bool
    priority: str


@dataclass
class CompletionPrediction:
    project_id: str
    project_name: str
    predicted_date: datetime
    confidence: float
    remaining_tasks: int
    average_velocity: float
    factors: list[str] = field(default_factory=list)


@dataclass
class DurationPrediction:
    task_id: str
    task_title: str
    predicted_duration: int
    confidence: float
    based_on_similar: int
    factors: list[str] = field(default_factory=list)


@dataclass
class TimeSlot:
    start: datetime
    end: datetime
    duration: int


@dataclass
class ScheduleOptimization:
    type: str
    title: str
    description: str
    suggested_tasks: list[str]
    reasoning: str
    time_slot: Optional[TimeSlot] = None


@dataclass
class VelocityTrend:
    period: str
    trend: str
    change_percent: float
    current_velocity: float
    previous_velocity: float
    factors: list[str] = field(default_factory=list)


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def _is_pending(task: Task) -> bool:
    return task.status == "pending"


def _title_words(title: str) -> set[str]:
    return {word for word in title.lower().split() if len(word) > 3}


def similarity_score(target: Task, other: Task) -> int:
    score = 0
    if target.project_id is not None and other.project_id == target.project_id:
        score += 30
    score += 20 * len(set(target.tags) & set(other.tags))
    if other.priority == target.priority:
        score += 15
    score += 10 * len(_title_words(target.title) & _title_words(other.title))
    return score


def find_similar_tasks(target: Task, tasks: list[Task]) -> list[Task]:
    return [task for task in tasks if task.id != target.id and similarity_score(target, task) >= SIMILARITY_THRESHOLD]


class PredictiveAnalyzer:
    def __init__(self, user_id: str, config: Optional[PredictiveConfig] = None) -> None:
        self.user_id = user_id
        self.config = config or PredictiveConfig()

    def generate_all_insights(
        self,
        tasks: list[Task],
        projects: list[Project],
        sessions: list[TaskSession],
        now: Optional[datetime] = None,
    ) -> list[PredictiveInsight]:
        now = now or datetime.now()
        try:
            insights = self._collect(tasks, projects, sessions, now)
        except Exception:  # noqa: BLE001
            logger.exception("predictive_analysis_failed", user_id=self.user_id)
            return []

        insights.sort(key=lambda insight: (PRIORITY_RANK[insight.priority], insight.confidence), reverse=True)
        return insights[: self.config.max_insights]

    def generate_contextual_insights(
        self,
        query: str,
        tasks: list[Task],
        projects: list[Project],
        sessions: list[TaskSession],
        now: Optional[datetime] = None,
    ) -> list[str]:
        """Short text answers for a free-form question about projects, time or productivity.

        Topics are picked by keyword and answered in that order; a query that
        names none of them gets an empty list.
        """
        now = now or datetime.now()
        text = query.lower()
        lines: list[str] = []
        try:
            if any(word in text for word in PROJECT_KEYWORDS):
                for prediction in self.predict_project_completions(tasks, projects, now):
                    lines.append(
                        f"{prediction.project_name}: done by {prediction.predicted_date:%Y-%m-%d} "
                        f"(current pace {prediction.average_velocity:.1f} tasks/day, "
                        f"{prediction.remaining_tasks} tasks remaining)"
                    )

            if any(word in text for word in DURATION_KEYWORDS):
                for prediction in self.predict_task_durations(tasks)[:2]:
                    lines.append(
                        f'"{prediction.task_title}" usually takes you {prediction.predicted_duration} minutes '
                        f"(based on {prediction.based_on_similar} similar tasks, "
                        f"confidence {prediction.confidence:.0f}%)"
                    )

            if any(word in text for word in PRODUCTIVITY_KEYWORDS):
                trend = self.analyze_velocity_trend(tasks, now)
                if trend is not None:
                    lines.append(
                        f"Productivity trend: {TREND_WORDING[trend.trend]} "
                        f"({trend.change_percent:+.1f}% vs the previous week)"
                    )
        except Exception:  # noqa: BLE001
            logger.exception("contextual_insights_failed", user_id=self.user_id)
            return []
        return lines

    def _collect(
        self,
        tasks: list[Task],
        projects: list[Project],
        sessions: list[TaskSession],
        now: datetime,
    ) -> list[PredictiveInsight]:
        insights: list[PredictiveInsight] = []

        for prediction in self.predict_project_completions(tasks, projects, now):
            insights.append(
                PredictiveInsight(
                    type="project_completion",
                    title=f'Project "{prediction.project_name}" will be done by {prediction.predicted_date:%Y-%m-%d}',
                    description=(
                        f"At your current pace of {prediction.average_velocity:.1f} tasks/day, "
                        f"{prediction.remaining_tasks} tasks remain."
                    ),
                    confidence=prediction.confidence,
                    data=prediction,
                    actionable=True,
                    priority="high" if prediction.confidence > 80 else "medium" if prediction.confidence > 60 else "low",
                )
            )

        for prediction in self.predict_task_durations(tasks):
            insights.append(
                PredictiveInsight(
                    type="task_duration",
                    title=f'"{prediction.task_title}" usually takes you {prediction.predicted_duration} minutes',
                    description=f"Based on {prediction.based_on_similar} similar tasks. Block out that time?",
                    confidence=prediction.confidence,
                    data=prediction,
                    actionable=True,
                    priority="medium" if prediction.confidence > 70 else "low",
                )
            )

        for optimization in self.generate_schedule_optimizations(tasks, sessions, now):
            insights.append(
                PredictiveInsight(
                    type="schedule_optimization",
                    title=optimization.title,
                    description=optimization.description,
                    confidence=85,
                    data=optimization,
                    actionable=True,
                    priority="medium",
                )
            )

        trend = self.analyze_velocity_trend(tasks, now)
        if trend is not None:
            wording = TREND_WORDING[trend.trend]
            insights.append(
                PredictiveInsight(
                    type="velocity_trend",
                    title=f"Your productivity is {wording}",
                    description=(
                        f"{trend.change_percent:+.1f}% vs the previous period "
                        f"({trend.current_velocity:.1f} tasks/day)"
                    ),
                    confidence=90,
                    data=trend,
                    actionable=trend.trend != "stable",
                    priority="high" if abs(trend.change_percent) > 20 else "medium",
                )
            )

        return insights

    def predict_project_completions(
        self, tasks: list[Task], projects: list[Project], now: datetime
    ) -> list[CompletionPrediction]:
        predictions = []
        for project in projects:
            if project.status != "active":
                continue

            project_tasks = [task for task in tasks if task.project_id == project.id]
            completed = [task for task in project_tasks if task.is_completed]
            remaining = [task for task in project_tasks if not task.is_completed]
            completion_times = [task.completed_at for task in completed if task.completed_at is not None]
            if not remaining or len(completion_times) < 2:
                continue

            span_days = max(1.0, (max(completion_times) - min(completion_times)).total_seconds() / 86400)
            velocity = len(completed) / span_days
            if velocity <= 0:
                continue

            days_to_complete = len(remaining) / velocity
            predicted = now + timedelta(days=math.ceil(days_to_complete))
            confidence = _clamp(80 - abs(days_to_complete - 7) * 2 + len(completed) * 2, 50, 95)

            factors = []
            if any(task.priority == "high" for task in remaining):
                factors.append("High-priority tasks pending")
            if velocity > 1:
                factors.append("Strong historical velocity")
            if project.deadline is not None and predicted > project.deadline:
                factors.append("May slip past the project deadline")

            predictions.append(
                CompletionPrediction(
                    project_id=project.id,
                    project_name=project.name,
                    predicted_date=predicted,
                    confidence=confidence,
                    remaining_tasks=len(remaining),
                    average_velocity=velocity,
                    factors=factors,
                )
            )
        return predictions[:3]

    def predict_task_durations(self, tasks: list[Task]) -> list[DurationPrediction]:
        candidates = [
            task for task in tasks if _is_pending(task) and not (task.estimated_duration and task.estimated_duration > 0)
        ][:5]

        predictions = []
        for task in candidates:
            similar = [
                other
                for other in find_similar_tasks(task, tasks)
                if other.is_completed and other.actual_duration and other.actual_duration > 0
            ]
            if len(similar) < 2:
                continue

            durations = np.asarray([other.actual_duration for other in similar], dtype=float)
            mean = float(durations.mean())
            variation = float(durations.std()) / mean
            confidence = _clamp(90 - variation * 100, 40, 95)

            factors = []
            if task.priority == "high":
                factors.append("High priority")
            if task.tags:
                factors.append(f"Tags: {', '.join(task.tags)}")
            if len(similar) >= 5:
                factors.append("Broad historical base")

            predictions.append(
                DurationPrediction(
                    task_id=task.id,
                    task_title=task.title,
                    predicted_duration=round(mean),
                    confidence=confidence,
                    based_on_similar=len(similar),
                    factors=factors,
                )
            )
        return [prediction for prediction in predictions if prediction.confidence > 60][:3]

    def generate_schedule_optimizations(
        self, tasks: list[Task], sessions: list[TaskSession], now: datetime
    ) -> list[ScheduleOptimization]:
        checks = (
            self.find_free_slot(tasks, now),
            self.find_optimal_timing(tasks, sessions),
            self.analyze_workload_balance(tasks),
        )
        return [optimization for optimization in checks if optimization is not None]

    def find_free_slot(self, tasks: list[Task], now: datetime) -> Optional[ScheduleOptimization]:
        quick = [
            task for task in tasks if _is_pending(task) and (task.estimated_duration or 0) <= self.config.quick_task_minutes
        ]
        if not quick:
            return None

        start = now.replace(hour=self.config.free_slot_hour, minute=0, second=0, microsecond=0)
        minutes = self.config.free_slot_minutes
        return ScheduleOptimization(
            type="free_slot",
            title=f"You have {minutes} free minutes after lunch",
            description=f"A good fit for {len(quick)} pending quick task(s)",
            suggested_tasks=[task.title for task in quick[:3]],
            reasoning="Low-load slot suited to short tasks",
            time_slot=TimeSlot(start=start, end=start + timedelta(minutes=minutes), duration=minutes),
        )

    def find_optimal_timing(self, tasks: list[Task], sessions: list[TaskSession]) -> Optional[ScheduleOptimization]:
        def average(low: int, high: int) -> float:
            scores = [
                session.productivity_score if session.productivity_score else 7
                for session in sessions
                if low <= session.started_at.hour <= high
            ]
            return sum(scores) / len(scores) if scores else 0.0

        morning = average(9, 11)
        afternoon = average(14, 16)
        if morning <= afternoon + 1:
            return None

        high_priority = [task for task in tasks if _is_pending(task) and task.priority == "high"]
        if not high_priority:
            return None

        return ScheduleOptimization(
            type="optimal_timing",
            title="Mornings are your most productive time",
            description=f"Productivity {morning:.1f}/10 in the morning vs {afternoon:.1f}/10 in the afternoon",
            suggested_tasks=[task.title for task in high_priority[:2]],
            reasoning="Reserve mornings for high-priority tasks",
        )

    def analyze_workload_balance(self, tasks: list[Task]) -> Optional[ScheduleOptimization]:
        pending = [task for task in tasks if _is_pending(task)]
        high = sum(1 for task in pending if task.priority == "high")
        if not pending or high <= len(pending) * 0.7:
            return None

        return ScheduleOptimization(
            type="workload_balance",
            title="High share of urgent tasks",
            description=f"{high} of {len(pending)} tasks are high priority ({round(high / len(pending) * 100)}%)",
            suggested_tasks=["Review priorities", "Delegate less critical tasks"],
            reasoning="Rebalancing priorities reduces pressure",
        )

    def analyze_velocity_trend(self, tasks: list[Task], now: datetime) -> Optional[VelocityTrend]:
        completed = [task for task in tasks if task.is_completed and task.completed_at is not None]
        if len(completed) < MIN_VELOCITY_SAMPLES:
            return None

        last_week = now - timedelta(days=7)
        two_weeks_ago = now - timedelta(days=14)
        recent = [task for task in completed if task.completed_at >= last_week]
        previous = [task for task in completed if two_weeks_ago <= task.completed_at < last_week]
        if not recent or not previous:
            return None

        current_velocity = len(recent) / 7
        previous_velocity = len(previous) / 7
        change = (current_velocity - previous_velocity) / previous_velocity * 100

        if abs(change) < STABLE_CHANGE_PCT:
            trend = "stable"
        elif change > 0:
            trend = "increasing"
        else:
            trend = "decreasing"

        factors = []
        if trend == "increasing":
            factors.append("Better focus and organization")
        if trend == "decreasing":
            factors.append("Possible overload or distractions")
        if any(task.priority == "high" for task in recent):
            factors.append("Completing high-priority tasks")

        return VelocityTrend(
            period="daily",
            trend=trend,
            change_percent=change,
            current_velocity=current_velocity,
            previous_velocity=previous_velocity,
            factors=factors,
        )
