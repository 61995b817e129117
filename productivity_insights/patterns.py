"""Work-pattern mining over tasks and sessions.

Five independent passes (temporal, task type, duration, productivity,
blockage) run over a trailing analysis window, gated by a data-quality
check. Each pass needs a minimum sample count before it reports anything,
and confidences scale with that count up to a per-family cap.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import ClassVar, Optional, Union

import numpy as np

from productivity_insights.config import PatternAnalysisConfig
from productivity_insights.logging_config import get_logger
from productivity_insights.schema import Task, TaskSession

logger = get_logger(__name__)

PATTERN_FAMILIES = ("temporal", "task_type", "duration", "productivity", "blockage")

MIN_TEMPORAL_COMPLETIONS = 3
MIN_DURATION_SAMPLES = 5
MIN_PRODUCTIVITY_SESSIONS = 5
MIN_PRODUCTIVITY_BUCKET = 3
MIN_STUCK_TASKS = 3
STALE_AFTER_DAYS = 7
HIGH_PRODUCTIVITY_SCORE = 4
UNDERESTIMATION_RATIO = 1.5
ESTIMATION_RECOMMENDATION_RATIO = 1.3


@dataclass
class TemporalPatternData:
    family: ClassVar[str] = "temporal"

    hour: int
    productivity_score: float
    tasks_completed: int
    average_duration: float
    day_of_week: int = -1


@dataclass
class TaskTypePatternData:
    family: ClassVar[str] = "task_type"

    task_priority: str
    completion_rate: float
    average_completion_time: float
    task_category: str = "general"
    common_blockers: list[str] = field(default_factory=list)


@dataclass
class DurationPatternData:
    family: ClassVar[str] = "duration"

    task_type: str
    estimated_vs_actual: float
    optimal_duration_range: tuple[float, float]
    productivity_correlation: float = 0.0


@dataclass
class ProductivityPatternData:
    family: ClassVar[str] = "productivity"

    context: str
    productivity_score: float
    tasks_completed: int = 0
    quality_indicators: dict[str, float] = field(default_factory=dict)


@dataclass
class BlockagePatternData:
    family: ClassVar[str] = "blockage"

    common_blockers: list[str]
    average_block_duration: float
    resolution_patterns: list[str]
    prevention_suggestions: list[str]
    priority_distribution: dict[str, int] = field(default_factory=dict)


PatternData = Union[
    TemporalPatternData,
    TaskTypePatternData,
    DurationPatternData,
    ProductivityPatternData,
    BlockagePatternData,
]


@dataclass
class WorkPattern:
    id: str
    family: str
    confidence: float
    frequency: int
    data: PatternData
    insights: list[str]
    created_at: datetime
    last_observed: datetime

    def __post_init__(self) -> None:
        if self.family not in PATTERN_FAMILIES:
            raise ValueError(f"Unknown pattern family '{self.family}'")


@dataclass
class PatternInsight:
    category: str
    title: str
    description: str
    pattern_ids: list[str]
    priority: int
    actionable: bool


@dataclass
class PatternRecommendation:
    id: str
    type: str
    title: str
    description: str
    expected_impact: str
    effort: str
    based_on_patterns: list[str]


@dataclass
class PatternAnalysisResult:
    patterns: list[WorkPattern]
    insights: list[PatternInsight]
    recommendations: list[PatternRecommendation]
    confidence: float
    data_quality: str

    def of_family(self, family: str) -> list[WorkPattern]:
        return [pattern for pattern in self.patterns if pattern.family == family]


def _mean(values: list[float]) -> float:
    return float(np.mean(values)) if values else 0.0


def assess_data_quality(tasks: list[Task], sessions: list[TaskSession]) -> str:
    completed = sum(1 for task in tasks if task.is_completed)
    session_count = len(sessions)
    with_duration = sum(1 for task in tasks if task.actual_duration)

    if completed < 5 and session_count < 3:
        return "low"
    if 5 <= completed < 15 and session_count >= 3:
        return "medium"
    if completed >= 15 and session_count >= 10 and with_duration >= 5:
        return "high"
    return "medium"


def overall_confidence(patterns: list[WorkPattern]) -> float:
    if not patterns:
        return 0.0
    average = _mean([pattern.confidence for pattern in patterns])
    return min(average + min(len(patterns) / 10, 0.2), 1.0)


def nearest_rank_quartiles(values: list[float]) -> tuple[float, float]:
    """Q1/Q3 by direct index into the sorted values, no interpolation."""

    ordered = sorted(values)
    n = len(ordered)
    return ordered[int(n * 0.25)], ordered[int(n * 0.75)]


def _temporal_insights(hour: int, completions: int, productivity: float) -> list[str]:
    insights = []
    if productivity >= HIGH_PRODUCTIVITY_SCORE:
        insights.append(f"High-productivity hour {hour}:00 ({productivity:.1f}/5)")
    if completions >= 5:
        insights.append(f"High-completion hour ({completions} tasks completed)")
    return insights


def _task_type_insights(priority: str, completion_rate: float, avg_duration: float) -> list[str]:
    insights = []
    if completion_rate >= 0.8:
        insights.append(f"High completion rate for {priority} tasks ({completion_rate * 100:.0f}%)")
    elif completion_rate <= 0.5:
        insights.append(f"Low completion rate for {priority} tasks ({completion_rate * 100:.0f}%)")
    if avg_duration > 0:
        insights.append(f"Average duration: {round(avg_duration)} minutes")
    return insights


def _duration_insights(task_type: str, ratio: float, window: tuple[float, float]) -> list[str]:
    insights = []
    if ratio > UNDERESTIMATION_RATIO:
        insights.append(f"{task_type} tasks consistently take {ratio * 100 - 100:.0f}% longer than estimated")
    elif ratio < 0.8:
        insights.append(f"{task_type} tasks take {100 - ratio * 100:.0f}% less time than estimated")
    insights.append(f"Typical duration range: {round(window[0])}-{round(window[1])} minutes")
    return insights


class PatternAnalyzer:
    """Stateless pattern mining; every call recomputes from its inputs."""

    def __init__(self, config: Optional[PatternAnalysisConfig] = None) -> None:
        self.config = config or PatternAnalysisConfig()

    def analyze_patterns(
        self,
        tasks: list[Task],
        sessions: Optional[list[TaskSession]] = None,
        now: Optional[datetime] = None,
    ) -> PatternAnalysisResult:
        now = now or datetime.now()
        try:
            return self._analyze(tasks, sessions or [], now)
        except Exception:  # noqa: BLE001
            logger.exception("pattern_analysis_failed", tasks=len(tasks), sessions=len(sessions or []))
            return PatternAnalysisResult(
                patterns=[],
                insights=[
                    PatternInsight(
                        category="negative",
                        title="Analysis error",
                        description="Something went wrong while analyzing work patterns. It will be retried later.",
                        pattern_ids=[],
                        priority=2,
                        actionable=False,
                    )
                ],
                recommendations=[],
                confidence=0.0,
                data_quality="low",
            )

    def _analyze(self, tasks: list[Task], sessions: list[TaskSession], now: datetime) -> PatternAnalysisResult:
        window_start = now - timedelta(days=self.config.analysis_window_days)
        recent_tasks = [task for task in tasks if task.created_at is not None and task.created_at >= window_start]
        recent_sessions = [
            session for session in sessions if session.started_at is not None and session.started_at >= window_start
        ]

        data_quality = assess_data_quality(recent_tasks, recent_sessions)
        if data_quality == "low":
            return PatternAnalysisResult(
                patterns=[],
                insights=[
                    PatternInsight(
                        category="neutral",
                        title="Not enough data yet",
                        description="More task and session activity is needed before work patterns can be analyzed.",
                        pattern_ids=[],
                        priority=3,
                        actionable=False,
                    )
                ],
                recommendations=[],
                confidence=0.1,
                data_quality=data_quality,
            )

        patterns = self._mine(recent_tasks, recent_sessions, now)
        return PatternAnalysisResult(
            patterns=patterns,
            insights=self.generate_insights(patterns),
            recommendations=self.generate_recommendations(patterns),
            confidence=overall_confidence(patterns),
            data_quality=data_quality,
        )

    def _mine(self, tasks: list[Task], sessions: list[TaskSession], now: datetime) -> list[WorkPattern]:
        config = self.config
        patterns: list[WorkPattern] = []
        if config.enable_temporal_analysis:
            patterns.extend(self.analyze_temporal(tasks, sessions, now))
        if config.enable_task_type_analysis:
            patterns.extend(self.analyze_task_types(tasks, now))
        if config.enable_duration_analysis:
            patterns.extend(self.analyze_durations(tasks, now))
        if config.enable_productivity_analysis:
            patterns.extend(self.analyze_productivity(sessions, now))
        if config.enable_blockage_detection:
            patterns.extend(self.detect_blockages(tasks, now))
        return patterns

    def analyze_temporal(self, tasks: list[Task], sessions: list[TaskSession], now: datetime) -> list[WorkPattern]:
        completions: Counter = Counter()
        total_minutes: dict[int, float] = defaultdict(float)
        for task in tasks:
            if task.is_completed and task.completed_at is not None:
                hour = task.completed_at.hour
                completions[hour] += 1
                if task.actual_duration:
                    total_minutes[hour] += task.actual_duration

        scores: dict[int, list[float]] = defaultdict(list)
        for session in sessions:
            hour = session.started_at.hour
            if session.productivity_score and hour in completions:
                scores[hour].append(session.productivity_score)

        patterns = []
        for hour in sorted(completions):
            count = completions[hour]
            if count < MIN_TEMPORAL_COMPLETIONS:
                continue
            productivity = _mean(scores[hour])
            average_duration = total_minutes[hour] / count if total_minutes[hour] > 0 else 0.0
            patterns.append(
                WorkPattern(
                    id=f"temporal-hour-{hour}",
                    family="temporal",
                    confidence=min(count / 10, 0.9),
                    frequency=count,
                    data=TemporalPatternData(
                        hour=hour,
                        productivity_score=productivity,
                        tasks_completed=count,
                        average_duration=average_duration,
                    ),
                    insights=_temporal_insights(hour, count, productivity),
                    created_at=now,
                    last_observed=now,
                )
            )
        return patterns

    def analyze_task_types(self, tasks: list[Task], now: datetime) -> list[WorkPattern]:
        totals: Counter = Counter()
        completed: Counter = Counter()
        durations: dict[str, list[float]] = defaultdict(list)
        for task in tasks:
            priority = task.priority or "medium"
            totals[priority] += 1
            if task.is_completed:
                completed[priority] += 1
                if task.actual_duration:
                    durations[priority].append(task.actual_duration)

        patterns = []
        for priority, total in totals.items():
            if total < self.config.min_data_points:
                continue
            completion_rate = completed[priority] / total
            average = _mean(durations[priority])
            patterns.append(
                WorkPattern(
                    id=f"task-type-priority-{priority}",
                    family="task_type",
                    confidence=min(total / 20, 0.8),
                    frequency=total,
                    data=TaskTypePatternData(
                        task_priority=priority,
                        completion_rate=completion_rate,
                        average_completion_time=average,
                    ),
                    insights=_task_type_insights(priority, completion_rate, average),
                    created_at=now,
                    last_observed=now,
                )
            )
        return patterns

    def analyze_durations(self, tasks: list[Task], now: datetime) -> list[WorkPattern]:
        estimated: dict[str, list[float]] = defaultdict(list)
        actual: dict[str, list[float]] = defaultdict(list)
        for task in tasks:
            if task.estimated_duration and task.actual_duration:
                task_type = task.priority or "general"
                estimated[task_type].append(task.estimated_duration)
                actual[task_type].append(task.actual_duration)

        patterns = []
        for task_type, estimates in estimated.items():
            count = len(estimates)
            if count < MIN_DURATION_SAMPLES:
                continue
            ratio = _mean(actual[task_type]) / _mean(estimates)
            window = nearest_rank_quartiles(actual[task_type])
            patterns.append(
                WorkPattern(
                    id=f"duration-{task_type}",
                    family="duration",
                    confidence=min(count / 15, 0.8),
                    frequency=count,
                    data=DurationPatternData(
                        task_type=task_type,
                        estimated_vs_actual=ratio,
                        optimal_duration_range=window,
                    ),
                    insights=_duration_insights(task_type, ratio, window),
                    created_at=now,
                    last_observed=now,
                )
            )
        return patterns

    def analyze_productivity(self, sessions: list[TaskSession], now: datetime) -> list[WorkPattern]:
        if len(sessions) < MIN_PRODUCTIVITY_SESSIONS:
            return []

        buckets = {
            "morning": [s.productivity_score for s in sessions if s.started_at.hour < 12],
            "afternoon": [s.productivity_score for s in sessions if s.started_at.hour >= 12],
        }

        patterns = []
        for context, raw_scores in buckets.items():
            scores = [score for score in raw_scores if score is not None and score > 0]
            if len(scores) < MIN_PRODUCTIVITY_BUCKET:
                continue
            average = _mean(scores)
            patterns.append(
                WorkPattern(
                    id=f"productivity-{context}",
                    family="productivity",
                    confidence=min(len(scores) / 10, 0.8),
                    frequency=len(scores),
                    data=ProductivityPatternData(
                        context=context,
                        productivity_score=average,
                        quality_indicators={"focus": average},
                    ),
                    insights=[f"Average {context} productivity: {average:.1f}/5"],
                    created_at=now,
                    last_observed=now,
                )
            )
        return patterns

    def detect_blockages(self, tasks: list[Task], now: datetime) -> list[WorkPattern]:
        stale_after = timedelta(days=STALE_AFTER_DAYS)
        stuck = [task for task in tasks if task.is_open and now - task.updated_at > stale_after]
        if len(stuck) < MIN_STUCK_TASKS:
            return []

        priorities = Counter(task.priority or "medium" for task in stuck)
        return [
            WorkPattern(
                id="blockage-stuck-tasks",
                family="blockage",
                confidence=min(len(stuck) / 10, 0.8),
                frequency=len(stuck),
                data=BlockagePatternData(
                    common_blockers=["lack_of_progress", "no_recent_updates"],
                    average_block_duration=STALE_AFTER_DAYS * 24 * 60,
                    resolution_patterns=["task_breakdown", "priority_review"],
                    prevention_suggestions=[
                        "Set regular check-in reminders",
                        "Split large tasks into subtasks",
                        "Review priorities weekly",
                    ],
                    priority_distribution=dict(priorities),
                ),
                insights=[
                    f"{len(stuck)} tasks have not been updated in over {STALE_AFTER_DAYS} days",
                    f"Most affected priorities: {', '.join(priorities)}",
                ],
                created_at=now,
                last_observed=now,
            )
        ]

    def generate_insights(self, patterns: list[WorkPattern]) -> list[PatternInsight]:
        insights = []

        temporal = [p for p in patterns if p.family == "temporal"]
        best_hours = [p.data.hour for p in temporal if p.data.productivity_score >= HIGH_PRODUCTIVITY_SCORE]
        if best_hours:
            insights.append(
                PatternInsight(
                    category="positive",
                    title="High-productivity hours found",
                    description=f"You work best between {min(best_hours)}:00 and {max(best_hours)}:00",
                    pattern_ids=[p.id for p in temporal],
                    priority=1,
                    actionable=True,
                )
            )

        underestimated = [
            p for p in patterns if p.family == "duration" and p.data.estimated_vs_actual > UNDERESTIMATION_RATIO
        ]
        if underestimated:
            insights.append(
                PatternInsight(
                    category="opportunity",
                    title="Underestimation pattern detected",
                    description="You tend to underestimate time for task types: "
                    + ", ".join(p.data.task_type for p in underestimated),
                    pattern_ids=[p.id for p in underestimated],
                    priority=2,
                    actionable=True,
                )
            )

        for pattern in patterns:
            if pattern.family != "blockage":
                continue
            insights.append(
                PatternInsight(
                    category="warning",
                    title="Stuck tasks detected",
                    description=f"{pattern.frequency} open tasks have not moved in over {STALE_AFTER_DAYS} days",
                    pattern_ids=[pattern.id],
                    priority=1 if pattern.frequency > 5 else 2,
                    actionable=True,
                )
            )

        return insights

    def generate_recommendations(self, patterns: list[WorkPattern]) -> list[PatternRecommendation]:
        recommendations = []

        temporal = [p for p in patterns if p.family == "temporal"]
        best_hours = [p.data.hour for p in temporal if p.data.productivity_score >= HIGH_PRODUCTIVITY_SCORE]
        if best_hours:
            recommendations.append(
                PatternRecommendation(
                    id="schedule-important-tasks",
                    type="timing",
                    title="Schedule important work in your best hours",
                    description=f"Put your most important tasks between {min(best_hours)}:00 and {max(best_hours)}:00",
                    expected_impact="high",
                    effort="low",
                    based_on_patterns=[p.id for p in temporal],
                )
            )

        durations = [p for p in patterns if p.family == "duration"]
        if any(p.data.estimated_vs_actual > ESTIMATION_RECOMMENDATION_RATIO for p in durations):
            recommendations.append(
                PatternRecommendation(
                    id="improve-estimation",
                    type="task_management",
                    title="Improve time estimates",
                    description="Consider adding 30-50% to your initial estimates",
                    expected_impact="medium",
                    effort="low",
                    based_on_patterns=[p.id for p in durations],
                )
            )

        return recommendations
