"""Insight synthesis from pattern analysis results."""

from __future__ import annotations

import itertools
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Protocol

from productivity_insights.config import InsightGenerationConfig
from productivity_insights.logging_config import get_logger
from productivity_insights.patterns import PatternAnalysisResult

logger = get_logger(__name__)

INSIGHT_CATEGORIES = ("positive", "suggestion", "warning", "critical", "opportunity", "neutral")
IMPACT_PRIORITY = {"high": 1, "medium": 2, "low": 3}
RECOMMENDATION_CONFIDENCE = 0.8


@dataclass
class InsightAction:
    id: str
    label: str
    type: str
    target: str = ""


@dataclass
class Insight:
    id: str
    type: str
    category: str
    title: str
    description: str
    actionable: bool
    priority: int
    confidence: float
    created_at: datetime
    expires_at: datetime
    data: dict[str, Any] = field(default_factory=dict)
    actions: list[InsightAction] = field(default_factory=list)
    dismissed_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.category not in INSIGHT_CATEGORIES:
            raise ValueError(f"Unknown insight category '{self.category}'")

    def is_live(self, now: datetime) -> bool:
        return self.dismissed_at is None and self.expires_at >= now


@dataclass
class UserContext:
    current_time: datetime
    current_task_id: Optional[str] = None
    preferences: dict[str, Any] = field(default_factory=dict)


@dataclass
class InsightContext:
    analysis: PatternAnalysisResult
    user: UserContext
    existing_insights: list[Insight]

    def already_covered(self, marker: str) -> bool:
        return any(marker in insight.id for insight in self.existing_insights)


@dataclass
class GeneratorResult:
    insights: list[Insight] = field(default_factory=list)
    patterns_used: list[str] = field(default_factory=list)


@dataclass
class InsightGenerationMeta:
    total_generated: int
    confidence: float
    processing_time_ms: float
    patterns_used: list[str]


@dataclass
class InsightGenerationResult:
    insights: list[Insight]
    meta: InsightGenerationMeta


class InsightSource(Protocol):
    def generate(self, context: InsightContext) -> GeneratorResult: ...


_sequence = itertools.count(1)


def _suffix(moment: datetime) -> str:
    return f"{int(moment.timestamp() * 1000)}-{next(_sequence)}"


class ProductivityInsights:
    """Best-hour and above-average-now insights from temporal patterns."""

    def generate(self, context: InsightContext) -> GeneratorResult:
        result = GeneratorResult()
        now = context.user.current_time
        temporal = context.analysis.of_family("temporal")
        current_hour = now.hour

        best = sorted(
            (p for p in temporal if p.data.productivity_score >= 4),
            key=lambda p: p.data.productivity_score,
            reverse=True,
        )
        if best and not context.already_covered("optimal-hours"):
            top = best[0]
            optimal_now = abs(current_hour - top.data.hour) <= 1
            result.insights.append(
                Insight(
                    id=f"optimal-hours-{_suffix(now)}",
                    type="productivity",
                    category="positive" if optimal_now else "suggestion",
                    title="Now is your best time to work" if optimal_now else "Optimize your work schedule",
                    description=(
                        f"You are in your most productive hour ({top.data.hour}:00). Use it for important tasks."
                        if optimal_now
                        else f"Your most productive hour is {top.data.hour}:00. Consider scheduling important tasks then."
                    ),
                    actionable=True,
                    priority=1 if optimal_now else 2,
                    confidence=top.confidence,
                    data={"optimal_hour": top.data.hour, "current_hour": current_hour},
                    actions=[]
                    if optimal_now
                    else [InsightAction("schedule-important-tasks", "Schedule important tasks", "navigate", "/tasks")],
                    created_at=now,
                    expires_at=now + timedelta(hours=4),
                )
            )
            result.patterns_used.append(top.id)

        current = next((p for p in temporal if p.data.hour == current_hour), None)
        if current is not None and not context.already_covered("current-productivity"):
            average = sum(p.data.productivity_score for p in temporal) / len(temporal)
            score = current.data.productivity_score
            if score > average + 0.5:
                result.insights.append(
                    Insight(
                        id=f"current-productivity-{_suffix(now)}",
                        type="productivity",
                        category="positive",
                        title="High-productivity moment",
                        description=f"Your productivity right now is above average ({score:.1f} vs {average:.1f}). Make the most of it!",
                        actionable=True,
                        priority=1,
                        confidence=current.confidence,
                        data={"current_score": score, "avg_productivity": average},
                        actions=[
                            InsightAction("tackle-complex-tasks", "View complex tasks", "navigate", "/tasks?priority=high")
                        ],
                        created_at=now,
                        expires_at=now + timedelta(hours=2),
                    )
                )
                result.patterns_used.append(current.id)

        return result


class TaskHealthInsights:
    def generate(self, context: InsightContext) -> GeneratorResult:
        result = GeneratorResult()
        now = context.user.current_time

        for pattern in context.analysis.of_family("blockage"):
            if pattern.frequency < 3 or context.already_covered(f"blockage-{pattern.id}"):
                continue
            severity = "critical" if pattern.frequency > 5 else "warning"
            result.insights.append(
                Insight(
                    id=f"blockage-{pattern.id}-{_suffix(now)}",
                    type="health",
                    category=severity,
                    title=f"{pattern.frequency} tasks need attention",
                    description="Some tasks have gone a long time without updates. That can point to a blocker or unclear next steps.",
                    actionable=True,
                    priority=1 if severity == "critical" else 2,
                    confidence=pattern.confidence,
                    data={"blocked_count": pattern.frequency, "blockers": list(pattern.data.common_blockers)},
                    actions=[
                        InsightAction("review-stuck-tasks", "Review stuck tasks", "navigate", "/tasks?filter=stuck"),
                        InsightAction("break-down-tasks", "Break down large tasks", "navigate", "/tasks"),
                    ],
                    created_at=now,
                    expires_at=now + timedelta(hours=12),
                )
            )
            result.patterns_used.append(pattern.id)

        return result


class TimingInsights:
    """Estimation-accuracy suggestion for the worst overrunning task type."""

    overrun_ratio = 1.3

    def __init__(self, lifespan_hours: float = 24) -> None:
        self.lifespan_hours = lifespan_hours

    def generate(self, context: InsightContext) -> GeneratorResult:
        result = GeneratorResult()
        now = context.user.current_time

        overruns = [p for p in context.analysis.of_family("duration") if p.data.estimated_vs_actual > self.overrun_ratio]
        if not overruns or context.already_covered("estimation-accuracy"):
            return result

        worst = max(overruns, key=lambda p: p.data.estimated_vs_actual)
        overrun_pct = round((worst.data.estimated_vs_actual - 1) * 100)
        result.insights.append(
            Insight(
                id=f"estimation-accuracy-{_suffix(now)}",
                type="task_management",
                category="suggestion",
                title="Improve your time estimates",
                description=f'Your "{worst.data.task_type}" tasks take {overrun_pct}% longer than estimated. Consider adjusting your estimates.',
                actionable=True,
                priority=2,
                confidence=worst.confidence,
                data={"task_type": worst.data.task_type, "overrun_percentage": overrun_pct},
                actions=[InsightAction("adjust-estimates", "Review estimates", "navigate", "/tasks")],
                created_at=now,
                expires_at=now + timedelta(hours=self.lifespan_hours),
            )
        )
        result.patterns_used.append(worst.id)
        return result


class RecommendationInsights:
    def generate(self, context: InsightContext) -> GeneratorResult:
        result = GeneratorResult()
        now = context.user.current_time

        for rec in context.analysis.recommendations:
            if context.already_covered(f"rec-{rec.id}"):
                continue
            result.insights.append(
                Insight(
                    id=f"rec-{rec.id}-{_suffix(now)}",
                    type="recommendation",
                    category="suggestion",
                    title=rec.title,
                    description=rec.description,
                    actionable=True,
                    priority=IMPACT_PRIORITY.get(rec.expected_impact, 3),
                    confidence=RECOMMENDATION_CONFIDENCE,
                    data={
                        "expected_impact": rec.expected_impact,
                        "effort": rec.effort,
                        "based_on_patterns": list(rec.based_on_patterns),
                    },
                    created_at=now,
                    expires_at=now + timedelta(hours=48),
                )
            )
            result.patterns_used.extend(rec.based_on_patterns)

        return result


class InsightSynthesizer:
    """Runs the enabled generators, then filters, ranks and caps their output."""

    def __init__(
        self,
        config: Optional[InsightGenerationConfig] = None,
        productivity: Optional[InsightSource] = None,
        task_health: Optional[InsightSource] = None,
        timing: Optional[InsightSource] = None,
        recommendations: Optional[InsightSource] = None,
    ) -> None:
        self.config = config or InsightGenerationConfig()
        self.productivity = productivity or ProductivityInsights()
        self.task_health = task_health or TaskHealthInsights()
        self.timing = timing or TimingInsights(self.config.insight_lifespan_hours)
        self.recommendations = recommendations or RecommendationInsights()

    def _sources(self) -> list[InsightSource]:
        config = self.config
        enabled = [
            (config.enable_productivity_insights, self.productivity),
            (config.enable_task_health_insights, self.task_health),
            (config.enable_timing_insights, self.timing),
            (config.enable_recommendations, self.recommendations),
        ]
        return [source for is_enabled, source in enabled if is_enabled]

    def generate_insights(
        self,
        analysis: PatternAnalysisResult,
        user: UserContext,
        existing_insights: Optional[list[Insight]] = None,
    ) -> InsightGenerationResult:
        started = time.perf_counter()
        try:
            live = [insight for insight in existing_insights or [] if insight.is_live(user.current_time)]
            context = InsightContext(analysis=analysis, user=user, existing_insights=live)

            generated: list[Insight] = []
            patterns_used: list[str] = []
            for source in self._sources():
                outcome = source.generate(context)
                generated.extend(outcome.insights)
                patterns_used.extend(outcome.patterns_used)

            ranked = self.prioritize(generated)
            return InsightGenerationResult(
                insights=ranked,
                meta=InsightGenerationMeta(
                    total_generated=len(generated),
                    confidence=self.overall_confidence(ranked, analysis),
                    processing_time_ms=(time.perf_counter() - started) * 1000,
                    patterns_used=list(dict.fromkeys(patterns_used)),
                ),
            )
        except Exception:  # noqa: BLE001
            logger.exception("insight_generation_failed")
            return InsightGenerationResult(
                insights=[],
                meta=InsightGenerationMeta(
                    total_generated=0,
                    confidence=0.0,
                    processing_time_ms=(time.perf_counter() - started) * 1000,
                    patterns_used=[],
                ),
            )

    def prioritize(self, insights: list[Insight]) -> list[Insight]:
        kept = [insight for insight in insights if insight.confidence >= self.config.min_confidence_threshold]
        kept.sort(key=lambda insight: (insight.priority, -insight.confidence))
        return kept[: self.config.max_insights_per_session]

    @staticmethod
    def overall_confidence(insights: list[Insight], analysis: PatternAnalysisResult) -> float:
        if not insights:
            return 0.0
        average = sum(insight.confidence for insight in insights) / len(insights)
        return average * 0.6 + analysis.confidence * 0.4
