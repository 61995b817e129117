from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from productivity_insights.config import PatternAnalysisConfig
from productivity_insights.patterns import PatternAnalyzer, assess_data_quality, nearest_rank_quartiles
from productivity_insights.schema import Task, TaskSession

NOW = datetime(2025, 1, 15, 18, 0)


def completed_task(task_id, hour, days_ago=1, estimated=None, actual=None, priority="medium"):
    done = (NOW - timedelta(days=days_ago)).replace(hour=hour, minute=0)
    return Task(
        id=task_id,
        title=f"Task {task_id}",
        status="completed",
        priority=priority,
        created_at=done - timedelta(hours=2),
        updated_at=done,
        completed_at=done,
        estimated_duration=estimated,
        actual_duration=actual,
    )


def session_at(hour, score, days_ago=1):
    return TaskSession(started_at=(NOW - timedelta(days=days_ago)).replace(hour=hour), productivity_score=score)


def test_low_data_quality_returns_single_neutral_insight():
    tasks = [completed_task(str(i), 10) for i in range(4)]
    result = PatternAnalyzer().analyze_patterns(tasks, [session_at(10, 4)], now=NOW)

    assert result.patterns == []
    assert len(result.insights) == 1
    assert result.insights[0].category == "neutral"
    assert result.data_quality == "low"
    assert result.confidence == 0.1


def test_temporal_bucket_needs_three_completions():
    tasks = [completed_task(f"a{i}", 9) for i in range(2)] + [completed_task(f"b{i}", 14) for i in range(3)]
    result = PatternAnalyzer().analyze_patterns(tasks, [], now=NOW)

    temporal = result.of_family("temporal")
    assert [pattern.data.hour for pattern in temporal] == [14]
    assert temporal[0].confidence == pytest.approx(0.3)


def test_temporal_productivity_scenario():
    tasks = [completed_task(str(i), 10, days_ago=i + 1) for i in range(5)]
    sessions = [session_at(10, score, days_ago=i + 1) for i, score in enumerate([4, 5, 4, 5, 4])]
    result = PatternAnalyzer().analyze_patterns(tasks, sessions, now=NOW)

    (pattern,) = result.of_family("temporal")
    assert pattern.data.hour == 10
    assert pattern.confidence == pytest.approx(0.5)
    assert pattern.data.productivity_score == pytest.approx(4.4)
    assert any(insight.title == "High-productivity hours found" for insight in result.insights)
    assert result.recommendations[0].id == "schedule-important-tasks"


def test_duration_underestimation_insight_and_recommendation():
    tasks = [completed_task(str(i), 8 + i, estimated=50, actual=80) for i in range(6)]
    result = PatternAnalyzer().analyze_patterns(tasks, [], now=NOW)

    (pattern,) = result.of_family("duration")
    assert pattern.data.estimated_vs_actual == pytest.approx(1.6)
    assert pattern.insights[0] == "medium tasks consistently take 60% longer than estimated"
    assert any(insight.title == "Underestimation pattern detected" for insight in result.insights)
    assert "improve-estimation" in [rec.id for rec in result.recommendations]


def test_stuck_tasks_are_reported_as_blockage():
    stale = NOW - timedelta(days=10)
    stuck = [Task(f"s{i}", "Stuck", "in_progress", "high", NOW - timedelta(days=12), stale) for i in range(6)]
    tasks = stuck + [completed_task(str(i), 11) for i in range(5)]
    result = PatternAnalyzer().analyze_patterns(tasks, [], now=NOW)

    (pattern,) = result.of_family("blockage")
    assert pattern.frequency == 6
    assert pattern.data.priority_distribution == {"high": 6}
    warning = next(insight for insight in result.insights if insight.category == "warning")
    assert warning.priority == 1


def test_productivity_buckets_skip_missing_scores():
    tasks = [completed_task(str(i), 15) for i in range(5)]
    sessions = [session_at(9, score) for score in (4, 3, 5, None)] + [session_at(15, 0), session_at(16, 2)]
    result = PatternAnalyzer().analyze_patterns(tasks, sessions, now=NOW)

    (pattern,) = result.of_family("productivity")
    assert pattern.data.context == "morning"
    assert pattern.data.productivity_score == pytest.approx(4.0)


def test_disabled_families_are_skipped():
    config = PatternAnalysisConfig(enable_temporal_analysis=False)
    tasks = [completed_task(str(i), 10) for i in range(5)]
    assert PatternAnalyzer(config).analyze_patterns(tasks, [], now=NOW).of_family("temporal") == []


def test_analysis_window_excludes_old_tasks():
    tasks = [completed_task(str(i), 10, days_ago=40) for i in range(6)]
    assert PatternAnalyzer().analyze_patterns(tasks, [], now=NOW).data_quality == "low"


def test_data_quality_levels():
    tasks = [completed_task(str(i), 10, actual=30) for i in range(15)]
    sessions = [session_at(10, 4) for _ in range(10)]
    assert assess_data_quality(tasks, sessions) == "high"
    assert assess_data_quality(tasks[:6], sessions[:3]) == "medium"


def test_nearest_rank_quartiles():
    assert nearest_rank_quartiles([40, 10, 30, 20]) == (20, 40)


def test_tasks_and_sessions_without_timestamps_are_skipped():
    undated = replace(completed_task("undated", 10), created_at=None)
    tasks = [undated] + [completed_task(str(i), 10) for i in range(3)]
    result = PatternAnalyzer().analyze_patterns(tasks, [TaskSession(started_at=None, productivity_score=8)], now=NOW)

    assert result.data_quality == "low"
    assert result.insights[0].title == "Not enough data yet"


def test_failing_analysis_returns_error_result():
    tasks = [replace(completed_task(str(i), 10), completed_at="yesterday") for i in range(5)]
    sessions = [session_at(10, 6) for _ in range(3)]
    result = PatternAnalyzer().analyze_patterns(tasks, sessions, now=NOW)

    assert result.patterns == []
    (insight,) = result.insights
    assert insight.category == "negative"
    assert insight.title == "Analysis error"
    assert insight.priority == 2
    assert not insight.actionable
    assert result.recommendations == []
    assert result.confidence == 0.0
    assert result.data_quality == "low"
