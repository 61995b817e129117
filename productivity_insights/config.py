"""Component configuration and YAML loading."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional

import yaml

CONFIG_ENV_VAR = "PRODUCTIVITY_INSIGHTS_CONFIG"


@dataclass
class CollectorConfig:
    enable_user_behavior_tracking: bool = True
    enable_task_pattern_tracking: bool = True
    enable_productivity_metrics: bool = True
    enable_environmental_data: bool = True
    enable_temporal_data: bool = True
    max_data_points_per_type: int = 1000
    default_retention_hours: float = 168
    min_relevance_score: float = 0.1
    aggregation_interval_minutes: int = 15


@dataclass
class PatternAnalysisConfig:
    min_data_points: int = 10
    confidence_threshold: float = 0.6
    analysis_window_days: int = 30
    enable_temporal_analysis: bool = True
    enable_task_type_analysis: bool = True
    enable_duration_analysis: bool = True
    enable_productivity_analysis: bool = True
    enable_blockage_detection: bool = True


@dataclass
class InsightGenerationConfig:
    enable_productivity_insights: bool = True
    enable_task_health_insights: bool = True
    enable_timing_insights: bool = True
    enable_recommendations: bool = True
    min_confidence_threshold: float = 0.6
    max_insights_per_session: int = 5
    insight_lifespan_hours: float = 24


@dataclass
class PredictiveConfig:
    max_insights: int = 5
    free_slot_hour: int = 14
    free_slot_minutes: int = 30
    quick_task_minutes: float = 30


@dataclass
class AlertConfig:
    default_deadline_days_before: list[int] = field(default_factory=lambda: [0, 1, 2])


@dataclass
class AnalyticsConfig:
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    patterns: PatternAnalysisConfig = field(default_factory=PatternAnalysisConfig)
    insights: InsightGenerationConfig = field(default_factory=InsightGenerationConfig)
    predictive: PredictiveConfig = field(default_factory=PredictiveConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)


def _apply_section(section: Any, values: Optional[dict], name: str) -> Any:
    if values is None:
        return section
    if not isinstance(values, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")

    known = {item.name for item in fields(section)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Config section '{name}': unknown keys {unknown}")
    return replace(section, **values)


def config_from_dict(payload: dict) -> AnalyticsConfig:
    """Build a config from a parsed mapping, starting from defaults."""

    config = AnalyticsConfig()
    unknown = sorted(set(payload) - {item.name for item in fields(config)})
    if unknown:
        raise ValueError(f"Unknown config sections {unknown}")

    return AnalyticsConfig(
        collector=_apply_section(config.collector, payload.get("collector"), "collector"),
        patterns=_apply_section(config.patterns, payload.get("patterns"), "patterns"),
        insights=_apply_section(config.insights, payload.get("insights"), "insights"),
        predictive=_apply_section(config.predictive, payload.get("predictive"), "predictive"),
        alerts=_apply_section(config.alerts, payload.get("alerts"), "alerts"),
    )


def load_config(path: str | Path | None = None) -> AnalyticsConfig:
    """Load configuration from YAML, falling back to defaults when absent."""

    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR)
    if path is None:
        return AnalyticsConfig()

    config_path = Path(path)
    if not config_path.exists():
        return AnalyticsConfig()

    with open(config_path, encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}

    if not isinstance(payload, dict):
        raise ValueError("Config document must be a mapping")
    return config_from_dict(payload)
