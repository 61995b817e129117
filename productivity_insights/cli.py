"""Run the analytics pipeline over a task/session/project snapshot."""

from __future__ import annotations

import argparse
import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from productivity_insights.adapters import csv_adapter, json_adapter
from productivity_insights.alerts import ProactiveAlertScheduler
from productivity_insights.collection import TelemetryCollector
from productivity_insights.config import AnalyticsConfig, load_config
from productivity_insights.insights import InsightSynthesizer, UserContext
from productivity_insights.logging_config import get_logger, setup_logging
from productivity_insights.patterns import PatternAnalyzer
from productivity_insights.predictive import PredictiveAnalyzer
from productivity_insights.preferences import InMemoryPreferenceStore
from productivity_insights.schema import Snapshot

logger = get_logger(__name__)


def _load_snapshot(path: Path) -> Snapshot:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return csv_adapter.parse(str(path))
    if suffix == ".json":
        return json_adapter.parse(str(path))
    raise ValueError("Unsupported input format, expected .csv or .json")


def run_pipeline(
    snapshot: Snapshot,
    now: datetime,
    config: Optional[AnalyticsConfig] = None,
    user_id: str = "local",
    session_id: Optional[str] = None,
) -> dict[str, Any]:
    """One collection cycle followed by pattern, insight, prediction and alert passes."""

    config = config or AnalyticsConfig()

    with TelemetryCollector(config.collector, clock=lambda: now) as collector:
        records = collector.collect(snapshot.tasks, snapshot.sessions, snapshot.projects, now=now)
        telemetry = collector.stored_summary()

    analysis = PatternAnalyzer(config.patterns).analyze_patterns(snapshot.tasks, snapshot.sessions, now=now)
    insights = InsightSynthesizer(config.insights).generate_insights(analysis, UserContext(current_time=now))
    predictions = PredictiveAnalyzer(user_id, config.predictive).generate_all_insights(
        snapshot.tasks, snapshot.projects, snapshot.sessions, now=now
    )

    alert = None
    if session_id is not None:
        scheduler = ProactiveAlertScheduler(
            user_id, InMemoryPreferenceStore(), config=config.alerts, clock=lambda: now
        )
        try:
            alert = scheduler.check_for_deadline_alerts(snapshot.tasks, session_id)
        finally:
            scheduler.close()

    logger.info(
        "pipeline_finished",
        records=len(records),
        patterns=len(analysis.patterns),
        insights=len(insights.insights),
        predictions=len(predictions),
    )
    return {
        "generated_at": now,
        "telemetry": telemetry,
        "patterns": asdict(analysis),
        "insights": asdict(insights),
        "predictions": [asdict(prediction) for prediction in predictions],
        "alert": asdict(alert) if alert is not None else None,
    }


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run productivity-insights analysis over a snapshot")
    parser.add_argument("--data", required=True, help="Path to a JSON snapshot or CSV task export")
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--now", help="ISO timestamp to analyze at (defaults to the current time)")
    parser.add_argument("--user", default="local", help="User id for predictions and alerts")
    parser.add_argument("--session", help="Session id; when given, also run the deadline alert check")
    parser.add_argument("--output", help="Also write the report to this path")
    args = parser.parse_args(argv)

    setup_logging()
    now = datetime.fromisoformat(args.now) if args.now else datetime.now()
    snapshot = _load_snapshot(Path(args.data))
    report = run_pipeline(snapshot, now, load_config(args.config), user_id=args.user, session_id=args.session)

    rendered = json.dumps(report, indent=2, default=str)
    print(rendered)

    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(rendered, encoding="utf-8")
        print(f"Saved analysis report to {out_path}")


if __name__ == "__main__":
    main()
