"""Demo script for productivity-insights."""

import json
import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from productivity_insights.adapters.json_adapter import parse
from productivity_insights.cli import run_pipeline


def main() -> None:
    snapshot = parse("examples/sample_snapshot.json")
    report = run_pipeline(snapshot, datetime(2025, 1, 15, 10, 0), session_id="demo")
    print("Telemetry:", report["telemetry"])
    print("Insights:", json.dumps(report["insights"]["insights"], indent=2, default=str))
    print("Alert:", report["alert"]["title"] if report["alert"] else None)


if __name__ == "__main__":
    main()
