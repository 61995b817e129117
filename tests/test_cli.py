import json
from datetime import datetime, timedelta

from productivity_insights.cli import main, run_pipeline
from productivity_insights.schema import Snapshot, Task, TaskSession

NOW = datetime(2025, 1, 15, 10, 0)


def sample_snapshot():
    tasks = []
    for i in range(6):
        done = NOW - timedelta(days=i + 1)
        tasks.append(
            Task(
                f"d{i}",
                f"Done {i}",
                "completed",
                "medium",
                done - timedelta(hours=2),
                done,
                completed_at=done,
                estimated_duration=30,
                actual_duration=50,
            )
        )
    tasks.append(Task("open", "Ship release", "pending", "high", NOW - timedelta(days=1), NOW, due_date=NOW + timedelta(days=1)))
    sessions = [TaskSession(NOW - timedelta(days=i + 1), 50, 4) for i in range(4)]
    return Snapshot(tasks=tasks, sessions=sessions)


def test_run_pipeline_reports_every_stage():
    report = run_pipeline(sample_snapshot(), NOW, session_id="s1")

    assert report["telemetry"]["temporal"] == 1
    assert report["patterns"]["data_quality"] == "medium"
    assert any(p["id"] == "duration-medium" for p in report["patterns"]["patterns"])
    assert report["alert"]["task"]["id"] == "open"
    assert isinstance(report["predictions"], list)


def test_run_pipeline_without_session_skips_alerts():
    assert run_pipeline(sample_snapshot(), NOW)["alert"] is None


def test_main_prints_json_and_writes_output(tmp_path, capsys, monkeypatch):
    monkeypatch.setattr("productivity_insights.cli.setup_logging", lambda: None)
    data = tmp_path / "snapshot.json"
    data.write_text(
        json.dumps(
            {
                "tasks": [
                    {
                        "id": "a",
                        "title": "Write report",
                        "status": "pending",
                        "priority": "high",
                        "created_at": "2025-01-14T09:00:00",
                        "due_date": "2025-01-16T09:00:00",
                    }
                ]
            }
        ),
        encoding="utf-8",
    )
    out = tmp_path / "out" / "report.json"

    main(["--data", str(data), "--now", "2025-01-15T10:00:00", "--session", "s1", "--output", str(out)])

    report = json.loads(out.read_text(encoding="utf-8"))
    assert report["alert"]["task"]["id"] == "a"
    assert report["patterns"]["data_quality"] == "low"
    assert "Saved analysis report" in capsys.readouterr().out
