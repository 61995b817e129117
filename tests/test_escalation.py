from datetime import datetime, timedelta

from productivity_insights.escalation import base_severity, days_until_due, energy_needed, severity_at_least
from productivity_insights.schema import Task

NOW = datetime(2025, 1, 15, 10, 0)


def sample_task(priority, estimated=None):
    return Task("t1", "Task", "pending", priority, NOW, NOW, estimated_duration=estimated)


def test_days_until_due_rounds_up():
    assert days_until_due(NOW + timedelta(hours=3), NOW) == 1
    assert days_until_due(NOW + timedelta(days=2), NOW) == 2
    assert days_until_due(NOW - timedelta(hours=3), NOW) == 0
    assert days_until_due(NOW - timedelta(days=2), NOW) == -2


def test_base_severity_rules():
    assert base_severity(sample_task("low"), 0) == "high"
    assert base_severity(sample_task("urgent"), 2) == "high"
    assert base_severity(sample_task("urgent"), 1) == "high"
    assert base_severity(sample_task("low"), 1) == "medium"
    assert base_severity(sample_task("high"), 2) == "medium"
    assert base_severity(sample_task("medium"), 2) == "low"


def test_energy_needed():
    assert energy_needed(sample_task("urgent")) == "high"
    assert energy_needed(sample_task("medium", estimated=90)) == "medium"
    assert energy_needed(sample_task("low", estimated=20)) == "low"


def test_severity_ordering():
    assert severity_at_least("high", "medium")
    assert severity_at_least("low", "low")
    assert not severity_at_least("low", "medium")
