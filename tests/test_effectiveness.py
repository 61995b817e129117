from datetime import datetime

import pytest

from productivity_insights.effectiveness import AlertEffectivenessRecord, EffectivenessTracker

NOW = datetime(2025, 1, 15, 10, 0)


class FailingSink:
    def __init__(self):
        self.calls = 0

    def append(self, user_id, record):
        self.calls += 1
        raise ConnectionError("write failed")


class ListSink:
    def __init__(self):
        self.rows = []

    def append(self, user_id, record):
        self.rows.append(record)


def test_record_stamps_shown_at_and_writes():
    sink = ListSink()
    tracker = EffectivenessTracker(sink, "u1", clock=lambda: NOW)
    future = tracker.record(AlertEffectivenessRecord("a1", "deadline_warning", "dismissed", {"hour": 10}, 0.7))
    future.result(timeout=2.0)
    tracker.close()

    assert sink.rows[0].shown_at == NOW
    assert sink.rows[0].context_data == {"hour": 10}


def test_failed_write_is_not_raised_or_retried():
    sink = FailingSink()
    tracker = EffectivenessTracker(sink, "u1", clock=lambda: NOW)
    future = tracker.record(AlertEffectivenessRecord("a1", "deadline_warning", "ignored"))
    tracker.close()

    assert isinstance(future.exception(), ConnectionError)
    assert sink.calls == 1


def test_unknown_user_action_is_rejected():
    with pytest.raises(ValueError):
        AlertEffectivenessRecord("a1", "deadline_warning", "snoozed")
