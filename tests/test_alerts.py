from datetime import datetime, timedelta

from productivity_insights.alerts import BasicDeadlineAlerts, ProactiveAlertScheduler
from productivity_insights.effectiveness import AlertEffectivenessRecord
from productivity_insights.preferences import (
    AlertPreferences,
    AlertTypes,
    InMemoryPreferenceStore,
    UserProductivityPreferences,
)
from productivity_insights.schema import Task

NOW = datetime(2025, 1, 15, 10, 0)  # Wednesday, high-energy hour


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class BrokenStore:
    def get(self, user_id):
        raise ConnectionError("database unavailable")

    def save(self, user_id, preferences):
        raise ConnectionError("database unavailable")


class ListSink:
    def __init__(self):
        self.rows = []

    def append(self, user_id, record):
        self.rows.append((user_id, record))


def sample_task(task_id, due_in, priority="medium", status="pending", estimated=None):
    return Task(
        task_id,
        f"Task {task_id}",
        status,
        priority,
        NOW - timedelta(days=3),
        NOW,
        due_date=NOW + due_in,
        estimated_duration=estimated,
    )


def scheduler_for(preferences=None, clock=None):
    store = InMemoryPreferenceStore({"u1": preferences} if preferences else None)
    return ProactiveAlertScheduler("u1", store, clock=clock or FakeClock(NOW))


def test_basic_alert_prefers_priority_over_due_date():
    tasks = [
        sample_task("soon", timedelta(hours=1)),
        sample_task("later", timedelta(hours=47), priority="urgent"),
        sample_task("far", timedelta(days=5), priority="urgent"),
    ]
    alerts = BasicDeadlineAlerts(clock=lambda: NOW)

    alert = alerts.check_for_deadline_alerts(tasks, "s1")
    assert alert.task.id == "later"
    assert alert.days_until_due == 2
    assert alert.severity == "high"
    assert "due in 2 days" in alert.message
    assert alert.id.startswith("deadline_alert_later_")

    assert alerts.check_for_deadline_alerts(tasks, "s1") is None
    alerts.reset_session()
    assert alerts.check_for_deadline_alerts(tasks, "s1") is not None


def test_basic_alert_ignores_completed_and_overdue():
    tasks = [
        sample_task("done", timedelta(hours=5), status="completed"),
        sample_task("late", -timedelta(hours=5)),
    ]
    assert BasicDeadlineAlerts(clock=lambda: NOW).check_for_deadline_alerts(tasks, "s1") is None


def test_same_session_is_alerted_once():
    scheduler = scheduler_for()
    tasks = [sample_task("t1", timedelta(days=1), priority="high")]

    assert scheduler.check_for_deadline_alerts(tasks, "s1") is not None
    assert scheduler.check_for_deadline_alerts(tasks, "s1") is None


def test_urgent_due_later_beats_medium_due_today():
    scheduler = scheduler_for()
    tasks = [
        sample_task("today", -timedelta(hours=1)),
        sample_task("urgent", timedelta(days=2), priority="urgent"),
    ]

    alert = scheduler.check_for_deadline_alerts(tasks, "s1")
    assert alert.task.id == "urgent"
    assert alert.days_until_due == 2
    assert alert.severity == "high"


def test_daily_cap_resets_next_day():
    clock = FakeClock(NOW)
    scheduler = scheduler_for(UserProductivityPreferences(alert_preferences=AlertPreferences(max_daily_alerts=1)), clock)
    tasks = [sample_task("t1", timedelta(days=1), priority="high")]

    assert scheduler.check_for_deadline_alerts(tasks, "s1") is not None
    assert scheduler.check_for_deadline_alerts(tasks, "s2") is None
    assert scheduler.daily_alert_count == 1

    clock.now = NOW + timedelta(days=1)
    assert scheduler.check_for_deadline_alerts(tasks, "s3") is not None


def test_outside_allowed_time_yields_nothing():
    tasks = [sample_task("t1", timedelta(days=1), priority="high")]
    assert scheduler_for(clock=FakeClock(NOW.replace(hour=20))).check_for_deadline_alerts(tasks, "s1") is None
    assert scheduler_for(clock=FakeClock(datetime(2025, 1, 18, 10, 0))).check_for_deadline_alerts(tasks, "s1") is None

    anytime = UserProductivityPreferences(alert_preferences=AlertPreferences(allowed_hours="any_time"))
    assert scheduler_for(anytime, FakeClock(NOW.replace(hour=20))).check_for_deadline_alerts(tasks, "s1") is not None


def test_energy_based_hours():
    prefs = UserProductivityPreferences(
        work_hours_end=20, alert_preferences=AlertPreferences(allowed_hours="energy_based")
    )
    tasks = [sample_task("t1", timedelta(days=1), priority="high")]
    assert scheduler_for(prefs, FakeClock(NOW.replace(hour=18))).check_for_deadline_alerts(tasks, "s1") is None
    assert scheduler_for(prefs, FakeClock(NOW.replace(hour=13))).check_for_deadline_alerts(tasks, "s1") is not None


def test_disabled_and_filtered_alerts():
    tasks = [sample_task("t1", timedelta(days=2))]

    disabled = UserProductivityPreferences(alert_preferences=AlertPreferences(enabled=False))
    assert scheduler_for(disabled).check_for_deadline_alerts(tasks, "s1") is None

    no_deadlines = UserProductivityPreferences(
        alert_preferences=AlertPreferences(alert_types=AlertTypes(deadline_warnings=False))
    )
    assert scheduler_for(no_deadlines).check_for_deadline_alerts(tasks, "s1") is None

    high_only = UserProductivityPreferences(alert_preferences=AlertPreferences(min_severity="high"))
    assert scheduler_for(high_only).check_for_deadline_alerts(tasks, "s1") is None

    narrow_days = UserProductivityPreferences(alert_preferences=AlertPreferences(deadline_days_before=[0]))
    assert scheduler_for(narrow_days).check_for_deadline_alerts(tasks, "s1") is None


def test_action_labels_follow_energy():
    alert = scheduler_for().check_for_deadline_alerts([sample_task("t1", timedelta(days=1), priority="high")], "s1")
    assert alert.action_label == "Work on it now (ideal moment)"
    assert alert.id.startswith("personalized_alert_t1_")

    late = FakeClock(NOW.replace(hour=17))
    long_task = sample_task("t2", timedelta(hours=5), estimated=90)
    alert = scheduler_for(clock=late).check_for_deadline_alerts([long_task], "s1")
    assert alert.action_label == "Split into subtasks"
    assert alert.severity == "medium"


def test_custom_messages_mention_energy_and_goal():
    prefs = UserProductivityPreferences(alert_preferences=AlertPreferences(custom_messages=True))
    alert = scheduler_for(prefs).check_for_deadline_alerts([sample_task("t1", timedelta(days=1))], "s1")
    assert "Daily goal: 3 tasks" in alert.message
    assert "energy is high" in alert.message


def test_store_failure_falls_back_to_permissive_defaults():
    saturday_night = FakeClock(datetime(2025, 1, 18, 22, 0))
    scheduler = ProactiveAlertScheduler("u1", BrokenStore(), clock=saturday_night)
    tasks = [sample_task("t1", timedelta(days=4))]

    assert scheduler.preferences is None
    alert = scheduler.check_for_deadline_alerts(tasks, "s1")
    assert alert is not None
    assert alert.action_label == "Work on this task"
    assert scheduler.check_for_deadline_alerts(tasks, "s2") is not None


def test_ensure_default_preferences_writes_once():
    store = InMemoryPreferenceStore()
    scheduler = ProactiveAlertScheduler("u1", store, clock=FakeClock(NOW))
    scheduler.ensure_default_preferences()
    assert store.rows["u1"].alert_preferences.max_daily_alerts == 3

    custom = UserProductivityPreferences(work_hours_start=7)
    store.rows["u1"] = custom
    scheduler.ensure_default_preferences()
    assert store.rows["u1"] is custom
    assert scheduler.preferences is custom


def test_effectiveness_is_recorded_in_background():
    sink = ListSink()
    scheduler = ProactiveAlertScheduler("u1", InMemoryPreferenceStore(), effectiveness_sink=sink, clock=FakeClock(NOW))
    scheduler.record_alert_effectiveness(AlertEffectivenessRecord("a1", "deadline_warning", "accepted"))
    scheduler.close()

    (user_id, record), = sink.rows
    assert user_id == "u1"
    assert record.shown_at == NOW
