import pytest

from productivity_insights.preferences import (
    AlertPreferences,
    EnergySchedule,
    InMemoryPreferenceStore,
    UserProductivityPreferences,
    load_preferences,
)


class BrokenStore:
    def get(self, user_id):
        raise TimeoutError("slow database")

    def save(self, user_id, preferences):
        pass


def test_missing_row_loads_defaults():
    prefs = load_preferences(InMemoryPreferenceStore(), "u1")
    assert prefs == UserProductivityPreferences()
    assert prefs.preferred_work_days == [1, 2, 3, 4, 5]


def test_stored_row_is_returned():
    stored = UserProductivityPreferences(work_hours_start=8)
    assert load_preferences(InMemoryPreferenceStore({"u1": stored}), "u1") is stored


def test_store_error_leaves_preferences_unset():
    assert load_preferences(BrokenStore(), "u1") is None


def test_energy_schedule_levels():
    schedule = EnergySchedule()
    assert schedule.level_at(10) == "high"
    assert schedule.level_at(14) == "medium"
    assert schedule.level_at(18) == "low"
    assert schedule.level_at(3) == "low"


def test_alert_preferences_validate_strategies():
    with pytest.raises(ValueError):
        AlertPreferences(allowed_hours="sometimes")
    with pytest.raises(ValueError):
        AlertPreferences(timing_strategy="later")


def test_alert_preferences_reject_unknown_min_severity():
    with pytest.raises(ValueError, match="min_severity"):
        AlertPreferences(min_severity="critical")
    assert AlertPreferences(min_severity="high").min_severity == "high"
