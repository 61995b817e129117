"""User productivity preferences and the store they are read from."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

from productivity_insights.escalation import SEVERITY_ORDER
from productivity_insights.logging_config import get_logger

logger = get_logger(__name__)

ALLOWED_HOURS_STRATEGIES = ("work_hours", "any_time", "energy_based")
TIMING_STRATEGIES = ("immediate", "smart", "batch")


class PreferencesNotFoundError(LookupError):
    """Raised by a store when the user has no preferences row."""


@dataclass
class EnergySchedule:
    high: list[int] = field(default_factory=lambda: [9, 10, 11])
    medium: list[int] = field(default_factory=lambda: [12, 13, 14, 15, 16])
    low: list[int] = field(default_factory=lambda: [17, 18, 19])

    def level_at(self, hour: int) -> str:
        if hour in self.high:
            return "high"
        if hour in self.medium:
            return "medium"
        return "low"


@dataclass
class AlertTypes:
    deadline_warnings: bool = True
    productivity_reminders: bool = True
    task_health_alerts: bool = True
    achievement_celebrations: bool = True


@dataclass
class AlertPreferences:
    enabled: bool = True
    deadline_days_before: list[int] = field(default_factory=lambda: [0, 1, 2])
    allowed_hours: str = "work_hours"
    min_severity: str = "low"
    max_daily_alerts: int = 3
    respect_focus_time: bool = True
    custom_messages: bool = False
    alert_types: AlertTypes = field(default_factory=AlertTypes)
    timing_strategy: str = "smart"
    energy_based_timing: bool = True

    def __post_init__(self) -> None:
        if self.allowed_hours not in ALLOWED_HOURS_STRATEGIES:
            raise ValueError(f"Unknown allowed_hours strategy '{self.allowed_hours}'")
        if self.timing_strategy not in TIMING_STRATEGIES:
            raise ValueError(f"Unknown timing_strategy '{self.timing_strategy}'")
        if self.min_severity not in SEVERITY_ORDER:
            raise ValueError(f"Unknown min_severity '{self.min_severity}'")


@dataclass
class ProductivityGoals:
    daily_tasks: int = 3
    weekly_tasks: int = 15


@dataclass
class UserProductivityPreferences:
    """Work-hour window, work days (0 = Sunday) and energy/alert settings."""

    work_hours_start: int = 9
    work_hours_end: int = 17
    preferred_work_days: list[int] = field(default_factory=lambda: [1, 2, 3, 4, 5])
    energy_schedule: EnergySchedule = field(default_factory=EnergySchedule)
    notification_frequency: int = 30
    focus_session_duration: int = 25
    break_duration: int = 5
    productivity_goals: ProductivityGoals = field(default_factory=ProductivityGoals)
    alert_preferences: AlertPreferences = field(default_factory=AlertPreferences)


class PreferenceStore(Protocol):
    def get(self, user_id: str) -> UserProductivityPreferences:
        """Return the user's preferences or raise PreferencesNotFoundError."""

    def save(self, user_id: str, preferences: UserProductivityPreferences) -> None: ...


class InMemoryPreferenceStore:
    def __init__(self, rows: Optional[dict[str, UserProductivityPreferences]] = None) -> None:
        self.rows = dict(rows or {})

    def get(self, user_id: str) -> UserProductivityPreferences:
        try:
            return self.rows[user_id]
        except KeyError:
            raise PreferencesNotFoundError(user_id) from None

    def save(self, user_id: str, preferences: UserProductivityPreferences) -> None:
        self.rows[user_id] = preferences


def load_preferences(store: PreferenceStore, user_id: str) -> Optional[UserProductivityPreferences]:
    """Defaults when the user has no row; ``None`` when the store fails."""

    try:
        return store.get(user_id)
    except PreferencesNotFoundError:
        return UserProductivityPreferences()
    except Exception:  # noqa: BLE001
        logger.exception("preference_load_failed", user_id=user_id)
        return None
