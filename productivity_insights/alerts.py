"""Proactive deadline alerts.

``BasicDeadlineAlerts`` is the plain detection strategy: one alert per
session for the highest-priority task due within two days.
``ProactiveAlertScheduler`` composes it with an ``AlertPersonalization``
built from the user's preferences and puts every decision behind a gate:

    enabled -> allowed time -> daily cap -> session not yet alerted
      -> candidate tasks -> best score -> alert

Any gate that fails yields ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from productivity_insights.collectors import day_of_week
from productivity_insights.config import AlertConfig
from productivity_insights.effectiveness import AlertEffectivenessRecord, EffectivenessSink, EffectivenessTracker
from productivity_insights.escalation import (
    LONG_TASK_MINUTES,
    PRIORITY_ORDER,
    PRIORITY_SCORES,
    base_severity,
    days_until_due,
    energy_needed,
    severity_at_least,
)
from productivity_insights.logging_config import get_logger
from productivity_insights.preferences import (
    PreferencesNotFoundError,
    PreferenceStore,
    UserProductivityPreferences,
    load_preferences,
)
from productivity_insights.schema import Task

logger = get_logger(__name__)

SEVERITY_PREFIX = {"high": "Urgent:", "medium": "Heads up:", "low": "Reminder:"}
ENERGY_CONTEXT = {
    "high": "Your energy is high right now, a great moment for important work",
    "medium": "Your energy is steady, a good time to make progress",
    "low": "Consider a lighter task if you can",
}
DEFAULT_ACTION_LABEL = "Work on this task"


@dataclass
class DeadlineAlert:
    id: str
    severity: str
    title: str
    message: str
    task: Task
    days_until_due: int
    action_label: str
    action_type: str = "work_on_task"
    type: str = "deadline_warning"

    def __post_init__(self) -> None:
        if self.days_until_due < 0:
            raise ValueError("days_until_due must be non-negative")


def _stamp(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _when(days_left: int) -> str:
    if days_left == 0:
        return "today"
    if days_left == 1:
        return "tomorrow"
    return f"in {days_left} days"


class BasicDeadlineAlerts:
    """Rule-only deadline detection, at most one alert per session id."""

    window_days = 2

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock
        self._alerted_sessions: set[str] = set()

    def already_alerted(self, session_id: str) -> bool:
        return session_id in self._alerted_sessions

    def mark_alerted(self, session_id: str) -> None:
        self._alerted_sessions.add(session_id)

    def reset_session(self) -> None:
        self._alerted_sessions.clear()

    def check_for_deadline_alerts(self, tasks: list[Task], session_id: str) -> Optional[DeadlineAlert]:
        if self.already_alerted(session_id):
            return None

        now = self._clock()
        horizon = now + timedelta(days=self.window_days)
        upcoming = [
            task
            for task in tasks
            if task.due_date is not None and not task.is_completed and now <= task.due_date <= horizon
        ]
        if not upcoming:
            return None

        chosen = min(upcoming, key=lambda task: (-PRIORITY_ORDER.get(task.priority, 0), task.due_date))
        days_left = days_until_due(chosen.due_date, now)
        self.mark_alerted(session_id)

        severity = self.severity(chosen, days_left)
        title, message = self.messages(chosen, days_left, severity)
        return DeadlineAlert(
            id=f"deadline_alert_{chosen.id}_{_stamp(now)}",
            severity=severity,
            title=title,
            message=message,
            task=chosen,
            days_until_due=days_left,
            action_label=DEFAULT_ACTION_LABEL,
        )

    def severity(self, task: Task, days_left: int) -> str:
        return base_severity(task, days_left)

    def messages(self, task: Task, days_left: int, severity: str) -> tuple[str, str]:
        title = f"{SEVERITY_PREFIX[severity]} deadline approaching"
        if days_left == 0:
            message = f'"{task.title}" is due TODAY. Want to work on it now?'
        else:
            message = f'"{task.title}" is due {_when(days_left)}. This is a good moment to make progress.'
        return title, message


class AlertPersonalization:
    """Preference-driven timing, scoring and wording.

    With no preferences every check falls back to its permissive default.
    """

    def __init__(self, preferences: Optional[UserProductivityPreferences], base: BasicDeadlineAlerts) -> None:
        self.preferences = preferences
        self.base = base

    @property
    def energy_timing(self) -> bool:
        return self.preferences is not None and self.preferences.alert_preferences.energy_based_timing

    def alerts_enabled(self) -> bool:
        if self.preferences is None:
            return True
        return self.preferences.alert_preferences.enabled

    def is_allowed_time(self, now: datetime) -> bool:
        prefs = self.preferences
        if prefs is None:
            return True
        if day_of_week(now) not in prefs.preferred_work_days:
            return False

        strategy = prefs.alert_preferences.allowed_hours
        if strategy == "work_hours":
            return prefs.work_hours_start <= now.hour <= prefs.work_hours_end
        if strategy == "energy_based":
            if not prefs.alert_preferences.energy_based_timing:
                return True
            return now.hour in prefs.energy_schedule.high or now.hour in prefs.energy_schedule.medium
        return True

    def daily_limit(self) -> Optional[int]:
        if self.preferences is None:
            return None
        return self.preferences.alert_preferences.max_daily_alerts

    def deadline_days(self, default: list[int]) -> list[int]:
        if self.preferences is None:
            return default
        return self.preferences.alert_preferences.deadline_days_before or default

    def energy_level(self, now: datetime) -> str:
        if self.preferences is None:
            return "medium"
        return self.preferences.energy_schedule.level_at(now.hour)

    def severity(self, task: Task, days_left: int, now: datetime) -> str:
        severity = self.base.severity(task, days_left)
        if not self.energy_timing:
            return severity

        energy = self.energy_level(now)
        if energy == "high" and task.priority == "high":
            return "high"
        if energy == "low" and severity == "high":
            return "medium"
        return severity

    def accepts(self, task: Task, days_left: int, now: datetime) -> bool:
        """Alert-type toggle and minimum-severity filter."""

        if self.preferences is None:
            return True
        alert_prefs = self.preferences.alert_preferences
        if not alert_prefs.alert_types.deadline_warnings:
            return False
        return severity_at_least(self.severity(task, days_left, now), alert_prefs.min_severity)

    def score(self, task: Task, now: datetime) -> int:
        score = PRIORITY_SCORES.get(task.priority, 0)
        energy = self.energy_level(now)
        if self.energy_timing and energy == energy_needed(task):
            score += 25
        if task.estimated_duration and task.estimated_duration > LONG_TASK_MINUTES and energy == "low":
            score -= 20
        return score

    def messages(self, task: Task, days_left: int, severity: str, now: datetime) -> tuple[str, str]:
        prefs = self.preferences
        if prefs is None or not prefs.alert_preferences.custom_messages:
            return self.base.messages(task, days_left, severity)

        title = f"{SEVERITY_PREFIX[severity]} personalized deadline"
        message = f'"{task.title}" is due {_when(days_left)}.'
        if prefs.alert_preferences.energy_based_timing:
            message += f" {ENERGY_CONTEXT[self.energy_level(now)]}."
        message += f" Daily goal: {prefs.productivity_goals.daily_tasks} tasks."
        return title, message

    def action_label(self, task: Task, days_left: int, now: datetime) -> str:
        if self.preferences is None:
            return DEFAULT_ACTION_LABEL

        energy = self.energy_level(now)
        if not self.is_allowed_time(now):
            return "Schedule for tomorrow"
        if energy == "high" and task.priority == "high":
            return "Work on it now (ideal moment)"
        if energy == "low" and task.estimated_duration and task.estimated_duration > LONG_TASK_MINUTES:
            return "Split into subtasks"
        if days_left == 0:
            return "Urgent action needed"
        return DEFAULT_ACTION_LABEL


class ProactiveAlertScheduler:
    """Personalized, rate-limited deadline alerts for one user.

    Preferences are loaded once, on first use, and cached for the lifetime
    of the instance.
    """

    def __init__(
        self,
        user_id: str,
        preference_store: PreferenceStore,
        effectiveness_sink: Optional[EffectivenessSink] = None,
        config: Optional[AlertConfig] = None,
        base: Optional[BasicDeadlineAlerts] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.user_id = user_id
        self.config = config or AlertConfig()
        self.base = base or BasicDeadlineAlerts(clock)
        self._store = preference_store
        self._clock = clock
        self._tracker = EffectivenessTracker(effectiveness_sink, user_id, clock) if effectiveness_sink else None
        self._personalization: Optional[AlertPersonalization] = None
        self._daily_count = 0
        self._count_date: Optional[date] = None

    @property
    def personalization(self) -> AlertPersonalization:
        if self._personalization is None:
            self._personalization = AlertPersonalization(load_preferences(self._store, self.user_id), self.base)
        return self._personalization

    @property
    def preferences(self) -> Optional[UserProductivityPreferences]:
        return self.personalization.preferences

    @property
    def daily_alert_count(self) -> int:
        return self._daily_count

    def _daily_limit_reached(self, now: datetime) -> bool:
        if self._count_date != now.date():
            self._count_date = now.date()
            self._daily_count = 0
        limit = self.personalization.daily_limit()
        return limit is not None and self._daily_count >= limit

    def check_for_deadline_alerts(self, tasks: list[Task], session_id: str) -> Optional[DeadlineAlert]:
        personal = self.personalization
        now = self._clock()

        if not personal.alerts_enabled():
            return None
        if not personal.is_allowed_time(now):
            return None
        if self._daily_limit_reached(now):
            return None
        if self.base.already_alerted(session_id):
            return None

        allowed_days = personal.deadline_days(self.config.default_deadline_days_before)
        candidates = []
        for task in tasks:
            if task.due_date is None or task.is_completed:
                continue
            days_left = days_until_due(task.due_date, now)
            if days_left < 0 or days_left not in allowed_days:
                continue
            if personal.accepts(task, days_left, now):
                candidates.append((task, days_left))
        if not candidates:
            return None

        task, days_left = max(candidates, key=lambda item: personal.score(item[0], now))

        self._daily_count += 1
        self.base.mark_alerted(session_id)

        severity = personal.severity(task, days_left, now)
        title, message = personal.messages(task, days_left, severity, now)
        alert = DeadlineAlert(
            id=f"personalized_alert_{task.id}_{_stamp(now)}",
            severity=severity,
            title=title,
            message=message,
            task=task,
            days_until_due=days_left,
            action_label=personal.action_label(task, days_left, now),
        )
        logger.info("deadline_alert_emitted", user_id=self.user_id, task_id=task.id, severity=severity)
        return alert

    def record_alert_effectiveness(self, record: AlertEffectivenessRecord) -> None:
        if self._tracker is None:
            logger.debug("effectiveness_sink_missing", alert_id=record.alert_id)
            return
        self._tracker.record(record)

    def ensure_default_preferences(self) -> None:
        """Write default preferences for a user that has none, then reload."""

        try:
            self._store.get(self.user_id)
        except PreferencesNotFoundError:
            try:
                self._store.save(self.user_id, UserProductivityPreferences())
            except Exception:  # noqa: BLE001
                logger.exception("default_preferences_write_failed", user_id=self.user_id)
                return
        except Exception:  # noqa: BLE001
            logger.exception("preference_lookup_failed", user_id=self.user_id)
            return
        self._personalization = None

    def reset_session(self) -> None:
        self.base.reset_session()

    def close(self) -> None:
        if self._tracker is not None:
            self._tracker.close()
