"""Deadline escalation rules."""

from __future__ import annotations

import math
from datetime import datetime

from productivity_insights.schema import Task

SEVERITY_ORDER = {"low": 1, "medium": 2, "high": 3}
PRIORITY_ORDER = {"urgent": 4, "high": 3, "medium": 2, "low": 1}
PRIORITY_SCORES = {"urgent": 100, "high": 75, "medium": 50, "low": 25}
LONG_TASK_MINUTES = 60


def days_until_due(due_date: datetime, now: datetime) -> int:
    """Whole days left before ``due_date``, rounded up.

    Anything due earlier today rounds up to 0; past days come out negative.
    """

    return math.ceil((due_date - now).total_seconds() / 86400)


def base_severity(task: Task, days_left: int) -> str:
    """Urgent priority forces ``high`` before the tomorrow rule is consulted."""

    if days_left == 0 or task.priority == "urgent":
        return "high"
    if days_left == 1 or task.priority == "high":
        return "medium"
    return "low"


def energy_needed(task: Task) -> str:
    if task.priority in ("urgent", "high"):
        return "high"
    if task.estimated_duration and task.estimated_duration > LONG_TASK_MINUTES:
        return "medium"
    return "low"


def severity_at_least(severity: str, minimum: str) -> bool:
    return SEVERITY_ORDER[severity] >= SEVERITY_ORDER[minimum]
