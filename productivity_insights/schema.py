"""Core data schema for tasks, projects and work sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

PRIORITIES = ("urgent", "high", "medium", "low")
TASK_STATUSES = ("pending", "in_progress", "completed", "cancelled")


@dataclass
class Task:
    """Task snapshot read from the persistence layer."""

    id: str
    title: str
    status: str
    priority: str
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    estimated_duration: Optional[float] = None
    actual_duration: Optional[float] = None
    project_id: Optional[str] = None
    tags: list[str] = field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @property
    def is_open(self) -> bool:
        return self.status not in ("completed", "cancelled")


@dataclass
class Project:
    id: str
    name: str
    status: str
    color: str = ""
    deadline: Optional[datetime] = None


@dataclass
class TaskSession:
    """A focused-work session."""

    started_at: datetime
    duration_minutes: Optional[float] = None
    productivity_score: Optional[float] = None
    task_id: Optional[str] = None


@dataclass
class Snapshot:
    """Everything the analytics core reads in one pass."""

    tasks: list[Task] = field(default_factory=list)
    sessions: list[TaskSession] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
