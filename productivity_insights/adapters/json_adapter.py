"""JSON adapter for task/session/project snapshots."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from productivity_insights.schema import PRIORITIES, TASK_STATUSES, Project, Snapshot, Task, TaskSession

_TASK_FIELDS = {"id", "title", "status", "priority", "created_at"}
_SESSION_FIELDS = {"started_at"}
_PROJECT_FIELDS = {"id", "name", "status"}


def _missing(item: dict, required: set[str]) -> list[str]:
    return sorted(field for field in required if item.get(field) in (None, ""))


def _timestamp(value: Any, label: str, name: str) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        return datetime.fromisoformat(str(value))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"{label}: malformed {name}") from exc


def _number(value: Any, label: str, name: str) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"{label}: invalid {name}") from exc


def parse_task(item: dict, label: str) -> Task:
    missing = _missing(item, _TASK_FIELDS)
    if missing:
        raise ValueError(f"{label}: missing required fields {missing}")

    status = str(item["status"]).strip()
    if status not in TASK_STATUSES:
        raise ValueError(f"{label}: invalid status '{status}'")
    priority = str(item["priority"]).strip()
    if priority not in PRIORITIES:
        raise ValueError(f"{label}: invalid priority '{priority}'")

    created_at = _timestamp(item["created_at"], label, "created_at")
    tags = item.get("tags") or []
    if isinstance(tags, str):
        tags = [tag.strip() for tag in tags.split(";") if tag.strip()]

    project_raw = item.get("project_id")
    return Task(
        id=str(item["id"]).strip(),
        title=str(item["title"]).strip(),
        status=status,
        priority=priority,
        created_at=created_at,
        updated_at=_timestamp(item.get("updated_at"), label, "updated_at") or created_at,
        description=item.get("description") or None,
        due_date=_timestamp(item.get("due_date"), label, "due_date"),
        completed_at=_timestamp(item.get("completed_at"), label, "completed_at"),
        estimated_duration=_number(item.get("estimated_duration"), label, "estimated_duration"),
        actual_duration=_number(item.get("actual_duration"), label, "actual_duration"),
        project_id=str(project_raw).strip() if project_raw else None,
        tags=list(tags),
    )


def _parse_session(item: dict, label: str) -> TaskSession:
    missing = _missing(item, _SESSION_FIELDS)
    if missing:
        raise ValueError(f"{label}: missing required fields {missing}")

    task_raw = item.get("task_id")
    return TaskSession(
        started_at=_timestamp(item["started_at"], label, "started_at"),
        duration_minutes=_number(item.get("duration_minutes"), label, "duration_minutes"),
        productivity_score=_number(item.get("productivity_score"), label, "productivity_score"),
        task_id=str(task_raw).strip() if task_raw else None,
    )


def _parse_project(item: dict, label: str) -> Project:
    missing = _missing(item, _PROJECT_FIELDS)
    if missing:
        raise ValueError(f"{label}: missing required fields {missing}")

    return Project(
        id=str(item["id"]).strip(),
        name=str(item["name"]).strip(),
        status=str(item["status"]).strip(),
        color=str(item.get("color") or ""),
        deadline=_timestamp(item.get("deadline"), label, "deadline"),
    )


def _section(payload: dict, key: str) -> list:
    items = payload.get(key) or []
    if not isinstance(items, list):
        raise ValueError(f"'{key}' must be a list of objects")
    return items


def parse_snapshot(payload: Any) -> Snapshot:
    """Build a snapshot from an already-decoded JSON document."""

    if not isinstance(payload, dict):
        raise ValueError("JSON payload must be an object with tasks/sessions/projects")

    return Snapshot(
        tasks=[parse_task(item, f"Task {i}") for i, item in enumerate(_section(payload, "tasks"), start=1)],
        sessions=[
            _parse_session(item, f"Session {i}") for i, item in enumerate(_section(payload, "sessions"), start=1)
        ],
        projects=[
            _parse_project(item, f"Project {i}") for i, item in enumerate(_section(payload, "projects"), start=1)
        ],
    )


def parse(file_path: str) -> Snapshot:
    """Parse JSON file into a snapshot."""

    with open(file_path, encoding="utf-8") as handle:
        payload = json.load(handle)
    return parse_snapshot(payload)
