"""CSV adapter for task exports.

One row per task; ``tags`` is a ``;``-separated list.
"""

from __future__ import annotations

import csv

from productivity_insights.adapters.json_adapter import parse_task
from productivity_insights.schema import Snapshot, Task


def parse_tasks(file_path: str) -> list[Task]:
    """Parse CSV file into a list of tasks."""

    with open(file_path, newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            return []

        tasks: list[Task] = []
        for row_number, row in enumerate(reader, start=2):
            tasks.append(parse_task(row, f"Row {row_number}"))
        return tasks


def parse(file_path: str) -> Snapshot:
    """Tasks-only snapshot; sessions and projects are empty."""

    return Snapshot(tasks=parse_tasks(file_path))
