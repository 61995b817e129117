"""Bounded, time-windowed storage of telemetry records."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from productivity_insights.telemetry import TelemetryRecord

_ORDER_FIELDS = ("timestamp", "relevance")


@dataclass
class RecordQuery:
    """Filter applied by ``RetentionStore.query``.

    Filters run in a fixed order: kinds, categories, time range, minimum
    relevance, sort, limit.
    """

    kinds: Optional[Iterable[str]] = None
    categories: Optional[Iterable[str]] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    min_relevance: Optional[float] = None
    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None


class RetentionStore:
    """Per-kind FIFO buffers capped at ``max_data_points_per_type``.

    Safe to share between a collection ticker and query callers; every
    public method holds the store lock.
    """

    def __init__(
        self,
        max_data_points_per_type: int = 1000,
        default_retention_hours: float = 168,
        min_relevance_score: float = 0.1,
    ) -> None:
        if max_data_points_per_type < 1:
            raise ValueError("max_data_points_per_type must be positive")
        self.max_data_points_per_type = max_data_points_per_type
        self.default_retention_hours = default_retention_hours
        self.min_relevance_score = min_relevance_score
        self._buffers: dict[str, deque[TelemetryRecord]] = {}
        self._lock = threading.Lock()

    def put(self, records: Iterable[TelemetryRecord]) -> None:
        records = list(records)
        with self._lock:
            for record in records:
                buffer = self._buffers.setdefault(record.kind, deque())
                buffer.append(record)
                while len(buffer) > self.max_data_points_per_type:
                    buffer.popleft()

    def trim(self, kind: str, max_points: int) -> int:
        """Keep only the newest ``max_points`` records of ``kind``."""

        with self._lock:
            buffer = self._buffers.get(kind)
            if buffer is None:
                return 0
            removed = 0
            while len(buffer) > max(0, max_points):
                buffer.popleft()
                removed += 1
            return removed

    def query(self, query: Optional[RecordQuery] = None) -> list[TelemetryRecord]:
        query = query or RecordQuery()

        kinds = set(query.kinds) if query.kinds is not None else None
        with self._lock:
            results = [
                record
                for kind, buffer in self._buffers.items()
                if kinds is None or kind in kinds
                for record in buffer
            ]

        if query.categories is not None:
            categories = set(query.categories)
            results = [record for record in results if record.category in categories]

        if query.start is not None:
            results = [record for record in results if record.timestamp >= query.start]
        if query.end is not None:
            results = [record for record in results if record.timestamp <= query.end]

        min_relevance = self.min_relevance_score if query.min_relevance is None else query.min_relevance
        results = [record for record in results if record.relevance_score >= min_relevance]

        if query.order_by is not None:
            if query.order_by not in _ORDER_FIELDS:
                raise ValueError(f"Unsupported order_by '{query.order_by}', expected one of {_ORDER_FIELDS}")
            if query.order_by == "timestamp":
                results.sort(key=lambda record: record.timestamp, reverse=query.descending)
            else:
                results.sort(key=lambda record: record.relevance_score, reverse=query.descending)

        if query.limit is not None:
            results = results[: max(0, query.limit)]
        return results

    def evict_expired(self, now: datetime) -> int:
        """Drop every record whose expiry has passed; return how many went."""

        removed = 0
        with self._lock:
            for kind, buffer in self._buffers.items():
                kept = deque(record for record in buffer if not record.is_expired(now, self.default_retention_hours))
                removed += len(buffer) - len(kept)
                self._buffers[kind] = kept
        return removed

    def counts(self) -> dict[str, int]:
        with self._lock:
            return {kind: len(buffer) for kind, buffer in self._buffers.items()}

    def clear(self) -> None:
        with self._lock:
            self._buffers.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(buffer) for buffer in self._buffers.values())
