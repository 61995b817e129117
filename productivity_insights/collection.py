"""Telemetry collection: runs collectors into a retention store."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from productivity_insights import collectors
from productivity_insights.aggregation import AggregationResult, aggregate, trends
from productivity_insights.config import CollectorConfig
from productivity_insights.logging_config import get_logger
from productivity_insights.retention import RecordQuery, RetentionStore
from productivity_insights.schema import Snapshot
from productivity_insights.telemetry import TelemetryRecord
from productivity_insights.ticker import CollectionRule, Ticker, default_rules

logger = get_logger(__name__)

SnapshotProvider = Callable[[], Snapshot]


class TelemetryCollector:
    """Owns a retention store and the tickers that feed it.

    Construct it, optionally ``start()`` the periodic rules, and ``close()``
    it when done; closing stops every ticker.
    """

    def __init__(
        self,
        config: Optional[CollectorConfig] = None,
        rules: Optional[list[CollectionRule]] = None,
        snapshot_provider: Optional[SnapshotProvider] = None,
        clock: Callable[[], datetime] = datetime.now,
        platform_signals: Optional[dict[str, Any]] = None,
    ) -> None:
        self.config = config or CollectorConfig()
        self.rules = rules if rules is not None else default_rules()
        self.store = RetentionStore(
            max_data_points_per_type=self.config.max_data_points_per_type,
            default_retention_hours=self.config.default_retention_hours,
            min_relevance_score=self.config.min_relevance_score,
        )
        self.platform_signals = platform_signals
        self._snapshot_provider = snapshot_provider
        self._clock = clock
        self._tickers: dict[str, Ticker] = {}

    def _run_collectors(
        self,
        snapshot: Snapshot,
        context: Optional[dict[str, Any]],
        now: datetime,
        kinds: Optional[set[str]] = None,
    ) -> list[TelemetryRecord]:
        def wanted(kind: str, enabled: bool) -> bool:
            return enabled and (kinds is None or kind in kinds)

        config = self.config
        records: list[TelemetryRecord] = []
        if wanted("user_behavior", config.enable_user_behavior_tracking):
            records.extend(collectors.collect_user_behavior(snapshot.tasks, snapshot.sessions, now))
        if wanted("task_patterns", config.enable_task_pattern_tracking):
            records.extend(collectors.collect_task_patterns(snapshot.tasks, snapshot.projects, now))
        if wanted("productivity_metrics", config.enable_productivity_metrics):
            records.extend(collectors.collect_productivity(snapshot.sessions, now))
        if wanted("environmental", config.enable_environmental_data):
            records.extend(collectors.collect_environmental(context, now, self.platform_signals))
        if wanted("temporal", config.enable_temporal_data):
            records.extend(collectors.collect_temporal(now))
        return records

    def collect(
        self,
        tasks: list,
        sessions: list,
        projects: list,
        context: Optional[dict[str, Any]] = None,
        now: Optional[datetime] = None,
        kinds: Optional[set[str]] = None,
    ) -> list[TelemetryRecord]:
        """Run one collection cycle; a failing cycle stores nothing."""

        return self._cycle(Snapshot(tasks, sessions, projects), context, now or self._clock(), kinds)

    def _cycle(
        self,
        snapshot: Snapshot,
        context: Optional[dict[str, Any]],
        now: datetime,
        kinds: Optional[set[str]] = None,
        rule: Optional[CollectionRule] = None,
    ) -> list[TelemetryRecord]:
        try:
            records = self._run_collectors(snapshot, context, now, kinds)
        except Exception:  # noqa: BLE001
            logger.exception("collection_cycle_failed", rule=rule.id if rule else None)
            return []

        if rule is not None:
            for record in records:
                if record.expires_at is None:
                    record.expires_at = record.timestamp + timedelta(hours=rule.retention_hours)
        self.store.put(records)
        if rule is not None:
            self.store.trim(rule.kind, rule.max_data_points)
        self.store.evict_expired(now)
        return records

    def query(self, query: Optional[RecordQuery] = None) -> list[TelemetryRecord]:
        return self.store.query(query)

    def aggregate(self, kind: str, start: datetime, end: datetime) -> AggregationResult:
        records = self.query(RecordQuery(kinds=[kind], start=start, end=end))
        if not records:
            return AggregationResult(kind=kind, aggregated={}, data_points=0, time_range=(start, end), confidence=0.0)

        return AggregationResult(
            kind=kind,
            aggregated=aggregate(records),
            data_points=len(records),
            time_range=(start, end),
            confidence=sum(record.relevance_score for record in records) / len(records),
            trends=trends(records, (start, end)),
        )

    def stored_summary(self) -> dict[str, int]:
        return self.store.counts()

    def clear(self) -> None:
        self.store.clear()

    def update_config(self, **changes: Any) -> None:
        self.config = replace(self.config, **changes)
        self.store.max_data_points_per_type = self.config.max_data_points_per_type
        self.store.default_retention_hours = self.config.default_retention_hours
        self.store.min_relevance_score = self.config.min_relevance_score

    def tick(self, rule: CollectionRule) -> list[TelemetryRecord]:
        """One scheduled cycle for ``rule``: collect its kind, then evict.

        Records collected here expire after the rule's ``retention_hours``
        and the kind is trimmed to the rule's ``max_data_points``.
        """

        now = self._clock()
        records: list[TelemetryRecord] = []
        if self._snapshot_provider is not None:
            try:
                snapshot = self._snapshot_provider()
            except Exception:  # noqa: BLE001
                logger.exception("snapshot_provider_failed", rule=rule.id)
            else:
                records = self._cycle(snapshot, None, now, {rule.kind}, rule)
        self.store.evict_expired(now)
        logger.debug("periodic_collection", rule=rule.id, records=len(records))
        return records

    def start(self) -> None:
        for rule in sorted(self.rules, key=lambda rule: rule.priority):
            if not rule.is_periodic or rule.id in self._tickers:
                continue
            ticker = Ticker(rule.id, rule.interval_seconds, lambda rule=rule: self.tick(rule))
            self._tickers[rule.id] = ticker
            ticker.start()

    @property
    def active_tickers(self) -> list[str]:
        return [name for name, ticker in self._tickers.items() if ticker.running]

    def close(self) -> None:
        for ticker in self._tickers.values():
            ticker.stop()
        self._tickers.clear()
        self.store.clear()

    def __enter__(self) -> "TelemetryCollector":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
