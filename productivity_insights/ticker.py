"""Periodic collection scheduling with explicit cancellation."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Optional

from productivity_insights.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class CollectionRule:
    """A collection schedule for one telemetry kind.

    Periodic rules start in ascending ``priority`` order. Records a rule
    collects expire after ``retention_hours`` and its kind is capped at
    ``max_data_points``.
    """

    id: str
    name: str
    kind: str
    frequency: str
    is_active: bool = True
    interval_seconds: Optional[float] = None
    priority: int = 2
    max_data_points: int = 100
    retention_hours: float = 48

    @property
    def is_periodic(self) -> bool:
        return self.is_active and self.frequency == "periodic" and bool(self.interval_seconds)


def default_rules() -> list[CollectionRule]:
    return [
        CollectionRule(
            id="user-behavior-periodic",
            name="Periodic user behavior",
            kind="user_behavior",
            frequency="periodic",
            interval_seconds=15 * 60,
            priority=2,
            max_data_points=100,
            retention_hours=48,
        ),
        CollectionRule(
            id="productivity-realtime",
            name="Real-time productivity metrics",
            kind="productivity_metrics",
            frequency="real_time",
            priority=1,
            max_data_points=200,
            retention_hours=72,
        ),
    ]


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True once cancelled."""
        return self._event.wait(timeout)


class Ticker:
    """Runs ``callback`` every ``interval_seconds`` until cancelled."""

    def __init__(self, name: str, interval_seconds: float, callback: Callable[[], None]) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._token = CancellationToken()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError(f"Ticker '{self.name}' already started")
        self._thread = threading.Thread(target=self._run, name=f"ticker-{self.name}", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._token.cancel()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._token.wait(self.interval_seconds):
            try:
                self._callback()
            except Exception:  # noqa: BLE001
                logger.exception("ticker_callback_failed", ticker=self.name)
