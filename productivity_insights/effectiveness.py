"""Fire-and-forget alert effectiveness tracking."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from productivity_insights.logging_config import get_logger

logger = get_logger(__name__)

USER_ACTIONS = ("accepted", "dismissed", "ignored", "completed")


@dataclass
class AlertEffectivenessRecord:
    alert_id: str
    alert_type: str
    user_action: str
    context_data: dict[str, Any] = field(default_factory=dict)
    relevance_score: Optional[float] = None
    shown_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.user_action not in USER_ACTIONS:
            raise ValueError(f"Unknown user_action '{self.user_action}'")


class EffectivenessSink(Protocol):
    def append(self, user_id: str, record: AlertEffectivenessRecord) -> None: ...


class EffectivenessTracker:
    """Writes records on a background worker; failures are logged, not raised.

    Writes are not retried.
    """

    def __init__(
        self,
        sink: EffectivenessSink,
        user_id: str,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.sink = sink
        self.user_id = user_id
        self._clock = clock
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="effectiveness")

    def record(self, record: AlertEffectivenessRecord) -> Future:
        if record.shown_at is None:
            record.shown_at = self._clock()
        future = self._executor.submit(self.sink.append, self.user_id, record)
        future.add_done_callback(lambda done: self._log_failure(done, record))
        return future

    def _log_failure(self, future: Future, record: AlertEffectivenessRecord) -> None:
        error = future.exception()
        if error is not None:
            logger.warning(
                "effectiveness_write_failed",
                alert_id=record.alert_id,
                user_id=self.user_id,
                error=repr(error),
            )

    def close(self) -> None:
        """Wait for pending writes, then stop the worker."""
        self._executor.shutdown(wait=True)
