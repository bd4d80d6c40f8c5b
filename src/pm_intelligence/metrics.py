"""Per-operation execution metrics.

Every tool invocation and every batch item is timed through
:meth:`MetricsRecorder.with_metrics`. Totals only ever grow for the lifetime of
the recorder; the average is derived when a snapshot is taken.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SLOW_CALL_THRESHOLD_MS = 1000


@dataclass(slots=True)
class OperationMetrics:
    calls: int = 0
    errors: int = 0
    total_duration_ms: int = 0
    last_call_at: str | None = None


@dataclass(frozen=True, slots=True)
class OperationSnapshot:
    calls: int
    errors: int
    total_duration_ms: int
    last_call_at: str | None
    avg_ms: int

    def to_json(self) -> dict[str, object]:
        return {
            "calls": self.calls,
            "errors": self.errors,
            "totalDurationMs": self.total_duration_ms,
            "lastCallAt": self.last_call_at,
            "avgMs": self.avg_ms,
        }


def _average_ms(total_ms: int, calls: int) -> int:
    if calls <= 0:
        return 0
    # Half-up, so 350 / 3 -> 117 and 5 / 2 -> 3 (the builtin round() is half-even).
    return int((Decimal(total_ms) / Decimal(calls)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


class MetricsRecorder:
    """Call count, error count and cumulative latency per named operation."""

    def __init__(
        self,
        *,
        slow_call_threshold_ms: int = DEFAULT_SLOW_CALL_THRESHOLD_MS,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.slow_call_threshold_ms = slow_call_threshold_ms
        self._clock = clock
        self._lock = threading.Lock()
        self._metrics: dict[str, OperationMetrics] = {}

    def record(self, op_name: str, duration_ms: int, is_error: bool) -> None:
        with self._lock:
            current = self._metrics.setdefault(op_name, OperationMetrics())
            current.calls += 1
            if is_error:
                current.errors += 1
            current.total_duration_ms += duration_ms
            current.last_call_at = datetime.now(tz=UTC).isoformat()

    def snapshot(self) -> dict[str, OperationSnapshot]:
        with self._lock:
            return {
                name: OperationSnapshot(
                    calls=m.calls,
                    errors=m.errors,
                    total_duration_ms=m.total_duration_ms,
                    last_call_at=m.last_call_at,
                    avg_ms=_average_ms(m.total_duration_ms, m.calls),
                )
                for name, m in self._metrics.items()
            }

    def snapshot_json(self) -> dict[str, dict[str, object]]:
        return {name: snap.to_json() for name, snap in self.snapshot().items()}

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()

    def with_metrics(self, op_name: str, fn: Callable[[], T]) -> T:
        """Run ``fn`` and record its duration and outcome.

        Errors are recorded and then re-raised as-is, including
        ``KeyboardInterrupt`` and ``SystemExit``.
        """

        start = self._clock()
        try:
            result = fn()
        except BaseException as e:
            duration_ms = self._elapsed_ms(start)
            self.record(op_name, duration_ms, True)
            logger.error(
                str(e) or type(e).__name__,
                extra={"operation": op_name, "duration_ms": duration_ms},
            )
            raise

        duration_ms = self._elapsed_ms(start)
        self.record(op_name, duration_ms, False)
        if duration_ms > self.slow_call_threshold_ms:
            logger.warning(
                "Slow operation",
                extra={"operation": op_name, "duration_ms": duration_ms},
            )
        return result

    def _elapsed_ms(self, start: float) -> int:
        return int(round((self._clock() - start) * 1000))
