"""Unit tests for per-operation metrics."""

from __future__ import annotations

import logging

import pytest

from pm_intelligence.metrics import MetricsRecorder


def test_record_aggregates_calls_errors_and_average(metrics: MetricsRecorder) -> None:
    metrics.record("test_tool", 100, False)
    metrics.record("test_tool", 200, False)
    metrics.record("test_tool", 50, True)

    snap = metrics.snapshot_json()["test_tool"]

    assert snap["calls"] == 3
    assert snap["errors"] == 1
    assert snap["totalDurationMs"] == 350
    assert snap["avgMs"] == 117
    assert snap["lastCallAt"] is not None


def test_average_rounds_half_up(metrics: MetricsRecorder) -> None:
    metrics.record("op", 2, False)
    metrics.record("op", 3, False)

    assert metrics.snapshot()["op"].avg_ms == 3


def test_operations_are_tracked_separately(metrics: MetricsRecorder) -> None:
    metrics.record("a", 10, False)
    metrics.record("b", 20, True)

    snap = metrics.snapshot()

    assert set(snap) == {"a", "b"}
    assert snap["a"].errors == 0
    assert snap["b"].errors == 1


def test_reset_clears_everything(metrics: MetricsRecorder) -> None:
    metrics.record("a", 10, False)

    metrics.reset()

    assert metrics.snapshot() == {}


def test_with_metrics_returns_result_and_records_success(clock) -> None:
    recorder = MetricsRecorder(clock=clock)

    def work() -> str:
        clock.advance_ms(40)
        return "done"

    assert recorder.with_metrics("work", work) == "done"

    snap = recorder.snapshot()["work"]
    assert snap.calls == 1
    assert snap.errors == 0
    assert snap.total_duration_ms == 40


def test_with_metrics_reraises_same_exception_and_records_error(clock, caplog) -> None:
    recorder = MetricsRecorder(clock=clock)
    boom = RuntimeError("github down")

    def work() -> None:
        clock.advance_ms(15)
        raise boom

    with caplog.at_level(logging.ERROR, logger="pm_intelligence.metrics"):
        with pytest.raises(RuntimeError) as excinfo:
            recorder.with_metrics("sync", work)

    assert excinfo.value is boom
    snap = recorder.snapshot()["sync"]
    assert snap.calls == 1
    assert snap.errors == 1
    assert snap.total_duration_ms == 15

    record = next(r for r in caplog.records if r.levelno == logging.ERROR)
    assert record.getMessage() == "github down"
    assert record.operation == "sync"
    assert record.duration_ms == 15


def test_slow_call_is_logged_as_warning(clock, caplog) -> None:
    recorder = MetricsRecorder(slow_call_threshold_ms=1000, clock=clock)

    with caplog.at_level(logging.WARNING, logger="pm_intelligence.metrics"):
        recorder.with_metrics("fast", lambda: clock.advance_ms(1000))
        recorder.with_metrics("slow", lambda: clock.advance_ms(1001))

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert warnings[0].getMessage() == "Slow operation"
    assert warnings[0].operation == "slow"
    assert warnings[0].duration_ms == 1001


@pytest.mark.parametrize("exc_type", [KeyboardInterrupt, SystemExit])
def test_with_metrics_records_base_exceptions(clock, exc_type: type[BaseException]) -> None:
    recorder = MetricsRecorder(clock=clock)

    def work() -> None:
        clock.advance_ms(5)
        raise exc_type()

    with pytest.raises(exc_type):
        recorder.with_metrics("interrupted", work)

    snap = recorder.snapshot()["interrupted"]
    assert snap.calls == 1
    assert snap.errors == 1
    assert snap.total_duration_ms == 5
