"""Test configuration and fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from pm_intelligence.cache import ExpiringCache
from pm_intelligence.metrics import MetricsRecorder
from pm_intelligence.store import IssueStore, LocalIssue
from pm_intelligence.workflow import WorkflowState


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


def _make_issue(
    number: int,
    *,
    title: str | None = None,
    workflow: WorkflowState = WorkflowState.BACKLOG,
    labels: list[str] | None = None,
    body: str | None = None,
    state: str = "open",
    priority: str = "normal",
) -> LocalIssue:
    return LocalIssue(
        number=number,
        title=title or f"Issue {number}",
        body=body,
        state=state,
        created_at=f"2025-01-{number % 28 + 1:02d}T00:00:00+00:00",
        updated_at="2025-02-01T00:00:00+00:00",
        labels=labels or [],
        workflow=workflow,
        priority=priority,
    )


def _seed(store: IssueStore, *issues: LocalIssue) -> None:
    """Write issues directly, keeping the workflow each one was built with."""

    state = store.load()
    state.issues.extend(issues)
    store.path.parent.mkdir(parents=True, exist_ok=True)
    store.path.write_text(state.model_dump_json(indent=2), encoding="utf-8")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ExpiringCache:
    return ExpiringCache(clock=clock)


@pytest.fixture
def metrics() -> MetricsRecorder:
    return MetricsRecorder()


@pytest.fixture
def store(tmp_path: Path) -> IssueStore:
    return IssueStore(tmp_path / ".pm" / "issues.json")


@pytest.fixture
def make_issue():
    """Factory for :class:`LocalIssue` records with sensible defaults."""

    return _make_issue


@pytest.fixture
def seed():
    """Write issues straight into a store, keeping each issue's workflow state."""

    return _seed
