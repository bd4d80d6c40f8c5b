from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

from pm_intelligence.cache import ExpiringCache
from pm_intelligence.github.client import GitHubClient, GitHubIssue
from pm_intelligence.store import IssueStore
from pm_intelligence.sync import is_sync_stale, sync_from_github, to_local_issue
from pm_intelligence.workflow import WorkflowState


def _gh_issue(number: int, *, title: str = "Issue", labels: list[str] | None = None) -> GitHubIssue:
    return GitHubIssue(
        number=number,
        title=title,
        body="body",
        state="OPEN",
        author="octocat",
        created_at=datetime(2025, 1, 1, tzinfo=UTC),
        updated_at=datetime(2025, 1, 2, tzinfo=UTC),
        labels=labels or [],
    )


def test_to_local_issue_normalizes_state_and_dates() -> None:
    local = to_local_issue(_gh_issue(1, labels=["type:bug"]))

    assert local.state == "open"
    assert local.created_at == "2025-01-01T00:00:00+00:00"
    assert local.closed_at is None
    assert local.labels == ["type:bug"]
    assert local.workflow is WorkflowState.BACKLOG


def test_first_sync_is_full_and_creates_issues(store: IssueStore, cache: ExpiringCache) -> None:
    github = Mock(spec=GitHubClient)
    github.list_issues.return_value = [_gh_issue(1), _gh_issue(2)]

    result = sync_from_github(github, store, cache)

    github.list_issues.assert_called_once_with(state="all", limit=200, since=None)
    assert result.synced == 2
    assert result.created == 2
    assert result.updated == 0
    assert result.incremental is False
    assert [i.number for i in store.list_issues()] == [1, 2]
    assert store.last_sync("issues") is not None

    events = store.events()
    assert events[-1].event_type == "sync"
    assert events[-1].actor == "system"
    assert events[-1].metadata["issues_created"] == 2


def test_second_sync_is_incremental_and_updates(store: IssueStore, cache: ExpiringCache) -> None:
    github = Mock(spec=GitHubClient)
    github.list_issues.return_value = [_gh_issue(1)]
    sync_from_github(github, store, cache)
    store.transition(1, WorkflowState.READY)

    github.list_issues.return_value = [_gh_issue(1, title="Edited")]
    result = sync_from_github(github, store, cache)

    since = github.list_issues.call_args.kwargs["since"]
    assert isinstance(since, datetime)
    assert result.incremental is True
    assert result.updated == 1
    assert result.created == 0

    issue = store.get_item(1)
    assert issue.title == "Edited"
    assert issue.workflow is WorkflowState.READY


def test_force_sync_ignores_last_sync(store: IssueStore, cache: ExpiringCache) -> None:
    store.mark_synced("issues", at="2025-01-01T00:00:00+00:00")
    github = Mock(spec=GitHubClient)
    github.list_issues.return_value = []

    result = sync_from_github(github, store, cache, force=True)

    assert github.list_issues.call_args.kwargs["since"] is None
    assert result.incremental is False


def test_sync_drops_all_cached_values(store: IssueStore, cache: ExpiringCache) -> None:
    cache.get_or_compute("db:board-summary", 30_000, lambda: {"total": 0})
    cache.get_or_compute("github:issue-body:1", 300_000, lambda: "old")
    github = Mock(spec=GitHubClient)
    github.list_issues.return_value = [_gh_issue(1)]

    sync_from_github(github, store, cache)

    assert cache.stats().entries == 0


def test_sync_result_json_shape() -> None:
    github = Mock(spec=GitHubClient)
    github.list_issues.return_value = []
    store = Mock(spec=IssueStore)
    store.last_sync.return_value = None

    data = sync_from_github(github, store, ExpiringCache()).to_json()

    store.mark_synced.assert_called_once()

    assert set(data) == {"issues", "incremental", "duration_ms"}
    assert data["issues"] == {"synced": 0, "created": 0, "updated": 0}


def test_is_sync_stale(store: IssueStore) -> None:
    now = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
    assert is_sync_stale(store, now=now) is True

    store.mark_synced("issues", at=(now - timedelta(minutes=30)).isoformat())
    assert is_sync_stale(store, now=now) is False
    assert is_sync_stale(store, max_age=timedelta(minutes=10), now=now) is True
