"""Pull issues from GitHub into the local store.

Sync is incremental: only issues updated since the last issues sync are
fetched, unless ``force`` is set. Every derived value may be stale after a sync,
so the whole cache is dropped once the store has been written.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from pm_intelligence.cache import ExpiringCache
from pm_intelligence.github.client import GitHubIssue
from pm_intelligence.store import IssueStore, LocalIssue, WorkflowEvent

logger = logging.getLogger(__name__)

ISSUES_PER_SYNC = 200
SYNC_STALE = timedelta(hours=1)


class IssueSource(Protocol):
    def list_issues(
        self, *, state: str = "all", limit: int = 200, since: datetime | None = None
    ) -> list[GitHubIssue]: ...


@dataclass(frozen=True, slots=True)
class SyncResult:
    synced: int
    created: int
    updated: int
    incremental: bool
    duration_ms: int

    def to_json(self) -> dict[str, object]:
        return {
            "issues": {"synced": self.synced, "created": self.created, "updated": self.updated},
            "incremental": self.incremental,
            "duration_ms": self.duration_ms,
        }


def _iso(value: datetime | None) -> str | None:
    return value.astimezone(UTC).isoformat() if value is not None else None


def _parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def to_local_issue(issue: GitHubIssue) -> LocalIssue:
    return LocalIssue(
        number=issue.number,
        title=issue.title,
        body=issue.body,
        state=issue.state.lower(),
        author=issue.author,
        created_at=_iso(issue.created_at) or "",
        updated_at=_iso(issue.updated_at) or "",
        closed_at=_iso(issue.closed_at),
        labels=list(issue.labels),
        assignees=list(issue.assignees),
    )


def sync_from_github(
    github: IssueSource,
    store: IssueStore,
    cache: ExpiringCache,
    *,
    force: bool = False,
) -> SyncResult:
    start = time.perf_counter()

    since: datetime | None = None
    if not force:
        last = store.last_sync("issues")
        if last:
            since = _parse_iso(last)

    # Take the timestamp before fetching so edits made during the sync are picked up next time.
    sync_started_at = datetime.now(tz=UTC).isoformat()
    issues = github.list_issues(state="all", limit=ISSUES_PER_SYNC, since=since)

    created = 0
    updated = 0
    for issue in issues:
        if store.upsert_issue(to_local_issue(issue)):
            created += 1
        else:
            updated += 1

    store.mark_synced("issues", at=sync_started_at)
    store.record_event(
        WorkflowEvent(
            event_type="sync",
            actor="system",
            metadata={
                "issues_synced": len(issues),
                "issues_created": created,
                "issues_updated": updated,
                "incremental": since is not None,
            },
        )
    )

    cache.invalidate_all()

    result = SyncResult(
        synced=len(issues),
        created=created,
        updated=updated,
        incremental=since is not None,
        duration_ms=int(round((time.perf_counter() - start) * 1000)),
    )
    logger.info(
        "Sync finished",
        extra={"synced": result.synced, "created": created, "updated": updated},
    )
    return result


def is_sync_stale(
    store: IssueStore, *, max_age: timedelta = SYNC_STALE, now: datetime | None = None
) -> bool:
    last = store.last_sync("issues")
    if not last:
        return True
    current = now or datetime.now(tz=UTC)
    return current - _parse_iso(last) > max_age
