"""JSON-file backed local PM state.

GitHub is the source of truth for issue content (title, body, labels, state).
This store keeps:
- a mirror of GitHub issue metadata (refreshed on sync)
- local-only PM state (workflow, priority, risk)
- an event history (every workflow change and sync, with timestamps)

Every mutation loads, modifies and rewrites the whole file under a lock. That is
fine for the few hundred issues a sync pulls in.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from pm_intelligence.workflow import (
    PRIORITY_LEVELS,
    WIP_LIMIT,
    WipLimitExceededError,
    WorkflowState,
    check_transition,
    parse_workflow_state,
)

logger = logging.getLogger(__name__)

DEFAULT_ACTOR = "pm-intelligence"


def _utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


def not_found_message(issue_number: int) -> str:
    return f"Item #{issue_number} not found in local store. Run 'pm-intelligence sync' first."


class LocalIssue(BaseModel):
    """A GitHub issue mirrored locally, enriched with local-only PM fields."""

    number: int
    title: str
    body: str | None = None
    state: str = Field(default="open", description="GitHub state: open | closed")
    author: str | None = None
    created_at: str
    updated_at: str
    closed_at: str | None = None

    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)

    workflow: WorkflowState = WorkflowState.BACKLOG
    priority: str = "normal"
    risk: str | None = "medium"

    synced_at: str = Field(default_factory=_utc_iso_now)


class WorkflowEvent(BaseModel):
    event_type: str
    issue_number: int | None = None
    from_value: str | None = None
    to_value: str | None = None
    actor: str = DEFAULT_ACTOR
    created_at: str = Field(default_factory=_utc_iso_now)
    metadata: dict[str, Any] = Field(default_factory=dict)


class StoreState(BaseModel):
    version: str = Field(default="1", description="State schema version")
    issues: list[LocalIssue] = Field(default_factory=list)
    events: list[WorkflowEvent] = Field(default_factory=list)
    last_sync: dict[str, str] = Field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TransitionOutcome:
    issue_number: int
    from_state: WorkflowState
    to_state: WorkflowState

    @property
    def message(self) -> str:
        return f"Issue #{self.issue_number}: {self.from_state.value} -> {self.to_state.value}"


@dataclass(frozen=True, slots=True)
class BoardSummary:
    total: int
    by_workflow: dict[str, int]
    by_priority: dict[str, int]
    active: list[LocalIssue]
    review: list[LocalIssue]
    rework: list[LocalIssue]

    def to_json(self) -> dict[str, object]:
        def _brief(issues: list[LocalIssue]) -> list[dict[str, object]]:
            return [{"number": i.number, "title": i.title, "priority": i.priority} for i in issues]

        return {
            "total": self.total,
            "byWorkflow": dict(self.by_workflow),
            "byPriority": dict(self.by_priority),
            "activeIssues": _brief(self.active),
            "reviewIssues": _brief(self.review),
            "reworkIssues": _brief(self.rework),
        }


class IssueStore:
    """Local issue mirror, workflow state and event log in one JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _load_unlocked(self) -> StoreState:
        if not self._path.exists():
            return StoreState()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning(
                "State file is not valid JSON; treating as empty",
                extra={"path": str(self._path)},
            )
            return StoreState()
        if not isinstance(raw, dict):
            logger.warning(
                "State file has unexpected shape; treating as empty",
                extra={"path": str(self._path)},
            )
            return StoreState()
        return StoreState.model_validate(raw)

    def _save_unlocked(self, state: StoreState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(state.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )

    def load(self) -> StoreState:
        with self._lock:
            return self._load_unlocked()

    # --- reads -----------------------------------------------------------

    def get_item(self, item_id: int) -> LocalIssue | None:
        for issue in self.load().issues:
            if issue.number == item_id:
                return issue
        return None

    def list_issues(self) -> list[LocalIssue]:
        return self.load().issues

    def issues_by_workflow(self, workflow: WorkflowState) -> list[LocalIssue]:
        """Open issues in ``workflow``, highest priority first, then oldest first."""

        rank = {level: i for i, level in enumerate(PRIORITY_LEVELS)}
        matching = [
            i for i in self.load().issues if i.workflow == workflow and i.state == "open"
        ]
        unranked = len(PRIORITY_LEVELS)
        return sorted(matching, key=lambda i: (rank.get(i.priority, unranked), i.created_at))

    def board_summary(self) -> BoardSummary:
        open_issues = [i for i in self.load().issues if i.state == "open"]
        by_workflow: dict[str, int] = {}
        by_priority: dict[str, int] = {}
        for issue in open_issues:
            by_workflow[issue.workflow.value] = by_workflow.get(issue.workflow.value, 0) + 1
            by_priority[issue.priority] = by_priority.get(issue.priority, 0) + 1
        return BoardSummary(
            total=len(open_issues),
            by_workflow=by_workflow,
            by_priority=by_priority,
            active=self.issues_by_workflow(WorkflowState.ACTIVE),
            review=self.issues_by_workflow(WorkflowState.REVIEW),
            rework=self.issues_by_workflow(WorkflowState.REWORK),
        )

    def list_fallback_candidates(self) -> list[LocalIssue]:
        """In-flight issues (Active, then Review) used when GitHub listing is unavailable."""

        return self.issues_by_workflow(WorkflowState.ACTIVE) + self.issues_by_workflow(
            WorkflowState.REVIEW
        )

    def events(self, *, issue_number: int | None = None) -> list[WorkflowEvent]:
        events = self.load().events
        if issue_number is None:
            return events
        return [e for e in events if e.issue_number == issue_number]

    def last_sync(self, kind: str) -> str | None:
        return self.load().last_sync.get(kind)

    # --- writes ----------------------------------------------------------

    def upsert_issue(self, issue: LocalIssue) -> bool:
        """Insert or refresh an issue mirrored from GitHub.

        Local-only fields (workflow, priority, risk) are kept on update.

        Returns:
            True if the issue was not in the store before.
        """

        with self._lock:
            state = self._load_unlocked()
            for idx, existing in enumerate(state.issues):
                if existing.number != issue.number:
                    continue
                state.issues[idx] = issue.model_copy(
                    update={
                        "workflow": existing.workflow,
                        "priority": existing.priority,
                        "risk": existing.risk,
                        "synced_at": _utc_iso_now(),
                    }
                )
                self._save_unlocked(state)
                return False
            state.issues.append(issue.model_copy(update={"synced_at": _utc_iso_now()}))
            self._save_unlocked(state)
            return True

    def set_item_state(self, item_id: int, workflow: WorkflowState | str) -> None:
        """Write a workflow state without transition checks."""

        target = parse_workflow_state(workflow)
        with self._lock:
            state = self._load_unlocked()
            for idx, issue in enumerate(state.issues):
                if issue.number == item_id:
                    state.issues[idx] = issue.model_copy(update={"workflow": target})
                    self._save_unlocked(state)
                    return
            raise KeyError(item_id)

    def transition(
        self,
        item_id: int,
        target_state: WorkflowState | str,
        *,
        actor: str = DEFAULT_ACTOR,
    ) -> TransitionOutcome:
        """Move an issue along the workflow, enforcing transitions and the WIP limit."""

        target = parse_workflow_state(target_state)
        with self._lock:
            state = self._load_unlocked()
            idx = next((i for i, x in enumerate(state.issues) if x.number == item_id), None)
            if idx is None:
                raise LookupError(not_found_message(item_id))

            issue = state.issues[idx]
            current = issue.workflow
            check_transition(current, target)

            if target == WorkflowState.ACTIVE:
                others = [
                    x
                    for x in state.issues
                    if x.workflow == WorkflowState.ACTIVE
                    and x.state == "open"
                    and x.number != item_id
                ]
                if len(others) >= WIP_LIMIT:
                    blocker = others[0]
                    raise WipLimitExceededError(
                        f"WIP limit reached: #{blocker.number} {blocker.title!r} is already "
                        "Active. Move it to Review or Done first."
                    )

            updates: dict[str, object] = {"workflow": target}
            if target == WorkflowState.DONE and issue.state == "open":
                updates["state"] = "closed"
                updates["closed_at"] = _utc_iso_now()
            state.issues[idx] = issue.model_copy(update=updates)

            state.events.append(
                WorkflowEvent(
                    event_type="workflow_change",
                    issue_number=item_id,
                    from_value=current.value,
                    to_value=target.value,
                    actor=actor,
                )
            )
            self._save_unlocked(state)

        outcome = TransitionOutcome(issue_number=item_id, from_state=current, to_state=target)
        logger.info(
            "Workflow moved",
            extra={"issue_number": item_id, "from": current.value, "to": target.value},
        )
        return outcome

    def record_event(self, event: WorkflowEvent) -> None:
        with self._lock:
            state = self._load_unlocked()
            state.events.append(event)
            self._save_unlocked(state)

    def mark_synced(self, kind: str, *, at: str | None = None) -> None:
        with self._lock:
            state = self._load_unlocked()
            state.last_sync[kind] = at or _utc_iso_now()
            self._save_unlocked(state)
