"""Tool layer: thin handlers over the cache, batch executor and local store.

Each :class:`PMToolbox` owns one cache and one metrics recorder for its whole
lifetime; there is no module-level state, so tests can build isolated
toolboxes. Every tool call is timed through the metrics recorder and any error
is turned into an error envelope after it has been recorded.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pm_intelligence.batch import BatchExecutor, CandidateItem
from pm_intelligence.cache import TTL, ExpiringCache
from pm_intelligence.config import PMSettings
from pm_intelligence.github.client import GitHubClient
from pm_intelligence.metrics import MetricsRecorder
from pm_intelligence.store import IssueStore
from pm_intelligence.sync import is_sync_stale, sync_from_github
from pm_intelligence.triage import LabelClassifier

logger = logging.getLogger(__name__)


def tool_response(data: Any) -> dict[str, Any]:
    text = data if isinstance(data, str) else json.dumps(data, indent=2, default=str)
    return {"content": [{"type": "text", "text": text}]}


def tool_error(error: BaseException) -> dict[str, Any]:
    message = str(error) or type(error).__name__
    return {"content": [{"type": "text", "text": f"Error: {message}"}], "isError": True}


class GitHubUnavailableError(RuntimeError):
    pass


class _UnavailableLister:
    """Stands in for the GitHub lister when no client is configured."""

    def list_candidates(self, limit: int) -> list[CandidateItem]:
        raise GitHubUnavailableError("GitHub client is not configured")


@dataclass(frozen=True, slots=True)
class ToolSpec:
    name: str
    description: str
    handler: Callable[..., Any]


class PMToolbox:
    """The tools exposed to the orchestrator, sharing one cache and one recorder."""

    def __init__(
        self,
        *,
        store: IssueStore,
        github: GitHubClient | None = None,
        cache: ExpiringCache | None = None,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self.store = store
        self.github = github
        self.cache = cache or ExpiringCache()
        self.metrics = metrics or MetricsRecorder()

        self.classifier = LabelClassifier(
            store=store,
            cache=self.cache,
            fetch_body=github.get_issue_body if github is not None else None,
        )
        self.executor = BatchExecutor(
            lister=github if github is not None else _UnavailableLister(),
            fallback=store,
            classifier=self.classifier,
            store=store,
            mutator=store,
            metrics=self.metrics,
        )

        self._tools: dict[str, ToolSpec] = {}
        for spec in (
            ToolSpec(
                "bulk_triage",
                "Suggest type/area/priority/risk labels for open issues missing type: or "
                "area: labels. Suggestions only; nothing is applied.",
                self.bulk_triage,
            ),
            ToolSpec(
                "bulk_move",
                "Move several issues to one workflow state. Supports dry run.",
                self.bulk_move,
            ),
            ToolSpec("move_issue", "Move one issue to a workflow state.", self.move_issue),
            ToolSpec(
                "sync_from_github",
                "Pull issues from GitHub into the local store and drop all cached values.",
                self.sync_from_github,
            ),
            ToolSpec("board_overview", "Workflow and priority counts for open issues.", self.board_overview),
            ToolSpec("cache_stats", "Entry counts and keys of the shared cache.", self.cache_stats),
            ToolSpec("tool_metrics", "Per-tool call counts, errors and latency.", self.tool_metrics),
        ):
            self._tools[spec.name] = spec

    @classmethod
    def from_settings(cls, settings: PMSettings, *, with_github: bool = True) -> PMToolbox:
        github: GitHubClient | None = None
        if with_github and settings.github_token.strip():
            token, repository = settings.require_github()
            github = GitHubClient(
                token=token, repository=repository, base_url=settings.github_base_url
            )
        return cls(
            store=IssueStore(settings.issues_state_file),
            github=github,
            metrics=MetricsRecorder(slow_call_threshold_ms=settings.slow_call_threshold_ms),
        )

    def close(self) -> None:
        if self.github is not None:
            self.github.close()

    # --- dispatch --------------------------------------------------------

    def tool_names(self) -> list[str]:
        return list(self._tools)

    def describe(self) -> list[dict[str, str]]:
        return [{"name": t.name, "description": t.description} for t in self._tools.values()]

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def call(self, name: str, **params: Any) -> dict[str, Any]:
        """Run a tool by name and wrap its result (or error) in a response envelope."""

        spec = self._tools.get(name)
        if spec is None:
            return tool_error(KeyError(f"Unknown tool: {name}"))
        try:
            result = self.metrics.with_metrics(name, lambda: spec.handler(**params))
        except Exception as e:
            return tool_error(e)
        return tool_response(result)

    # --- tools -----------------------------------------------------------

    def bulk_triage(self, max_items: int = 20, state: str | None = None) -> dict[str, Any]:
        return self.executor.bulk_classify(max_items, state).model_dump(mode="json")

    def bulk_move(
        self, issue_numbers: list[int], target_state: str, dry_run: bool = False
    ) -> dict[str, Any]:
        report = self.executor.bulk_transition(issue_numbers, target_state, dry_run)
        if not dry_run and report.moved:
            self.cache.invalidate_prefix("db:")
        return report.model_dump(mode="json")

    def move_issue(self, issue_number: int, target_state: str) -> dict[str, Any]:
        outcome = self.store.transition(issue_number, target_state)
        self.cache.invalidate_prefix("db:")
        return {
            "success": True,
            "message": outcome.message,
            "from": outcome.from_state.value,
            "to": outcome.to_state.value,
        }

    def sync_from_github(self, force: bool = False) -> dict[str, Any]:
        if self.github is None:
            raise GitHubUnavailableError(
                "GitHub client is not configured; set ORCHESTRATOR_GITHUB_TOKEN"
            )
        return sync_from_github(self.github, self.store, self.cache, force=force).to_json()

    def board_overview(self) -> dict[str, object]:
        summary = self.cache.get_or_compute(
            "db:board-summary", TTL.DB, lambda: self.store.board_summary().to_json()
        )
        # Staleness is read fresh; the counts may come from the cache.
        return {**summary, "syncStale": self.sync_stale()}

    def sync_stale(self) -> bool:
        return is_sync_stale(self.store)

    def cache_stats(self) -> dict[str, object]:
        return self.cache.stats().to_json()

    def tool_metrics(self) -> dict[str, dict[str, object]]:
        return self.metrics.snapshot_json()
