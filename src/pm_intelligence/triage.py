"""Keyword-based label classification for issues.

Suggests type, area, priority and risk from the issue title and body. The rules
are deliberately simple keyword matches: the first matching rule wins for each
dimension. Suggestions are advisory; nothing here writes labels.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from pm_intelligence.cache import TTL, ExpiringCache
from pm_intelligence.store import IssueStore, not_found_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Suggested:
    value: str
    confidence: float
    reason: str


@dataclass(frozen=True, slots=True)
class SuggestedLabel:
    label: str
    confidence: float
    reason: str


@dataclass(frozen=True, slots=True)
class _Rule:
    pattern: re.Pattern[str]
    value: str
    confidence: float
    reason: str

    def match(self, text: str) -> Suggested | None:
        if self.pattern.search(text):
            return Suggested(value=self.value, confidence=self.confidence, reason=self.reason)
        return None


def _rule(pattern: str, value: str, confidence: float, reason: str) -> _Rule:
    return _Rule(re.compile(pattern), value, confidence, reason)


TYPE_RULES: tuple[_Rule, ...] = (
    _rule(r"bug|broken|error|crash|fix|fail|wrong", "type:bug", 0.8, "Bug keywords detected in title/body"),
    _rule(r"feat|add|new|implement|create|build", "type:feature", 0.8, "Feature keywords detected"),
    _rule(r"spike|research|explore|investigate|prototype", "type:spike", 0.85, "Research/exploration keywords detected"),
    _rule(r"epic|initiative|project|umbrella|milestone", "type:epic", 0.7, "Epic/initiative keywords detected"),
    _rule(r"chore|cleanup|refactor|update|upgrade|migrate", "type:chore", 0.7, "Maintenance/chore keywords detected"),
)

AREA_RULES: tuple[_Rule, ...] = (
    _rule(r"ui|component|page|button|svelte|frontend|tailwind|layout|css|style", "area:frontend", 0.8, "Frontend/UI keywords detected"),
    _rule(r"api|endpoint|database|supabase|postgres|backend|server", "area:backend", 0.8, "Backend/API keywords detected"),
    _rule(r"contract|on-?chain|algorand|voi|blockchain|wallet|signing", "area:contracts", 0.85, "Blockchain/contract keywords detected"),
    _rule(r"docker|ci|deploy|infra|workflow|github action|makefile", "area:infra", 0.8, "Infrastructure keywords detected"),
)

PRIORITY_RULES: tuple[_Rule, ...] = (
    _rule(r"critical|urgent|emergency|production|outage|security", "critical", 0.75, "Critical/urgent keywords detected"),
    _rule(r"important|high|blocker|blocking|asap", "high", 0.65, "High priority keywords detected"),
)

RISK_RULES: tuple[_Rule, ...] = (
    _rule(r"security|auth|permission|secret|credential|encryption|migration", "high", 0.7, "Security/migration keywords indicate high risk"),
    _rule(r"refactor|breaking|rewrite|overhaul", "medium", 0.65, "Refactoring/breaking changes indicate medium risk"),
)

BLOCKED_PATTERN = re.compile(r"blocked by|depends on|prerequisite|waiting on")


def _first_match(rules: tuple[_Rule, ...], text: str) -> Suggested | None:
    for rule in rules:
        found = rule.match(text)
        if found is not None:
            return found
    return None


@dataclass(frozen=True, slots=True)
class LabelSuggestion:
    item_id: int
    title: str
    current_labels: list[str]
    suggested_labels: list[SuggestedLabel] = field(default_factory=list)
    suggested_type: Suggested | None = None
    suggested_area: Suggested | None = None
    suggested_priority: Suggested | None = None
    suggested_risk: Suggested | None = None

    @property
    def has_suggestions(self) -> bool:
        return bool(self.suggested_labels or self.suggested_type or self.suggested_area)

    def suggested_label_names(self) -> list[str]:
        return [s.label for s in self.suggested_labels]


def suggest_labels(
    *, item_id: int, title: str, body: str, current_labels: list[str]
) -> LabelSuggestion:
    """Classify one issue from its text. Pure; no I/O."""

    combined = f"{title.lower()} {body.lower()}"
    labels: list[SuggestedLabel] = []

    suggested_type = _first_match(TYPE_RULES, combined)
    if suggested_type and suggested_type.value not in current_labels:
        labels.append(SuggestedLabel(suggested_type.value, suggested_type.confidence, suggested_type.reason))

    suggested_area = _first_match(AREA_RULES, combined)
    if suggested_area and suggested_area.value not in current_labels:
        labels.append(SuggestedLabel(suggested_area.value, suggested_area.confidence, suggested_area.reason))

    # Spec readiness looks at the raw body: section headings are case-sensitive.
    if "## Acceptance Criteria" in body and "## Non-goals" in body:
        labels.append(
            SuggestedLabel("spec:ready", 0.7, "Issue has Acceptance Criteria and Non-goals sections")
        )

    if BLOCKED_PATTERN.search(combined):
        labels.append(
            SuggestedLabel("blocked:prerequisite", 0.6, "Dependency/blocker language detected")
        )

    return LabelSuggestion(
        item_id=item_id,
        title=title,
        current_labels=list(current_labels),
        suggested_labels=labels,
        suggested_type=suggested_type,
        suggested_area=suggested_area,
        suggested_priority=_first_match(PRIORITY_RULES, combined),
        suggested_risk=_first_match(RISK_RULES, combined),
    )


class LabelClassifier:
    """Classifies locally-synced issues, fetching fresh bodies through the cache."""

    def __init__(
        self,
        *,
        store: IssueStore,
        cache: ExpiringCache,
        fetch_body: Callable[[int], str] | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._fetch_body = fetch_body

    def _body_for(self, item_id: int, local_body: str | None) -> str:
        if self._fetch_body is None:
            return local_body or ""
        fetch = self._fetch_body
        try:
            return self._cache.get_or_compute(
                f"github:issue-body:{item_id}", TTL.GITHUB, lambda: fetch(item_id)
            )
        except Exception as e:
            logger.debug(
                "Issue body fetch failed; using local copy",
                extra={"item_id": item_id, "error": str(e)},
            )
            return local_body or ""

    def classify(self, item_id: int) -> LabelSuggestion:
        issue = self._store.get_item(item_id)
        if issue is None:
            raise LookupError(not_found_message(item_id))

        body = self._body_for(item_id, issue.body)
        return suggest_labels(
            item_id=item_id, title=issue.title, body=body, current_labels=issue.labels
        )
