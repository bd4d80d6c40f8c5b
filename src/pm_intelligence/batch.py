"""Bulk issue operations with per-item failure isolation.

Two operations share one shape: walk a bounded list of items in input order,
run a fallible step for each, turn any failure into an error result for that
item only, and aggregate everything into a report.

- :meth:`BatchExecutor.bulk_classify` suggests labels for untriaged issues
  (advisory only, nothing is written).
- :meth:`BatchExecutor.bulk_transition` moves issues to a workflow state, with a
  dry-run mode that computes outcomes without mutating anything.

Items are processed strictly one after another, so result order always matches
input order. The executor imposes no timeout; a hanging collaborator call
blocks the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from pm_intelligence.metrics import MetricsRecorder
from pm_intelligence.models import (
    AlreadyClassified,
    AlreadyInState,
    BulkClassifyReport,
    BulkTransitionReport,
    ClassificationFailed,
    ClassificationResult,
    Moved,
    SuggestedFields,
    TransitionFailed,
    TransitionResult,
    Triaged,
    build_classify_report,
    build_transition_report,
)
from pm_intelligence.store import not_found_message
from pm_intelligence.workflow import WorkflowState, parse_workflow_state

logger = logging.getLogger(__name__)

# Facet label prefixes an issue must carry to count as classified.
REQUIRED_FACET_PREFIXES: tuple[str, ...] = ("type:", "area:")
SPEC_READY_LABEL = "spec:ready"


@dataclass(frozen=True, slots=True)
class CandidateItem:
    """An item offered for classification."""

    item_id: int
    title: str
    facets: list[str] = field(default_factory=list)
    workflow: str | None = None

    def missing_facets(self) -> bool:
        return not all(
            any(f.startswith(prefix) for f in self.facets) for prefix in REQUIRED_FACET_PREFIXES
        )


class ItemLister(Protocol):
    def list_candidates(self, limit: int) -> list[CandidateItem]: ...


class FallbackLister(Protocol):
    def list_fallback_candidates(self) -> Sequence[Any]: ...


class Suggestion(Protocol):
    suggested_labels: Sequence[Any]
    suggested_type: Any
    suggested_area: Any
    suggested_priority: Any
    suggested_risk: Any

    @property
    def has_suggestions(self) -> bool: ...

    def suggested_label_names(self) -> list[str]: ...


class Classifier(Protocol):
    def classify(self, item_id: int) -> Suggestion: ...


class ItemStore(Protocol):
    def get_item(self, item_id: int) -> Any | None: ...


class StateMutator(Protocol):
    def transition(self, item_id: int, target_state: WorkflowState) -> Any: ...


def _value_of(suggestion: Any) -> str | None:
    if suggestion is None:
        return None
    value = getattr(suggestion, "value", suggestion)
    return str(value) if value else None


def _state_name(value: Any) -> str:
    return value.value if isinstance(value, WorkflowState) else str(value)


class BatchExecutor:
    """Runs bulk classify / transition operations over injected collaborators."""

    def __init__(
        self,
        *,
        lister: ItemLister,
        fallback: FallbackLister,
        classifier: Classifier,
        store: ItemStore,
        mutator: StateMutator,
        metrics: MetricsRecorder,
    ) -> None:
        self._lister = lister
        self._fallback = fallback
        self._classifier = classifier
        self._store = store
        self._mutator = mutator
        self._metrics = metrics

    # --- bulk classify ---------------------------------------------------

    def resolve_candidates(
        self, max_items: int, state_filter: str | None = None
    ) -> list[CandidateItem]:
        """Pick the items to classify, falling back to local state if GitHub fails."""

        wanted = parse_workflow_state(state_filter).value if state_filter else None
        try:
            listed = self._lister.list_candidates(max_items * 2)
        except Exception as e:
            logger.warning(
                "Primary item lister failed; using local fallback",
                extra={"error": str(e)},
            )
            candidates = [
                CandidateItem(
                    item_id=issue.number,
                    title=issue.title,
                    facets=list(getattr(issue, "labels", [])),
                    workflow=_state_name(issue.workflow),
                )
                for issue in self._fallback.list_fallback_candidates()
            ]
            if wanted is not None:
                candidates = [c for c in candidates if c.workflow == wanted]
            return candidates[:max_items]

        candidates = [c for c in listed if c.missing_facets()]
        if wanted is not None:
            candidates = [c for c in candidates if self._local_workflow(c) == wanted]
        return candidates[:max_items]

    def _local_workflow(self, item: CandidateItem) -> str | None:
        # GitHub candidates carry no workflow; it only exists in the local store.
        if item.workflow is not None:
            return item.workflow
        local = self._store.get_item(item.item_id)
        return _state_name(local.workflow) if local is not None else None

    def bulk_classify(
        self, max_items: int = 20, state_filter: str | None = None
    ) -> BulkClassifyReport:
        if max_items < 1:
            raise ValueError("max_items must be a positive integer")

        def _run() -> BulkClassifyReport:
            candidates = self.resolve_candidates(max_items, state_filter)
            results: list[ClassificationResult] = [
                self._classify_one(item) for item in candidates
            ]
            report = build_classify_report(results)
            logger.info(
                "Bulk classify finished",
                extra={"total": report.total, "triaged": report.triaged, "errors": report.errors},
            )
            return report

        return self._metrics.with_metrics("bulk_classify", _run)

    def _classify_one(self, item: CandidateItem) -> ClassificationResult:
        try:
            suggestion = self._metrics.with_metrics(
                "batch.classify_item", lambda: self._classifier.classify(item.item_id)
            )
        except Exception as e:
            logger.warning(
                "Item classification failed",
                extra={"item_id": item.item_id, "error": str(e)},
            )
            return ClassificationFailed(item_id=item.item_id, title=item.title, error=str(e))

        if not suggestion.has_suggestions:
            return AlreadyClassified(item_id=item.item_id, title=item.title)

        return Triaged(
            item_id=item.item_id,
            title=item.title,
            suggested_fields=SuggestedFields(
                type=_value_of(suggestion.suggested_type),
                area=_value_of(suggestion.suggested_area),
                priority=_value_of(suggestion.suggested_priority),
                risk=_value_of(suggestion.suggested_risk),
            ),
            spec_ready=SPEC_READY_LABEL in suggestion.suggested_label_names(),
        )

    # --- bulk transition -------------------------------------------------

    def bulk_transition(
        self, item_ids: Sequence[int], target_state: str, dry_run: bool = False
    ) -> BulkTransitionReport:
        # An unknown target fails the whole call rather than every item.
        target = parse_workflow_state(target_state)

        def _run() -> BulkTransitionReport:
            results: list[TransitionResult] = [
                self._transition_one(item_id, target, dry_run) for item_id in item_ids
            ]
            report = build_transition_report(results, target_state=target.value, dry_run=dry_run)
            logger.info(
                "Bulk transition finished",
                extra={
                    "total": report.total,
                    "moved": report.moved,
                    "errors": report.errors,
                    "dry_run": dry_run,
                },
            )
            return report

        return self._metrics.with_metrics("bulk_transition", _run)

    def _transition_one(
        self, item_id: int, target: WorkflowState, dry_run: bool
    ) -> TransitionResult:
        fallback_title = f"Item #{item_id}"

        def _step() -> TransitionResult:
            item = self._store.get_item(item_id)
            if item is None:
                raise LookupError(not_found_message(item_id))

            current = _state_name(item.workflow)
            if current == target.value:
                return AlreadyInState(
                    item_id=item_id, title=item.title, from_state=current, to_state=target.value
                )

            if not dry_run:
                self._mutator.transition(item_id, target)
            return Moved(item_id=item_id, title=item.title, from_state=current, to_state=target.value)

        try:
            return self._metrics.with_metrics("batch.transition_item", _step)
        except Exception as e:
            logger.warning(
                "Item transition failed",
                extra={"item_id": item_id, "error": str(e)},
            )
            return TransitionFailed(
                item_id=item_id, title=fallback_title, to_state=target.value, error=str(e)
            )
