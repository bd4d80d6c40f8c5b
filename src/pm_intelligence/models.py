"""Per-item results and aggregate reports produced by the batch executor.

Each result is a tagged variant keyed on ``status``. Only the error variants
carry an ``error`` field, so a result can never hold two statuses or an error
message next to a success status.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class _Result(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: int
    title: str


class SuggestedFields(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str | None = None
    area: str | None = None
    priority: str | None = None
    risk: str | None = None


# --- classification -------------------------------------------------------


class Triaged(_Result):
    status: Literal["triaged"] = "triaged"
    suggested_fields: SuggestedFields
    spec_ready: bool = False


class AlreadyClassified(_Result):
    status: Literal["already_classified"] = "already_classified"


class ClassificationFailed(_Result):
    status: Literal["error"] = "error"
    error: str


ClassificationResult = Annotated[
    Triaged | AlreadyClassified | ClassificationFailed,
    Field(discriminator="status"),
]


# --- transitions ----------------------------------------------------------


class Moved(_Result):
    status: Literal["moved"] = "moved"
    from_state: str
    to_state: str


class AlreadyInState(_Result):
    status: Literal["already_in_state"] = "already_in_state"
    from_state: str
    to_state: str


class TransitionFailed(_Result):
    status: Literal["error"] = "error"
    from_state: str | None = None
    to_state: str
    error: str


TransitionResult = Annotated[
    Moved | AlreadyInState | TransitionFailed,
    Field(discriminator="status"),
]


# --- reports --------------------------------------------------------------


class BulkClassifyReport(BaseModel):
    total: int
    triaged: int
    already_classified: int
    errors: int
    results: list[ClassificationResult] = Field(default_factory=list)
    summary: str


class BulkTransitionReport(BaseModel):
    total: int
    moved: int
    already_in_state: int
    errors: int
    dry_run: bool
    target_state: str
    results: list[TransitionResult] = Field(default_factory=list)
    summary: str


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def build_classify_report(results: list[ClassificationResult]) -> BulkClassifyReport:
    triaged = sum(1 for r in results if r.status == "triaged")
    already = sum(1 for r in results if r.status == "already_classified")
    errors = sum(1 for r in results if r.status == "error")
    summary = (
        f"Processed {len(results)} items: {triaged} need triage, "
        f"{already} already triaged, {_plural(errors, 'error')}. "
        "Labels are suggestions only; nothing was applied."
    )
    return BulkClassifyReport(
        total=len(results),
        triaged=triaged,
        already_classified=already,
        errors=errors,
        results=results,
        summary=summary,
    )


def build_transition_report(
    results: list[TransitionResult], *, target_state: str, dry_run: bool
) -> BulkTransitionReport:
    moved = sum(1 for r in results if r.status == "moved")
    already = sum(1 for r in results if r.status == "already_in_state")
    errors = sum(1 for r in results if r.status == "error")
    if dry_run:
        summary = (
            f"DRY RUN: Would move {moved} of {len(results)} items to {target_state}. "
            f"{already} already in {target_state}."
        )
    else:
        summary = (
            f"Moved {moved} of {len(results)} items to {target_state}. "
            f"{already} already in {target_state}, {_plural(errors, 'error')}."
        )
    return BulkTransitionReport(
        total=len(results),
        moved=moved,
        already_in_state=already,
        errors=errors,
        dry_run=dry_run,
        target_state=target_state,
        results=results,
        summary=summary,
    )
