"""Local workflow states and the rules for moving between them.

Workflow state is tracked locally (not on GitHub). GitHub stays the source of
truth for issue content; this module only decides which moves are legal.
"""

from __future__ import annotations

from enum import Enum


class WorkflowState(str, Enum):
    BACKLOG = "Backlog"
    READY = "Ready"
    ACTIVE = "Active"
    REVIEW = "Review"
    REWORK = "Rework"
    DONE = "Done"


ALLOWED_TRANSITIONS: dict[WorkflowState, set[WorkflowState]] = {
    WorkflowState.BACKLOG: {WorkflowState.READY, WorkflowState.ACTIVE},
    WorkflowState.READY: {WorkflowState.ACTIVE, WorkflowState.BACKLOG},
    WorkflowState.ACTIVE: {WorkflowState.REVIEW, WorkflowState.BACKLOG, WorkflowState.READY},
    WorkflowState.REVIEW: {WorkflowState.DONE, WorkflowState.REWORK, WorkflowState.ACTIVE},
    WorkflowState.REWORK: {WorkflowState.ACTIVE, WorkflowState.REVIEW},
    # Reopen.
    WorkflowState.DONE: {WorkflowState.ACTIVE},
}

# Max concurrent open Active issues.
WIP_LIMIT = 1

PRIORITY_LEVELS: tuple[str, ...] = ("critical", "high", "normal")


class InvalidWorkflowStateError(ValueError):
    pass


class IllegalTransitionError(ValueError):
    pass


class WipLimitExceededError(ValueError):
    pass


def valid_state_names() -> list[str]:
    return [s.value for s in WorkflowState]


def parse_workflow_state(value: str | WorkflowState) -> WorkflowState:
    """Resolve a user-supplied state name (case-insensitive)."""

    if isinstance(value, WorkflowState):
        return value
    normalized = value.strip().lower()
    for state in WorkflowState:
        if state.value.lower() == normalized:
            return state
    raise InvalidWorkflowStateError(
        f"Invalid workflow state: {value!r}. Valid states: {', '.join(valid_state_names())}"
    )


def check_transition(current: WorkflowState, target: WorkflowState) -> None:
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if target not in allowed:
        allowed_names = ", ".join(s.value for s in WorkflowState if s in allowed) or "none"
        raise IllegalTransitionError(
            f"Invalid transition: {current.value} -> {target.value}. "
            f"Allowed from {current.value}: {allowed_names}"
        )
