"""
Progress projection (``fundflow_kernel.domain.progress``).

Maps (active workflow steps, request status) to a display state per step.
Pure and deterministic: identical inputs always give identical output, so
presentation layers can snapshot-test it.

* Non-rejected: a step is ``completed`` below the status ordinal,
  ``current`` at it and ``pending`` above it.
* Rejected: steps up to and including the ordinal the request had when it
  was rejected are ``rejected``; later ones stay ``pending``.
* No active steps: empty tuple.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from fundflow_kernel.domain.fund_request import (
    FundRequestStatus,
    WorkflowRole,
    status_ordinal,
)
from fundflow_kernel.domain.workflow import WorkflowStep, active_steps_in_order


class StepState(str, Enum):
    """Display state of one workflow step."""

    COMPLETED = "completed"
    CURRENT = "current"
    PENDING = "pending"
    REJECTED = "rejected"


@dataclass(frozen=True)
class StepProgress:
    step_name: str
    step_order: int
    responsible_role: WorkflowRole
    state: StepState


def _reference_ordinal(
    status: FundRequestStatus,
    rejected_from: FundRequestStatus | None,
) -> int:
    if status != FundRequestStatus.REJECTED:
        return status_ordinal(status)
    if rejected_from is None or rejected_from == FundRequestStatus.REJECTED:
        return 0
    return status_ordinal(rejected_from)


def project_progress(
    steps: tuple[WorkflowStep, ...] | list[WorkflowStep],
    status: FundRequestStatus | str,
    rejected_from: FundRequestStatus | str | None = None,
) -> tuple[StepProgress, ...]:
    """Compute the display state of each active step, in step order."""
    current = FundRequestStatus(status)
    rejected_at = FundRequestStatus(rejected_from) if rejected_from is not None else None
    ordinal = _reference_ordinal(current, rejected_at)
    is_rejected = current == FundRequestStatus.REJECTED

    result = []
    for step in active_steps_in_order(steps):
        if is_rejected:
            state = StepState.REJECTED if step.step_order <= ordinal else StepState.PENDING
        elif step.step_order < ordinal:
            state = StepState.COMPLETED
        elif step.step_order == ordinal:
            state = StepState.CURRENT
        else:
            state = StepState.PENDING
        result.append(StepProgress(
            step_name=step.step_name,
            step_order=step.step_order,
            responsible_role=step.responsible_role,
            state=state,
        ))
    return tuple(result)


def progress_ratio(
    steps: tuple[WorkflowStep, ...] | list[WorkflowStep],
    status: FundRequestStatus | str,
    rejected_from: FundRequestStatus | str | None = None,
) -> Decimal:
    """Filled fraction of the progress bar, in [0, 1]."""
    active = active_steps_in_order(steps)
    if not active:
        return Decimal("0")
    current = FundRequestStatus(status)
    rejected_at = FundRequestStatus(rejected_from) if rejected_from is not None else None
    ordinal = max(_reference_ordinal(current, rejected_at), 0)
    return min(Decimal(ordinal) / Decimal(len(active)), Decimal("1"))
