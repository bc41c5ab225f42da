"""
Fund request workflow definition (``fundflow_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the fund request state machine and the
per-organization step configuration.  The transition table lives here,
once, as a frozen ``Workflow``; the authority function in
``domain/authority.py`` is the only consumer that decides transitions.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_states`` are members of ``states``.
* ``rejected`` is reachable only from submitted, accounting_review and
  validated; ``paid`` has no outgoing edge.
* Inactive steps keep their ``step_order``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from fundflow_kernel.domain.fund_request import (
    FundRequestStatus,
    WorkflowAction,
    WorkflowRole,
    status_ordinal,
)


@dataclass(frozen=True)
class Transition:
    """A valid state transition.

    ``requester_only`` transitions are gated by identity (the original
    requester), not by a workflow step role.
    """

    from_state: FundRequestStatus
    to_state: FundRequestStatus
    action: WorkflowAction
    requester_only: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """

    name: str
    description: str
    initial_states: tuple[FundRequestStatus, ...]
    states: tuple[FundRequestStatus, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[FundRequestStatus, ...] = ()

    def __post_init__(self) -> None:
        for state in self.initial_states:
            if state not in self.states:
                raise ValueError(f"Initial state {state!r} not in workflow states")
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(f"Transition {t.action} references unknown state")

    def find(
        self,
        from_state: FundRequestStatus,
        to_state: FundRequestStatus,
    ) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def successors(self, from_state: FundRequestStatus) -> tuple[FundRequestStatus, ...]:
        return tuple(t.to_state for t in self.transitions if t.from_state == from_state)


_S = FundRequestStatus
_A = WorkflowAction

FUND_REQUEST_WORKFLOW = Workflow(
    name="fund_request",
    description="Disbursement request: draft to paid, with rejection and resubmission",
    initial_states=(_S.DRAFT, _S.SUBMITTED),
    states=tuple(FundRequestStatus),
    transitions=(
        Transition(_S.DRAFT, _S.SUBMITTED, _A.SUBMIT, requester_only=True),
        Transition(_S.SUBMITTED, _S.ACCOUNTING_REVIEW, _A.COMPLETE_ACCOUNTING),
        Transition(_S.ACCOUNTING_REVIEW, _S.VALIDATED, _A.APPROVE),
        Transition(_S.VALIDATED, _S.PAID, _A.PAY),
        Transition(_S.SUBMITTED, _S.REJECTED, _A.REJECT),
        Transition(_S.ACCOUNTING_REVIEW, _S.REJECTED, _A.REJECT),
        Transition(_S.VALIDATED, _S.REJECTED, _A.REJECT),
        Transition(_S.REJECTED, _S.SUBMITTED, _A.RESUBMIT, requester_only=True),
    ),
    terminal_states=(_S.PAID,),
)

# state -> allowed next states, derived from the single table above
FUND_REQUEST_TRANSITIONS: dict[FundRequestStatus, frozenset[FundRequestStatus]] = {
    state: frozenset(FUND_REQUEST_WORKFLOW.successors(state))
    for state in FundRequestStatus
}


# Highest step_order any transition can resolve to (the payment stage).
LAST_STAGE_ORDER = status_ordinal(_S.PAID)


def stage_order(transition: Transition) -> int:
    """Step order of the stage that owns a transition.

    Forward moves belong to the stage of the target status; a rejection
    belongs to the stage that was pending (the one after the current).
    """
    if transition.action == WorkflowAction.REJECT:
        return status_ordinal(transition.from_state) + 1
    return status_ordinal(transition.to_state)


# =========================================================================
# Step configuration
# =========================================================================


DEFAULT_ALLOWED_ACTIONS: tuple[WorkflowAction, ...] = (
    WorkflowAction.APPROVE,
    WorkflowAction.REJECT,
)


@dataclass(frozen=True)
class WorkflowStep:
    """A named, ordered, role-owned stage of an organization's workflow.

    ``step_id`` is None for configured defaults that were not persisted.
    ``assigned_user_ids`` narrows the stage to specific users when set.
    """

    step_name: str
    step_order: int
    responsible_role: WorkflowRole
    is_active: bool = True
    allowed_actions: tuple[WorkflowAction, ...] = DEFAULT_ALLOWED_ACTIONS
    step_id: UUID | None = None
    organization_id: UUID | None = None
    assigned_user_ids: frozenset[UUID] = field(default_factory=frozenset)

    def allows(self, action: WorkflowAction) -> bool:
        return action in self.allowed_actions


def active_steps_in_order(steps: tuple[WorkflowStep, ...] | list[WorkflowStep]) -> tuple[WorkflowStep, ...]:
    """Active steps sorted ascending by step_order."""
    return tuple(sorted((s for s in steps if s.is_active), key=lambda s: s.step_order))
