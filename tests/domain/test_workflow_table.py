"""
Tests for the fund request transition table (``fundflow_kernel.domain.workflow``).

The table is the single definition of which status changes exist; these
tests pin it down edge by edge and check the structural guarantees of
``Workflow``.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from fundflow_kernel.domain.fund_request import (
    FundRequestStatus,
    WorkflowAction,
    WorkflowRole,
)
from fundflow_kernel.domain.workflow import (
    FUND_REQUEST_TRANSITIONS,
    FUND_REQUEST_WORKFLOW,
    Transition,
    Workflow,
    WorkflowStep,
    active_steps_in_order,
    stage_order,
)

S = FundRequestStatus


class TestTransitionTable:

    def test_exact_edges(self):
        edges = {(t.from_state, t.to_state, t.action) for t in FUND_REQUEST_WORKFLOW.transitions}
        assert edges == {
            (S.DRAFT, S.SUBMITTED, WorkflowAction.SUBMIT),
            (S.SUBMITTED, S.ACCOUNTING_REVIEW, WorkflowAction.COMPLETE_ACCOUNTING),
            (S.ACCOUNTING_REVIEW, S.VALIDATED, WorkflowAction.APPROVE),
            (S.VALIDATED, S.PAID, WorkflowAction.PAY),
            (S.SUBMITTED, S.REJECTED, WorkflowAction.REJECT),
            (S.ACCOUNTING_REVIEW, S.REJECTED, WorkflowAction.REJECT),
            (S.VALIDATED, S.REJECTED, WorkflowAction.REJECT),
            (S.REJECTED, S.SUBMITTED, WorkflowAction.RESUBMIT),
        }

    def test_paid_is_terminal(self):
        assert FUND_REQUEST_TRANSITIONS[S.PAID] == frozenset()
        assert FUND_REQUEST_WORKFLOW.terminal_states == (S.PAID,)

    def test_rejected_only_from_review_stages(self):
        sources = {t.from_state for t in FUND_REQUEST_WORKFLOW.transitions if t.to_state == S.REJECTED}
        assert sources == {S.SUBMITTED, S.ACCOUNTING_REVIEW, S.VALIDATED}

    def test_draft_cannot_be_rejected(self):
        assert S.REJECTED not in FUND_REQUEST_TRANSITIONS[S.DRAFT]

    def test_requester_only_edges(self):
        requester_only = {
            (t.from_state, t.to_state)
            for t in FUND_REQUEST_WORKFLOW.transitions if t.requester_only
        }
        assert requester_only == {(S.DRAFT, S.SUBMITTED), (S.REJECTED, S.SUBMITTED)}

    def test_every_status_has_an_entry(self):
        assert set(FUND_REQUEST_TRANSITIONS) == set(FundRequestStatus)

    @given(st.sampled_from(list(FundRequestStatus)), st.sampled_from(list(FundRequestStatus)))
    def test_find_agrees_with_transition_map(self, current, target):
        found = FUND_REQUEST_WORKFLOW.find(current, target)
        assert (found is not None) == (target in FUND_REQUEST_TRANSITIONS[current])


class TestStageOrder:

    @pytest.mark.parametrize("current,target,expected", [
        (S.SUBMITTED, S.ACCOUNTING_REVIEW, 2),
        (S.ACCOUNTING_REVIEW, S.VALIDATED, 3),
        (S.VALIDATED, S.PAID, 4),
        (S.SUBMITTED, S.REJECTED, 2),
        (S.ACCOUNTING_REVIEW, S.REJECTED, 3),
        (S.VALIDATED, S.REJECTED, 4),
    ])
    def test_stage_owner_order(self, current, target, expected):
        assert stage_order(FUND_REQUEST_WORKFLOW.find(current, target)) == expected


class TestWorkflowStructure:

    def test_unknown_state_in_transition_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="broken",
                description="",
                initial_states=(S.DRAFT,),
                states=(S.DRAFT,),
                transitions=(Transition(S.DRAFT, S.SUBMITTED, WorkflowAction.SUBMIT),),
            )

    def test_initial_state_must_be_known(self):
        with pytest.raises(ValueError):
            Workflow(
                name="broken",
                description="",
                initial_states=(S.PAID,),
                states=(S.DRAFT,),
                transitions=(),
            )

    def test_workflow_is_frozen(self):
        with pytest.raises(AttributeError):
            FUND_REQUEST_WORKFLOW.name = "other"


class TestWorkflowStep:

    def test_default_allowed_actions(self):
        step = WorkflowStep("Visa", 5, WorkflowRole.AUDITOR)
        assert step.allows(WorkflowAction.APPROVE)
        assert step.allows(WorkflowAction.REJECT)
        assert not step.allows(WorkflowAction.PAY)

    def test_active_steps_sorted_and_filtered(self):
        steps = [
            WorkflowStep("C", 3, WorkflowRole.MANAGER),
            WorkflowStep("A", 1, WorkflowRole.REQUESTER),
            WorkflowStep("B", 2, WorkflowRole.ACCOUNTANT, is_active=False),
        ]
        assert [s.step_name for s in active_steps_in_order(steps)] == ["A", "C"]
