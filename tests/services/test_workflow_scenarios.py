"""
End-to-end workflow scenarios.

A: draft -> submitted by the requester, history grows by one.
B: skipping stages is an invalid transition.
C: wrong role is refused with no side effect.
D: reject from accounting_review, resubmit, four history entries.
E: two writers on one snapshot, exactly one wins.
"""

from decimal import Decimal

import pytest

from fundflow_kernel.domain.fund_request import Currency, FundRequestStatus
from fundflow_kernel.exceptions import (
    InvalidTransitionError,
    PersistenceConflictError,
    UnauthorizedError,
)

S = FundRequestStatus


class TestWorkflowScenarios:

    def test_a_requester_submits_draft(self, service, create_request, requester):
        draft = create_request(amount=Decimal("500"), currency=Currency.USD)
        assert draft.status == S.DRAFT

        submitted = service.transition(draft, S.SUBMITTED, requester)

        assert submitted.status == S.SUBMITTED
        history = service.history(draft.request_id)
        assert [(h.from_status, h.to_status) for h in history] == [
            (None, S.DRAFT),
            (S.DRAFT, S.SUBMITTED),
        ]

    def test_b_draft_cannot_jump_to_paid(self, service, create_request, admin):
        draft = create_request()

        with pytest.raises(InvalidTransitionError):
            service.transition(draft, S.PAID, admin)

    def test_c_non_accountant_cannot_review(self, service, create_request, cashier):
        submitted = create_request(submit=True)

        with pytest.raises(UnauthorizedError):
            service.transition(submitted, S.ACCOUNTING_REVIEW, cashier)

        assert service.get(submitted.request_id).status == S.SUBMITTED
        assert len(service.history(submitted.request_id)) == 1

    def test_d_reject_then_resubmit(self, service, create_request, requester, accountant, manager):
        submitted = create_request(submit=True)
        reviewed = service.transition(submitted, S.ACCOUNTING_REVIEW, accountant)
        rejected = service.transition(reviewed, S.REJECTED, manager, notes="Devis manquant")
        resubmitted = service.transition(rejected, S.SUBMITTED, requester)

        assert rejected.status == S.REJECTED
        assert resubmitted.status == S.SUBMITTED
        assert len(service.history(submitted.request_id)) == 4

    def test_e_concurrent_writers(self, service, create_request, accountant):
        snapshot = create_request(submit=True)

        results = []
        for target, notes in ((S.ACCOUNTING_REVIEW, None), (S.REJECTED, "Doublon")):
            try:
                service.transition(snapshot, target, accountant, notes=notes)
                results.append("ok")
            except PersistenceConflictError:
                results.append("conflict")

        assert results == ["ok", "conflict"]
        assert len(service.history(snapshot.request_id)) == 2
