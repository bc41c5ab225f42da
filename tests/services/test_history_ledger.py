"""
Tests for HistoryLedger: one entry per transition, ordered, with the
actor and the localized action label captured at write time.
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select

from fundflow_kernel.domain.fund_request import FundRequestStatus, WorkflowAction
from fundflow_kernel.domain.settings import WorkflowSettings
from fundflow_kernel.exceptions import FundRequestNotFoundError
from fundflow_kernel.services.fund_request_service import FundRequestService
from fundflow_kernel.services.history_ledger import HistoryLedger
from fundflow_kernel.services.sequence_service import SequenceCounter

S = FundRequestStatus


class TestHistoryLedger:

    def test_entries_in_write_order_within_one_tick(
        self, service, create_request, requester, accountant, manager,
    ):
        request = service.submit(create_request(), requester)
        reviewed = service.complete_accounting(request, accountant)
        service.approve(reviewed, manager)

        history = service.history(request.request_id)
        assert len({h.created_at for h in history}) == 1
        assert [h.to_status for h in history] == [
            S.DRAFT, S.SUBMITTED, S.ACCOUNTING_REVIEW, S.VALIDATED,
        ]
        sequences = [h.sequence for h in history]
        assert sequences == sorted(sequences)

    def test_chain_links_statuses(self, service, create_request, requester, accountant):
        request = service.submit(create_request(), requester)
        service.reject(request, accountant, "Budget épuisé")

        history = service.history(request.request_id)
        for previous, entry in zip(history, history[1:]):
            assert entry.from_status == previous.to_status

    def test_timestamps_follow_clock(
        self, service, create_request, requester, deterministic_clock,
    ):
        request = create_request()
        deterministic_clock.advance(7200)
        service.submit(request, requester)

        first, second = service.history(request.request_id)
        assert second.created_at - first.created_at == timedelta(hours=2)
        assert second.created_at.tzinfo is not None

    def test_actor_name_snapshotted(self, service, create_request, accountant):
        request = create_request(submit=True)
        service.complete_accounting(request, accountant)

        entry = service.history(request.request_id)[-1]
        assert entry.performed_by == accountant.actor_id
        assert entry.performed_by_name == "Bob Comptable"
        assert entry.action == "Comptabilisation terminée"

    def test_label_falls_back_to_code(self, session, org_id, requester, make_new_request, deterministic_clock):
        bare = FundRequestService(session, WorkflowSettings(default_steps=()), deterministic_clock)
        request = bare.create_request(org_id, requester, make_new_request())
        bare.submit(request, requester)

        assert [h.action for h in bare.history(request.request_id)] == ["create_draft", "submit"]

    def test_history_is_per_request(self, service, create_request):
        first = create_request()
        create_request()

        assert len(service.history(first.request_id)) == 1


class TestHistoryOrdering:

    def test_sequence_is_request_version(self, service, create_request, requester, accountant):
        request = service.submit(create_request(), requester)
        rejected = service.reject(request, accountant, "Budget épuisé")
        current = service.resubmit(rejected, requester)

        history = service.history(request.request_id)
        assert [h.sequence for h in history] == [1, 2, 3, 4]
        assert history[-1].sequence == current.version

    def test_requests_do_not_share_a_counter(
        self, service, create_request, requester, accountant,
    ):
        first = service.submit(create_request(), requester)
        second = service.submit(create_request(organization_id=uuid4()), requester)
        service.complete_accounting(first, accountant)

        assert [h.sequence for h in service.history(first.request_id)] == [1, 2, 3]
        assert [h.sequence for h in service.history(second.request_id)] == [1, 2]

    def test_no_history_counter_row(self, session, service, create_request, requester):
        service.submit(create_request(), requester)

        names = session.execute(select(SequenceCounter.name)).scalars().all()
        assert not [n for n in names if "history" in n]

    def test_ordered_by_sequence_when_clock_goes_back(
        self, service, create_request, requester, deterministic_clock,
    ):
        request = create_request()
        deterministic_clock.advance(-3600)
        service.submit(request, requester)

        history = service.history(request.request_id)
        assert [h.to_status for h in history] == [S.DRAFT, S.SUBMITTED]
        assert history[1].created_at < history[0].created_at

    def test_unknown_request_is_not_recorded(self, session, requester, workflow_settings):
        ledger = HistoryLedger(session, workflow_settings)

        with pytest.raises(FundRequestNotFoundError):
            ledger.record(uuid4(), None, S.DRAFT, requester, WorkflowAction.CREATE_DRAFT)
