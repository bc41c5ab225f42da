"""
Sequence safety tests for SequenceService.

Numbers come from a locked counter row (SELECT ... FOR UPDATE), never from
MAX(...) + 1 over the numbered table.  Values are strictly increasing per
name and transactional: a rolled-back allocation is handed out again.
"""

import inspect
import re
from pathlib import Path
from uuid import uuid4

from fundflow_kernel.services.sequence_service import SequenceService


class TestSequenceImplementation:

    def test_next_value_locks_counter_row(self):
        source = Path(inspect.getfile(SequenceService)).read_text()
        assert "with_for_update" in source
        assert not re.search(r"func\.max", source)


class TestNextValue:

    def test_starts_at_one_and_increments(self, session):
        seq = SequenceService(session)
        name = f"test:{uuid4()}"

        assert [seq.next_value(name) for _ in range(3)] == [1, 2, 3]
        assert seq.current_value(name) == 3

    def test_names_are_independent(self, session):
        seq = SequenceService(session)
        a, b = f"a:{uuid4()}", f"b:{uuid4()}"

        seq.next_value(a)
        seq.next_value(a)
        assert seq.next_value(b) == 1

    def test_unknown_sequence_has_no_value(self, session):
        assert SequenceService(session).current_value(f"none:{uuid4()}") is None

    def test_rolled_back_value_is_reused(self, session):
        seq = SequenceService(session)
        name = f"rb:{uuid4()}"
        seq.next_value(name)

        savepoint = session.begin_nested()
        assert seq.next_value(name) == 2
        savepoint.rollback()

        assert seq.next_value(name) == 2


class TestFormattedNumbers:

    def test_request_numbers_per_organization(self, session):
        seq = SequenceService(session)
        org_a, org_b = uuid4(), uuid4()

        assert seq.next_request_number(org_a, "DF-{seq:05d}") == "DF-00001"
        assert seq.next_request_number(org_a, "DF-{seq:05d}") == "DF-00002"
        assert seq.next_request_number(org_b, "DF-{seq:05d}") == "DF-00001"

    def test_receipts_have_their_own_counter(self, session):
        seq = SequenceService(session)
        org = uuid4()
        seq.next_request_number(org, "DF-{seq:05d}")

        assert seq.next_receipt_number(org, "RC-{seq}") == "RC-1"

    def test_counter_names(self):
        org = uuid4()
        assert SequenceService.request_sequence_name(org) == f"fund_request:{org}"
        assert SequenceService.receipt_sequence_name(org) == f"payment_receipt:{org}"
