"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Hands out strictly increasing request and receipt numbers, one
    counter per organization.  A dedicated counter table with
    row-level locking (``SELECT ... FOR UPDATE``) keeps allocation unique
    and ordered under concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by FundRequestService (request and receipt numbers).

Invariants enforced:
    - The locked counter row is the sole source of truth for the next
      value; ``MAX(...) + 1`` over the numbered table is never used.
    - Transactional: an increment is visible only after the caller's
      transaction commits.  A rollback returns the value.

Failure modes:
    - IntegrityError: concurrent first use of a counter (handled via
      savepoint rollback and re-read).
"""

from uuid import UUID

from sqlalchemy import String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from fundflow_kernel.db.base import Base
from fundflow_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    # e.g. "fund_request:<organization_id>", "payment_receipt:<organization_id>"
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session):
        self._session = session

    @staticmethod
    def request_sequence_name(organization_id: UUID) -> str:
        return f"fund_request:{organization_id}"

    @staticmethod
    def receipt_sequence_name(organization_id: UUID) -> str:
        return f"payment_receipt:{organization_id}"

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Locks the counter row (creating it on first use), increments it and
        returns the new value.  The result is > 0 and strictly greater than
        any value previously returned for the same name.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use; a concurrent creator may win the insert, so isolate
            # it in a savepoint and fall back to the locked read.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None

    def next_request_number(self, organization_id: UUID, number_format: str) -> str:
        """Allocate and format the organization's next request number."""
        seq = self.next_value(self.request_sequence_name(organization_id))
        return number_format.format(seq=seq)

    def next_receipt_number(self, organization_id: UUID, number_format: str) -> str:
        """Allocate and format the organization's next payment receipt number."""
        seq = self.next_value(self.receipt_sequence_name(organization_id))
        return number_format.format(seq=seq)
