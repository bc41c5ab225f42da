"""
HistoryLedger -- append-only trail of fund request transitions.

Responsibility:
    Appends exactly one entry per transition (creation included) and
    returns a request's entries in order.  The ledger is a record, never
    consulted when deciding whether a transition is allowed.

Architecture position:
    Kernel > Services -- imperative shell.  Called by FundRequestService
    inside the same transaction as the status change it records.

Invariants enforced:
    - Append-only: the model rejects UPDATE and DELETE.
    - ``sequence`` is the request version after the recorded change, read
      from the request row the caller has just written.  Entries of one
      request are ordered by it; no counter is shared between requests.
    - The first entry of a request has ``from_status`` None.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fundflow_kernel.domain.clock import Clock, SystemClock
from fundflow_kernel.domain.fund_request import (
    Actor,
    FundRequestStatus,
    HistoryEntry,
    WorkflowAction,
)
from fundflow_kernel.domain.settings import WorkflowSettings
from fundflow_kernel.exceptions import FundRequestNotFoundError
from fundflow_kernel.logging_config import get_logger
from fundflow_kernel.models.fund_request import FundRequestModel
from fundflow_kernel.models.history import FundRequestHistoryModel
from fundflow_kernel.services.base import BaseService

logger = get_logger("services.history_ledger")


class HistoryLedger(BaseService[FundRequestHistoryModel]):
    """Write and read the history of fund requests."""

    def __init__(
        self,
        session: Session,
        settings: WorkflowSettings,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._settings = settings
        self._clock = clock or SystemClock()

    def record(
        self,
        request_id: UUID,
        from_status: FundRequestStatus | None,
        to_status: FundRequestStatus,
        actor: Actor,
        action_code: WorkflowAction,
        notes: str | None = None,
    ) -> HistoryEntry:
        """Append one entry and return it.

        The action label is resolved from the settings' locale at write
        time and stored, so later configuration changes do not rewrite
        history.  Call it after the request row carries its new version.
        """
        action_code = WorkflowAction(action_code)
        version = self.session.execute(
            select(FundRequestModel.version).where(FundRequestModel.id == request_id)
        ).scalar_one_or_none()
        if version is None:
            raise FundRequestNotFoundError(str(request_id))

        entry = FundRequestHistoryModel(
            fund_request_id=request_id,
            sequence=version,
            action_code=action_code.value,
            action=self._settings.action_label(action_code),
            from_status=FundRequestStatus(from_status).value if from_status else None,
            to_status=FundRequestStatus(to_status).value,
            performed_by=actor.actor_id,
            performed_by_name=actor.display_name,
            notes=notes,
            created_at=self._clock.now(),
        )
        self.session.add(entry)
        self.session.flush()

        logger.debug(
            "history_entry_recorded",
            extra={
                "fund_request_id": str(request_id),
                "sequence": entry.sequence,
                "action_code": action_code.value,
                "from_status": entry.from_status,
                "to_status": entry.to_status,
            },
        )
        return entry.to_dto()

    def history(self, request_id: UUID) -> tuple[HistoryEntry, ...]:
        """All entries of a request, oldest first."""
        rows = self.session.execute(
            select(FundRequestHistoryModel)
            .where(FundRequestHistoryModel.fund_request_id == request_id)
            .order_by(FundRequestHistoryModel.sequence)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)
