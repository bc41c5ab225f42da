"""
Module: fundflow_kernel.selectors.fund_request_selector
Responsibility: Read-only queries over fund requests and the records
    attached to them (history, allocation, payment receipt).
Architecture position: Kernel > Selectors.  Returns frozen DTOs only.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from fundflow_kernel.domain.fund_request import (
    AccountingAllocation,
    FundRequest,
    FundRequestStatus,
    HistoryEntry,
    PaymentReceipt,
)
from fundflow_kernel.exceptions import FundRequestNotFoundError
from fundflow_kernel.models.fund_request import FundRequestModel
from fundflow_kernel.models.history import FundRequestHistoryModel
from fundflow_kernel.models.settlement import (
    AccountingAllocationModel,
    PaymentReceiptModel,
)
from fundflow_kernel.selectors.base import BaseSelector


class FundRequestSelector(BaseSelector[FundRequestModel]):
    """Queries for presenting fund requests."""

    def get(self, request_id: UUID) -> FundRequest:
        row = self.session.execute(
            select(FundRequestModel)
            .where(FundRequestModel.id == request_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            raise FundRequestNotFoundError(str(request_id))
        return row.to_dto()

    def get_by_number(self, organization_id: UUID, request_number: str) -> FundRequest | None:
        row = self.session.execute(
            select(FundRequestModel).where(
                FundRequestModel.organization_id == organization_id,
                FundRequestModel.request_number == request_number,
            )
        ).scalar_one_or_none()
        return row.to_dto() if row else None

    def list_for_organization(
        self,
        organization_id: UUID,
        status: FundRequestStatus | str | None = None,
    ) -> tuple[FundRequest, ...]:
        """Requests of an organization, newest first, optionally by status."""
        query = select(FundRequestModel).where(
            FundRequestModel.organization_id == organization_id,
        )
        if status is not None:
            query = query.where(FundRequestModel.status == FundRequestStatus(status).value)
        query = query.order_by(
            FundRequestModel.created_at.desc(),
            FundRequestModel.request_number.desc(),
        )
        return tuple(row.to_dto() for row in self.session.execute(query).scalars())

    def list_for_requester(self, requester_id: UUID) -> tuple[FundRequest, ...]:
        rows = self.session.execute(
            select(FundRequestModel)
            .where(FundRequestModel.requester_id == requester_id)
            .order_by(FundRequestModel.created_at.desc())
        ).scalars()
        return tuple(row.to_dto() for row in rows)

    def history(self, request_id: UUID) -> tuple[HistoryEntry, ...]:
        rows = self.session.execute(
            select(FundRequestHistoryModel)
            .where(FundRequestHistoryModel.fund_request_id == request_id)
            .order_by(FundRequestHistoryModel.sequence)
        ).scalars()
        return tuple(row.to_dto() for row in rows)

    def get_allocation(self, request_id: UUID) -> AccountingAllocation | None:
        row = self.session.execute(
            select(AccountingAllocationModel)
            .where(AccountingAllocationModel.fund_request_id == request_id)
        ).scalar_one_or_none()
        return row.to_dto() if row else None

    def get_receipt(self, request_id: UUID) -> PaymentReceipt | None:
        row = self.session.execute(
            select(PaymentReceiptModel)
            .where(PaymentReceiptModel.fund_request_id == request_id)
        ).scalar_one_or_none()
        return row.to_dto() if row else None
