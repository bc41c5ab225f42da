"""
Module: fundflow_kernel.models.fund_request
Responsibility: ORM persistence for fund requests and their lines.

Architecture position: Kernel > Models.  May import from db/base.py and
    exceptions only (domain DTOs are imported lazily inside to_dto).

Invariants enforced:
    - amount > 0, status and currency in their enums (DB check constraints).
    - request_number unique per organization.
    - request_number, organization_id and requester_id are write-once.
    - status moves only through the state machine's conditional UPDATE;
      an ORM attribute edit of status is rejected at flush.
    - Fund requests and their lines are never deleted; lines never change.

Failure modes:
    - IntegrityError on duplicate request_number or constraint breach.
    - ImmutabilityViolationError on forbidden UPDATE/DELETE via the ORM.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.orm.attributes import get_history

from fundflow_kernel.db.base import Base, TimestampedBase, UUIDString
from fundflow_kernel.exceptions import ImmutabilityViolationError
from fundflow_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from fundflow_kernel.domain.fund_request import (
        FundRequest,
        FundRequestLineRecord,
    )

logger = get_logger("models.fund_request")

_STATUS_VALUES = (
    "'draft', 'submitted', 'accounting_review', 'validated', 'paid', 'rejected'"
)


class FundRequestModel(TimestampedBase):
    """Persistent fund request.

    Contract:
        ``status`` and ``version`` are written only by
        FundRequestService.transition (bulk conditional UPDATE).

    Guarantees:
        - Identity fields are write-once.
        - Rows are never deleted.
    """

    __tablename__ = "fund_requests"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_fund_requests_amount_positive"),
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})",
            name="ck_fund_requests_valid_status",
        ),
        CheckConstraint(
            "currency IN ('CDF', 'USD')",
            name="ck_fund_requests_valid_currency",
        ),
        CheckConstraint("version >= 1", name="ck_fund_requests_version_positive"),
        UniqueConstraint(
            "organization_id", "request_number",
            name="uq_fund_requests_org_number",
        ),
        Index("ix_fund_requests_org_status", "organization_id", "status"),
        Index("ix_fund_requests_requester", "requester_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    request_number: Mapped[str] = mapped_column(String(30), nullable=False)
    beneficiary: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    request_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="draft")
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    rejected_from_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    requester_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    requester_name: Mapped[str] = mapped_column(String(200), nullable=False)

    lines: Mapped[list["FundRequestLineModel"]] = relationship(
        "FundRequestLineModel",
        back_populates="fund_request",
        order_by="FundRequestLineModel.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<FundRequest {self.request_number} "
            f"status={self.status} v{self.version}>"
        )

    def to_dto(self) -> FundRequest:
        """Convert ORM model to frozen domain DTO."""
        from fundflow_kernel.domain.fund_request import (
            Currency,
            FundRequest as FundRequestDTO,
            FundRequestStatus,
        )

        return FundRequestDTO(
            request_id=self.id,
            organization_id=self.organization_id,
            request_number=self.request_number,
            beneficiary=self.beneficiary,
            amount=self.amount,
            currency=Currency(self.currency),
            description=self.description,
            request_date=self.request_date,
            status=FundRequestStatus(self.status),
            requester_id=self.requester_id,
            requester_name=self.requester_name,
            version=self.version,
            rejected_from_status=(
                FundRequestStatus(self.rejected_from_status)
                if self.rejected_from_status else None
            ),
            created_at=self.created_at,
            updated_at=self.updated_at,
            lines=tuple(line.to_dto() for line in self.lines),
        )


class FundRequestLineModel(Base):
    """One article line of a fund request. Written once at creation."""

    __tablename__ = "fund_request_lines"

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_fund_request_lines_quantity"),
        CheckConstraint("unit_price > 0", name="ck_fund_request_lines_unit_price"),
        UniqueConstraint(
            "fund_request_id", "line_number",
            name="uq_fund_request_lines_number",
        ),
    )

    fund_request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fund_requests.id"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)

    fund_request: Mapped["FundRequestModel"] = relationship(
        "FundRequestModel",
        back_populates="lines",
    )

    def to_dto(self) -> FundRequestLineRecord:
        from fundflow_kernel.domain.fund_request import FundRequestLineRecord

        return FundRequestLineRecord(
            line_number=self.line_number,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            subtotal=self.subtotal,
        )


# =============================================================================
# ORM-Level Immutability
# =============================================================================

_WRITE_ONCE_FIELDS = ("request_number", "organization_id", "requester_id")


def _blocked(entity_type: str, entity_id, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


@event.listens_for(FundRequestModel, "before_update")
def prevent_fund_request_identity_update(mapper, connection, target):
    """Reject edits of write-once fields and direct status edits."""
    for field_name in _WRITE_ONCE_FIELDS:
        if get_history(target, field_name).deleted:
            _blocked(
                "FundRequest", target.id, "UPDATE",
                f"'{field_name}' cannot change once assigned",
            )
    for field_name in ("status", "version", "rejected_from_status"):
        if get_history(target, field_name).has_changes():
            _blocked(
                "FundRequest", target.id, "UPDATE",
                f"'{field_name}' changes only through a workflow transition",
            )


@event.listens_for(FundRequestModel, "before_delete")
def prevent_fund_request_delete(mapper, connection, target):
    """Fund requests are never deleted."""
    _blocked("FundRequest", target.id, "DELETE", "Fund requests cannot be deleted")


@event.listens_for(FundRequestLineModel, "before_update")
def prevent_line_update(mapper, connection, target):
    _blocked(
        "FundRequestLine", target.id, "UPDATE",
        "Fund request lines are immutable -- cannot modify",
    )


@event.listens_for(FundRequestLineModel, "before_delete")
def prevent_line_delete(mapper, connection, target):
    _blocked(
        "FundRequestLine", target.id, "DELETE",
        "Fund request lines are immutable -- cannot delete",
    )
