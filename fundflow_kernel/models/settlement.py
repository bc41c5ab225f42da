"""
Module: fundflow_kernel.models.settlement
Responsibility: ORM persistence for the records produced by the last two
    stages of a fund request: the accountant's account allocation and the
    cashier's payment receipt.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One allocation and at most one receipt per fund request.
    - receipt_number unique per organization.
    - Payment receipts are immutable (no UPDATE, no DELETE).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from fundflow_kernel.db.base import Base, TimestampedBase, UUIDString
from fundflow_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from fundflow_kernel.domain.fund_request import (
        AccountingAllocation,
        PaymentReceipt,
    )


class AccountingAllocationModel(TimestampedBase):
    """Account imputation for a fund request. Upserted by accounting."""

    __tablename__ = "fund_request_allocations"

    fund_request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fund_requests.id"),
        nullable=False,
        unique=True,
    )
    expense_account: Mapped[str | None] = mapped_column(String(50), nullable=True)
    treasury_account: Mapped[str | None] = mapped_column(String(50), nullable=True)
    third_party_account: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    accountant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def to_dto(self) -> AccountingAllocation:
        from fundflow_kernel.domain.fund_request import (
            AccountingAllocation as AccountingAllocationDTO,
        )

        return AccountingAllocationDTO(
            expense_account=self.expense_account,
            treasury_account=self.treasury_account,
            third_party_account=self.third_party_account,
            notes=self.notes,
            accountant_id=self.accountant_id,
            recorded_at=self.updated_at,
        )


class PaymentReceiptModel(Base):
    """Receipt issued when a fund request is paid. Immutable."""

    __tablename__ = "payment_receipts"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "receipt_number",
            name="uq_payment_receipts_org_number",
        ),
        CheckConstraint("amount > 0", name="ck_payment_receipts_amount_positive"),
    )

    receipt_number: Mapped[str] = mapped_column(String(30), nullable=False)
    fund_request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fund_requests.id"),
        nullable=False,
        unique=True,
    )
    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    beneficiary: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    cashier_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    cashier_name: Mapped[str] = mapped_column(String(200), nullable=False)
    treasury_account: Mapped[str | None] = mapped_column(String(50), nullable=True)
    paid_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<PaymentReceipt {self.receipt_number} {self.amount} {self.currency}>"

    def to_dto(self) -> PaymentReceipt:
        """Convert ORM model to frozen domain DTO."""
        from fundflow_kernel.domain.fund_request import (
            Currency,
            PaymentReceipt as PaymentReceiptDTO,
        )

        return PaymentReceiptDTO(
            receipt_id=self.id,
            receipt_number=self.receipt_number,
            fund_request_id=self.fund_request_id,
            organization_id=self.organization_id,
            beneficiary=self.beneficiary,
            amount=self.amount,
            currency=Currency(self.currency),
            description=self.description,
            cashier_id=self.cashier_id,
            cashier_name=self.cashier_name,
            treasury_account=self.treasury_account,
            paid_at=self.paid_at,
        )


@event.listens_for(PaymentReceiptModel, "before_update")
def prevent_receipt_update(mapper, connection, target):
    """Prevent updates to payment receipts."""
    raise ImmutabilityViolationError(
        entity_type="PaymentReceipt",
        entity_id=str(target.id),
        reason="Payment receipts are immutable -- cannot modify",
    )


@event.listens_for(PaymentReceiptModel, "before_delete")
def prevent_receipt_delete(mapper, connection, target):
    """Prevent deletion of payment receipts."""
    raise ImmutabilityViolationError(
        entity_type="PaymentReceipt",
        entity_id=str(target.id),
        reason="Payment receipts are immutable -- cannot delete",
    )
