"""
Module: fundflow_kernel.models.history
Responsibility: ORM persistence for the fund request history ledger.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: UPDATE and DELETE are rejected at flush.
    - ``sequence`` is the request version the entry produced (creation
      is 1).  Unique per request, so each version has exactly one entry.

Failure modes:
    - ImmutabilityViolationError on UPDATE/DELETE through the ORM.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from fundflow_kernel.db.base import Base, UUIDString
from fundflow_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from fundflow_kernel.domain.fund_request import HistoryEntry


class FundRequestHistoryModel(Base):
    """One transition of a fund request. Append-only."""

    __tablename__ = "fund_request_history"

    __table_args__ = (
        UniqueConstraint(
            "fund_request_id", "sequence",
            name="uq_fund_request_history_request_sequence",
        ),
    )

    fund_request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fund_requests.id"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(nullable=False)
    action_code: Mapped[str] = mapped_column(String(30), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    to_status: Mapped[str] = mapped_column(String(30), nullable=False)
    performed_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    performed_by_name: Mapped[str] = mapped_column(String(200), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<FundRequestHistory #{self.sequence} "
            f"{self.from_status}->{self.to_status}>"
        )

    def to_dto(self) -> HistoryEntry:
        """Convert ORM model to frozen domain DTO."""
        from fundflow_kernel.domain.fund_request import (
            FundRequestStatus,
            HistoryEntry as HistoryEntryDTO,
            WorkflowAction,
        )

        return HistoryEntryDTO(
            entry_id=self.id,
            fund_request_id=self.fund_request_id,
            sequence=self.sequence,
            action_code=WorkflowAction(self.action_code),
            action=self.action,
            from_status=FundRequestStatus(self.from_status) if self.from_status else None,
            to_status=FundRequestStatus(self.to_status),
            performed_by=self.performed_by,
            performed_by_name=self.performed_by_name,
            notes=self.notes,
            created_at=self.created_at,
        )


# =============================================================================
# ORM-Level Immutability (Append-Only)
# =============================================================================


@event.listens_for(FundRequestHistoryModel, "before_update")
def prevent_history_update(mapper, connection, target):
    """Prevent updates to history entries."""
    raise ImmutabilityViolationError(
        entity_type="FundRequestHistory",
        entity_id=str(target.id),
        reason="History entries are immutable -- cannot modify",
    )


@event.listens_for(FundRequestHistoryModel, "before_delete")
def prevent_history_delete(mapper, connection, target):
    """Prevent deletion of history entries."""
    raise ImmutabilityViolationError(
        entity_type="FundRequestHistory",
        entity_id=str(target.id),
        reason="History entries are immutable -- cannot delete",
    )
