"""
Module: fundflow_kernel.models.workflow_step
Responsibility: ORM persistence for per-organization workflow steps and
    their assigned users.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - step_order is unique within an organization (also resolves
      concurrent default seeding: the loser's insert fails).
    - Steps are never deleted; deactivation keeps step_order.
    - A user is assigned to a step at most once.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    String,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fundflow_kernel.db.base import Base, TimestampedBase, UUIDString
from fundflow_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from fundflow_kernel.domain.workflow import WorkflowStep


class WorkflowStepModel(TimestampedBase):
    """A named, ordered, role-owned stage of an organization's workflow."""

    __tablename__ = "workflow_steps"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "step_order",
            name="uq_workflow_steps_org_order",
        ),
        CheckConstraint(
            "responsible_role IN ('requester', 'accountant', 'manager', "
            "'cashier', 'admin', 'director', 'auditor')",
            name="ck_workflow_steps_valid_role",
        ),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    step_name: Mapped[str] = mapped_column(String(100), nullable=False)
    step_order: Mapped[int] = mapped_column(nullable=False)
    responsible_role: Mapped[str] = mapped_column(String(30), nullable=False)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    # Comma-separated WorkflowAction values
    allowed_actions: Mapped[str] = mapped_column(
        String(200), nullable=False, default="approve,reject",
    )

    assignees: Mapped[list["WorkflowStepUserModel"]] = relationship(
        "WorkflowStepUserModel",
        back_populates="step",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<WorkflowStep {self.step_order}:{self.step_name} ({state})>"

    def to_dto(self) -> WorkflowStep:
        """Convert ORM model to frozen domain DTO."""
        from fundflow_kernel.domain.fund_request import WorkflowAction, WorkflowRole
        from fundflow_kernel.domain.workflow import WorkflowStep as WorkflowStepDTO

        actions = tuple(
            WorkflowAction(code)
            for code in self.allowed_actions.split(",")
            if code
        )
        return WorkflowStepDTO(
            step_name=self.step_name,
            step_order=self.step_order,
            responsible_role=WorkflowRole(self.responsible_role),
            is_active=self.is_active,
            allowed_actions=actions,
            step_id=self.id,
            organization_id=self.organization_id,
            assigned_user_ids=frozenset(a.user_id for a in self.assignees),
        )


class WorkflowStepUserModel(Base):
    """A user assigned to a workflow step."""

    __tablename__ = "workflow_step_users"

    __table_args__ = (
        UniqueConstraint(
            "workflow_step_id", "user_id",
            name="uq_workflow_step_users_step_user",
        ),
    )

    workflow_step_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_steps.id"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(nullable=False)

    step: Mapped["WorkflowStepModel"] = relationship(
        "WorkflowStepModel",
        back_populates="assignees",
    )


@event.listens_for(WorkflowStepModel, "before_delete")
def prevent_step_delete(mapper, connection, target):
    """Steps are deactivated, never deleted."""
    raise ImmutabilityViolationError(
        entity_type="WorkflowStep",
        entity_id=str(target.id),
        reason="Workflow steps cannot be deleted -- deactivate instead",
    )
