"""
WorkflowStepRegistry -- per-organization workflow step configuration.

Responsibility:
    Seeds the configured default steps, lists an organization's steps, and
    applies the admin edits (add, toggle, rename, reorder, assign users).

Architecture position:
    Kernel > Services -- imperative shell.  Read by FundRequestService for
    every role check and by the progress projection.

Invariants enforced:
    - step_order is unique within an organization (DB constraint).
    - Seeding is idempotent: an organization that already has steps is
      left alone, and a concurrent seeder losing the unique-constraint race
      re-reads the winner's rows.
    - Deactivating a step never renumbers the others; reordering swaps two
      neighbours and touches nothing else.
    - Steps are never deleted.
    - Only actors holding an override role may edit steps.

Failure modes:
    - WorkflowStepNotFoundError for an unknown step id.
    - UnauthorizedError when a non-admin edits the configuration.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fundflow_kernel.domain.clock import Clock, SystemClock
from fundflow_kernel.domain.fund_request import Actor, WorkflowAction, WorkflowRole
from fundflow_kernel.domain.settings import WorkflowSettings
from fundflow_kernel.domain.workflow import (
    DEFAULT_ALLOWED_ACTIONS,
    LAST_STAGE_ORDER,
    WorkflowStep,
    active_steps_in_order,
)
from fundflow_kernel.exceptions import (
    ConfigurationError,
    UnauthorizedError,
    WorkflowStepNotFoundError,
)
from fundflow_kernel.logging_config import get_logger
from fundflow_kernel.models.workflow_step import WorkflowStepModel, WorkflowStepUserModel
from fundflow_kernel.services.base import BaseService

logger = get_logger("services.workflow_step_registry")


def _actions_csv(actions) -> str:
    return ",".join(WorkflowAction(a).value for a in actions)


class WorkflowStepRegistry(BaseService[WorkflowStepModel]):
    """Ordered, role-owned workflow steps of each organization."""

    def __init__(
        self,
        session: Session,
        settings: WorkflowSettings,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._settings = settings
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _rows(self, organization_id: UUID) -> list[WorkflowStepModel]:
        return list(self.session.execute(
            select(WorkflowStepModel)
            .where(WorkflowStepModel.organization_id == organization_id)
            .order_by(WorkflowStepModel.step_order)
        ).scalars().all())

    def list_steps(self, organization_id: UUID) -> tuple[WorkflowStep, ...]:
        """Every persisted step of the organization, inactive ones included."""
        return tuple(row.to_dto() for row in self._rows(organization_id))

    def list_active_steps(self, organization_id: UUID) -> tuple[WorkflowStep, ...]:
        """Active steps ascending by step_order.

        An organization with no rows at all gets the configured defaults
        (not persisted).  One whose rows are all inactive gets ``()``.
        """
        rows = self._rows(organization_id)
        if not rows:
            return active_steps_in_order([
                replace(step, organization_id=organization_id)
                for step in self._settings.default_steps
            ])
        return active_steps_in_order([row.to_dto() for row in rows])

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def ensure_default_steps(self, organization_id: UUID) -> tuple[WorkflowStep, ...]:
        """Persist the default steps unless the organization has any step.

        Returns every step of the organization after the call.
        """
        has_steps = self.session.execute(
            select(func.count())
            .select_from(WorkflowStepModel)
            .where(WorkflowStepModel.organization_id == organization_id)
        ).scalar_one()
        if has_steps:
            return self.list_steps(organization_id)

        now = self._clock.now()
        savepoint = self.session.begin_nested()
        try:
            for step in self._settings.default_steps:
                self.session.add(WorkflowStepModel(
                    organization_id=organization_id,
                    step_name=step.step_name,
                    step_order=step.step_order,
                    responsible_role=WorkflowRole(step.responsible_role).value,
                    is_active=step.is_active,
                    allowed_actions=_actions_csv(step.allowed_actions),
                    created_at=now,
                    updated_at=now,
                ))
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            # Another transaction seeded first; its rows win.
            savepoint.rollback()
            logger.info(
                "workflow_steps_seed_race_lost",
                extra={"organization_id": str(organization_id)},
            )
            return self.list_steps(organization_id)

        logger.info(
            "workflow_steps_seeded",
            extra={
                "organization_id": str(organization_id),
                "step_count": len(self._settings.default_steps),
            },
        )
        return self.list_steps(organization_id)

    # ------------------------------------------------------------------
    # Admin edits
    # ------------------------------------------------------------------

    def _require_override(self, actor: Actor, operation: str) -> None:
        if not actor.has_any_role(self._settings.policy.override_roles):
            raise UnauthorizedError(
                str(actor.actor_id),
                operation,
                "workflow configuration requires an administrator",
                required_roles=tuple(sorted(self._settings.policy.override_roles)),
            )

    def _get_row(self, step_id: UUID) -> WorkflowStepModel:
        row = self.session.get(WorkflowStepModel, step_id)
        if row is None:
            raise WorkflowStepNotFoundError(str(step_id))
        return row

    def _touch(self, row: WorkflowStepModel, operation: str, **fields) -> WorkflowStep:
        row.updated_at = self._clock.now()
        self.session.flush()
        logger.info(
            "workflow_step_updated",
            extra={
                "step_id": str(row.id),
                "organization_id": str(row.organization_id),
                "operation": operation,
                **fields,
            },
        )
        return row.to_dto()

    def add_step(
        self,
        organization_id: UUID,
        actor: Actor,
        step_name: str,
        responsible_role: WorkflowRole | str,
        allowed_actions: tuple[WorkflowAction, ...] | None = None,
    ) -> WorkflowStep:
        """Append a step after the organization's last one (max order + 1).

        Orders past LAST_STAGE_ORDER own no transition, so once the payment
        stage has a step the organization cannot grow; existing steps are
        renamed or reassigned instead.
        """
        self._require_override(actor, "add_step")
        self.ensure_default_steps(organization_id)

        max_order = self.session.execute(
            select(func.max(WorkflowStepModel.step_order))
            .where(WorkflowStepModel.organization_id == organization_id)
        ).scalar_one()
        step_order = (max_order or 0) + 1
        if step_order > LAST_STAGE_ORDER:
            raise ConfigurationError(
                str(organization_id),
                f"no workflow stage after order {LAST_STAGE_ORDER}; "
                "rename or reassign an existing step",
            )

        now = self._clock.now()
        row = WorkflowStepModel(
            organization_id=organization_id,
            step_name=step_name,
            step_order=step_order,
            responsible_role=WorkflowRole(responsible_role).value,
            is_active=True,
            allowed_actions=_actions_csv(allowed_actions or DEFAULT_ALLOWED_ACTIONS),
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        self.session.flush()

        logger.info(
            "workflow_step_added",
            extra={
                "step_id": str(row.id),
                "organization_id": str(organization_id),
                "step_order": row.step_order,
                "responsible_role": row.responsible_role,
            },
        )
        return row.to_dto()

    def set_active(self, step_id: UUID, actor: Actor, is_active: bool) -> WorkflowStep:
        """Activate or deactivate a step; its order is kept."""
        self._require_override(actor, "set_active")
        row = self._get_row(step_id)
        row.is_active = is_active
        return self._touch(row, "set_active", is_active=is_active)

    def rename_step(self, step_id: UUID, actor: Actor, step_name: str) -> WorkflowStep:
        self._require_override(actor, "rename_step")
        if not step_name.strip():
            raise ValueError("step_name must not be empty")
        row = self._get_row(step_id)
        row.step_name = step_name.strip()
        return self._touch(row, "rename_step")

    def move_step(self, step_id: UUID, actor: Actor, direction: str) -> WorkflowStep:
        """Swap a step with its neighbour above ("up") or below ("down").

        Moving the first step up or the last one down is a no-op.
        """
        self._require_override(actor, "move_step")
        if direction not in ("up", "down"):
            raise ValueError(f"direction must be 'up' or 'down', got {direction!r}")

        row = self._get_row(step_id)
        query = select(WorkflowStepModel).where(
            WorkflowStepModel.organization_id == row.organization_id,
        )
        if direction == "up":
            query = query.where(
                WorkflowStepModel.step_order < row.step_order,
            ).order_by(WorkflowStepModel.step_order.desc())
        else:
            query = query.where(
                WorkflowStepModel.step_order > row.step_order,
            ).order_by(WorkflowStepModel.step_order)
        neighbour = self.session.execute(query.limit(1)).scalar_one_or_none()
        if neighbour is None:
            return row.to_dto()

        mine, theirs = row.step_order, neighbour.step_order
        # (organization_id, step_order) is unique: park one row first
        row.step_order = -mine
        self.session.flush()
        neighbour.step_order = mine
        self.session.flush()
        row.step_order = theirs
        neighbour.updated_at = self._clock.now()
        return self._touch(row, "move_step", direction=direction, step_order=theirs)

    def assign_users(
        self,
        step_id: UUID,
        actor: Actor,
        user_ids: tuple[UUID, ...] | list[UUID] | frozenset[UUID],
    ) -> WorkflowStep:
        """Replace the step's assignees.  An empty set opens the step to its role."""
        self._require_override(actor, "assign_users")
        row = self._get_row(step_id)
        wanted = set(user_ids)

        for assignee in list(row.assignees):
            if assignee.user_id not in wanted:
                row.assignees.remove(assignee)
        present = {a.user_id for a in row.assignees}
        now = self._clock.now()
        for user_id in sorted(wanted - present, key=str):
            row.assignees.append(WorkflowStepUserModel(user_id=user_id, assigned_at=now))

        return self._touch(row, "assign_users", assignee_count=len(wanted))
