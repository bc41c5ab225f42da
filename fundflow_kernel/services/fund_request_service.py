"""
FundRequestService -- the fund request state machine's write side.

Responsibility:
    Creates fund requests and moves them through the workflow.  Every
    status change goes through ``transition``: authorize, conditionally
    update, append history, write the stage's side records.

Architecture position:
    Kernel > Services -- imperative shell around the pure domain
    (``domain/workflow.py`` table, ``domain/authority.py`` decision,
    ``domain/progress.py`` projection).

Invariants enforced:
    - Only transitions in FUND_REQUEST_WORKFLOW are applied, and only by
      an actor authorized for the owning stage.
    - Optimistic concurrency: the UPDATE is conditioned on the status and
      version the caller read.  Zero affected rows is a conflict and
      nothing is written.
    - Exactly one history entry per applied transition, in the same
      transaction as the status change.
    - No write happens before authorization and the conditional UPDATE
      have both succeeded.

Failure modes:
    - ValidationError: malformed creation input; rejection without reason.
    - InvalidTransitionError / ConfigurationError / UnauthorizedError:
      from the authority check.
    - PersistenceConflictError: the request moved since it was read.
    - FundRequestNotFoundError: unknown id.

Audit relevance:
    ``fund_request_created`` and ``fund_request_transitioned`` are logged
    at INFO; refused attempts are logged as ``transition_rejected`` at
    WARNING with the error code.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from fundflow_kernel.domain.authority import authorize_transition, available_targets
from fundflow_kernel.domain.clock import Clock, SystemClock
from fundflow_kernel.domain.fund_request import (
    AccountingAllocation,
    Actor,
    Currency,
    FundRequest,
    FundRequestStatus,
    HistoryEntry,
    NewFundRequest,
    PaymentReceipt,
    WorkflowAction,
    validate_new_request,
)
from fundflow_kernel.domain.progress import StepProgress, progress_ratio, project_progress
from fundflow_kernel.domain.settings import WorkflowSettings
from fundflow_kernel.exceptions import (
    FundFlowError,
    FundRequestNotFoundError,
    PersistenceConflictError,
    ValidationError,
)
from fundflow_kernel.logging_config import LogContext, get_logger
from fundflow_kernel.models.fund_request import FundRequestLineModel, FundRequestModel
from fundflow_kernel.models.settlement import (
    AccountingAllocationModel,
    PaymentReceiptModel,
)
from fundflow_kernel.services.base import BaseService
from fundflow_kernel.services.history_ledger import HistoryLedger
from fundflow_kernel.services.sequence_service import SequenceService
from fundflow_kernel.services.workflow_step_registry import WorkflowStepRegistry

logger = get_logger("services.fund_request")


class FundRequestService(BaseService[FundRequestModel]):
    """
    Create fund requests and apply workflow transitions.

    Contract:
        Stateless apart from the session; the caller commits.  Snapshots
        passed in are the caller's view of the request: their status and
        version are the optimistic token.
    """

    def __init__(
        self,
        session: Session,
        settings: WorkflowSettings,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._settings = settings
        self._clock = clock or SystemClock()
        self._sequences = SequenceService(session)
        self.history_ledger = HistoryLedger(session, settings, self._clock)
        self.step_registry = WorkflowStepRegistry(session, settings, self._clock)

    # ------------------------------------------------------------------
    # Reads used by the write path
    # ------------------------------------------------------------------

    def get(self, request_id: UUID) -> FundRequest:
        """Fresh snapshot from the database."""
        return self._load(request_id)

    def _load(self, request_id: UUID) -> FundRequest:
        row = self.session.execute(
            select(FundRequestModel)
            .where(FundRequestModel.id == request_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            raise FundRequestNotFoundError(str(request_id))
        return row.to_dto()

    def history(self, request_id: UUID) -> tuple[HistoryEntry, ...]:
        return self.history_ledger.history(request_id)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_request(
        self,
        organization_id: UUID,
        actor: Actor,
        new_request: NewFundRequest,
        submit: bool = False,
    ) -> FundRequest:
        """Create a request as a draft, or directly submitted.

        The actor becomes the requester.  The creation is the request's
        first history entry (``from_status`` None).
        """
        with LogContext.bind(organization_id=organization_id, actor_id=actor.actor_id):
            errors = validate_new_request(new_request, self._clock.today())
            if errors:
                logger.warning(
                    "fund_request_validation_failed",
                    extra={"error_code": ValidationError.code, "fields": [f for f, _ in errors]},
                )
                raise ValidationError(errors)

            self.step_registry.ensure_default_steps(organization_id)

            status = FundRequestStatus.SUBMITTED if submit else FundRequestStatus.DRAFT
            now = self._clock.now()
            row = FundRequestModel(
                organization_id=organization_id,
                request_number=self._sequences.next_request_number(
                    organization_id, self._settings.request_number_format,
                ),
                beneficiary=new_request.beneficiary.strip(),
                amount=new_request.resolved_amount,
                currency=Currency(new_request.currency).value,
                description=new_request.description.strip(),
                request_date=new_request.request_date,
                status=status.value,
                version=1,
                requester_id=actor.actor_id,
                requester_name=actor.display_name,
                created_at=now,
                updated_at=now,
                lines=[
                    FundRequestLineModel(
                        line_number=number,
                        description=line.description.strip(),
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        subtotal=line.subtotal,
                    )
                    for number, line in enumerate(new_request.effective_lines, start=1)
                ],
            )
            self.session.add(row)
            self.session.flush()

            self.history_ledger.record(
                row.id,
                None,
                status,
                actor,
                WorkflowAction.SUBMIT if submit else WorkflowAction.CREATE_DRAFT,
            )

            logger.info(
                "fund_request_created",
                extra={
                    "fund_request_id": str(row.id),
                    "request_number": row.request_number,
                    "status": status.value,
                    "amount": str(row.amount),
                    "currency": row.currency,
                },
            )
            return self.get(row.id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def transition(
        self,
        request: FundRequest,
        target_status: FundRequestStatus | str,
        actor: Actor,
        *,
        notes: str | None = None,
        allocation: AccountingAllocation | None = None,
        treasury_account: str | None = None,
    ) -> FundRequest:
        """Move ``request`` to ``target_status`` on behalf of ``actor``.

        Returns the fresh snapshot (status and version advanced).

        Only the snapshot's status and version are taken from the caller.
        Requester, organization and amounts are read from the stored row.
        """
        request = replace(
            self._load(request.request_id),
            status=FundRequestStatus(request.status),
            version=request.version,
        )
        with LogContext.bind(
            organization_id=request.organization_id,
            actor_id=actor.actor_id,
            request_id=request.request_id,
        ):
            try:
                steps = self.step_registry.list_active_steps(request.organization_id)
                authorization = authorize_transition(
                    request, target_status, actor, steps, self._settings.policy,
                )
                action = authorization.transition.action
                if action == WorkflowAction.REJECT and not (notes or "").strip():
                    raise ValidationError((("notes", "a rejection reason is required"),))
            except FundFlowError as exc:
                logger.warning(
                    "transition_rejected",
                    extra={
                        "error_code": exc.code,
                        "from_status": request.status.value,
                        "to_status": str(getattr(target_status, "value", target_status)),
                    },
                )
                raise

            target = authorization.transition.to_state
            now = self._clock.now()
            values = {
                "status": target.value,
                "version": request.version + 1,
                "updated_at": now,
            }
            if target == FundRequestStatus.REJECTED:
                values["rejected_from_status"] = request.status.value

            result = self.session.execute(
                update(FundRequestModel)
                .where(
                    FundRequestModel.id == request.request_id,
                    FundRequestModel.status == request.status.value,
                    FundRequestModel.version == request.version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning(
                    "transition_conflict",
                    extra={
                        "error_code": PersistenceConflictError.code,
                        "expected_status": request.status.value,
                        "expected_version": request.version,
                        "to_status": target.value,
                    },
                )
                raise PersistenceConflictError(
                    str(request.request_id), request.status.value, request.version,
                )

            self.history_ledger.record(
                request.request_id,
                request.status,
                target,
                actor,
                action,
                notes=notes,
            )

            if action == WorkflowAction.COMPLETE_ACCOUNTING and allocation is not None:
                self._record_allocation(request.request_id, actor, allocation)
            elif action == WorkflowAction.PAY:
                self._issue_receipt(request, actor, treasury_account)

            updated = self.get(request.request_id)
            logger.info(
                "fund_request_transitioned",
                extra={
                    "fund_request_id": str(request.request_id),
                    "request_number": request.request_number,
                    "action_code": action.value,
                    "from_status": request.status.value,
                    "to_status": target.value,
                    "version": updated.version,
                    "via_override": authorization.via_override,
                },
            )
            return updated

    def transition_with_retry(
        self,
        request_id: UUID,
        target_status: FundRequestStatus | str,
        actor: Actor,
        **kwargs,
    ) -> FundRequest:
        """Apply a transition from the current state, retrying once on conflict.

        The retry re-reads the request and re-runs the full authorization,
        so a request that moved meanwhile fails with the appropriate
        workflow error.  A second conflict propagates.
        """
        request = self.get(request_id)
        try:
            return self.transition(request, target_status, actor, **kwargs)
        except PersistenceConflictError as exc:
            logger.info(
                "transition_conflict_retry",
                extra={
                    "fund_request_id": str(request_id),
                    "expected_status": exc.expected_status,
                    "expected_version": exc.expected_version,
                },
            )
        return self.transition(self.get(request_id), target_status, actor, **kwargs)

    # Convenience wrappers, one per action

    def submit(self, request: FundRequest, actor: Actor) -> FundRequest:
        return self.transition(request, FundRequestStatus.SUBMITTED, actor)

    def complete_accounting(
        self,
        request: FundRequest,
        actor: Actor,
        allocation: AccountingAllocation | None = None,
        notes: str | None = None,
    ) -> FundRequest:
        return self.transition(
            request, FundRequestStatus.ACCOUNTING_REVIEW, actor,
            notes=notes, allocation=allocation,
        )

    def approve(self, request: FundRequest, actor: Actor, notes: str | None = None) -> FundRequest:
        return self.transition(request, FundRequestStatus.VALIDATED, actor, notes=notes)

    def pay(
        self,
        request: FundRequest,
        actor: Actor,
        treasury_account: str | None = None,
        notes: str | None = None,
    ) -> FundRequest:
        return self.transition(
            request, FundRequestStatus.PAID, actor,
            notes=notes, treasury_account=treasury_account,
        )

    def reject(self, request: FundRequest, actor: Actor, reason: str) -> FundRequest:
        return self.transition(request, FundRequestStatus.REJECTED, actor, notes=reason)

    def resubmit(self, request: FundRequest, actor: Actor, notes: str | None = None) -> FundRequest:
        return self.transition(request, FundRequestStatus.SUBMITTED, actor, notes=notes)

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def available_transitions(
        self,
        request: FundRequest,
        actor: Actor,
    ) -> tuple[FundRequestStatus, ...]:
        """Statuses the actor may move the request to now."""
        steps = self.step_registry.list_active_steps(request.organization_id)
        return available_targets(request, actor, steps, self._settings.policy)

    def progress(self, request: FundRequest) -> tuple[StepProgress, ...]:
        steps = self.step_registry.list_active_steps(request.organization_id)
        return project_progress(steps, request.status, request.rejected_from_status)

    def progress_ratio(self, request: FundRequest):
        steps = self.step_registry.list_active_steps(request.organization_id)
        return progress_ratio(steps, request.status, request.rejected_from_status)

    # ------------------------------------------------------------------
    # Side records
    # ------------------------------------------------------------------

    def _record_allocation(
        self,
        request_id: UUID,
        actor: Actor,
        allocation: AccountingAllocation,
    ) -> None:
        now = self._clock.now()
        row = self.session.execute(
            select(AccountingAllocationModel)
            .where(AccountingAllocationModel.fund_request_id == request_id)
        ).scalar_one_or_none()
        if row is None:
            row = AccountingAllocationModel(fund_request_id=request_id, created_at=now)
            self.session.add(row)
        row.expense_account = allocation.expense_account
        row.treasury_account = allocation.treasury_account
        row.third_party_account = allocation.third_party_account
        row.notes = allocation.notes
        row.accountant_id = actor.actor_id
        row.updated_at = now
        self.session.flush()

    def _issue_receipt(
        self,
        request: FundRequest,
        actor: Actor,
        treasury_account: str | None,
    ) -> PaymentReceipt:
        if treasury_account is None:
            treasury_account = self.session.execute(
                select(AccountingAllocationModel.treasury_account)
                .where(AccountingAllocationModel.fund_request_id == request.request_id)
            ).scalar_one_or_none()

        receipt = PaymentReceiptModel(
            receipt_number=self._sequences.next_receipt_number(
                request.organization_id, self._settings.receipt_number_format,
            ),
            fund_request_id=request.request_id,
            organization_id=request.organization_id,
            beneficiary=request.beneficiary,
            amount=request.amount,
            currency=request.currency.value,
            description=request.description,
            cashier_id=actor.actor_id,
            cashier_name=actor.display_name,
            treasury_account=treasury_account,
            paid_at=self._clock.now(),
        )
        self.session.add(receipt)
        self.session.flush()

        logger.info(
            "payment_receipt_issued",
            extra={
                "fund_request_id": str(request.request_id),
                "receipt_number": receipt.receipt_number,
            },
        )
        return receipt.to_dto()
