"""
Typed exception hierarchy for the fund request workflow kernel.

Every error the kernel raises is a subclass of ``FundFlowError`` and carries:

  1. a TYPED class (catch by type, never by message text)
  2. a stable ``code`` attribute (machine-readable, API-safe)
  3. structured attributes describing what went wrong

Example::

    try:
        service.approve(request, actor)
    except UnauthorizedError as e:
        return {"error": e.code, "required_roles": e.required_roles}
    except PersistenceConflictError:
        request = selector.get(request.request_id)  # re-read and report

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FundFlowError (base)
    |
    +-- ValidationError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   +-- UnauthorizedError
    |   +-- ConfigurationError
    |
    +-- ConcurrencyError
    |   +-- PersistenceConflictError
    |
    +-- NotFoundError
    |   +-- FundRequestNotFoundError
    |   +-- WorkflowStepNotFoundError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES
===============================================================================

Code                          | When raised
------------------------------|-----------------------------------------------
VALIDATION_FAILED             | Malformed or out-of-range input at creation
INVALID_TRANSITION            | Target status not reachable from current one
UNAUTHORIZED_TRANSITION       | Actor may not perform the stage's action
WORKFLOW_CONFIGURATION_ERROR  | No usable workflow step for a role check
PERSISTENCE_CONFLICT          | Status changed concurrently (optimistic check)
FUND_REQUEST_NOT_FOUND        | Unknown fund request id
WORKFLOW_STEP_NOT_FOUND       | Unknown workflow step id
IMMUTABILITY_VIOLATION        | Update/delete of an append-only record

Only ``PersistenceConflictError`` warrants an automatic retry (one re-read,
re-validate, reapply).  Everything else is terminal for the call.
"""

from __future__ import annotations


class FundFlowError(Exception):
    """Base exception for all fund request workflow errors."""

    code: str = "FUNDFLOW_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# Validation


class ValidationError(FundFlowError):
    """
    Input rejected at creation time.

    ``errors`` lists every failing field as ``(field, message)`` pairs so a
    form can highlight all of them at once.
    """

    code: str = "VALIDATION_FAILED"

    def __init__(self, errors: tuple[tuple[str, str], ...] | list[tuple[str, str]]):
        self.errors = tuple(errors)
        detail = "; ".join(f"{field}: {msg}" for field, msg in self.errors)
        super().__init__(f"Fund request validation failed: {detail}")

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(field for field, _ in self.errors)


# Workflow


class WorkflowError(FundFlowError):
    """Base exception for state machine errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """The requested status change is not in the transition table."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot move fund request from '{from_status}' to '{to_status}'"
        )


class UnauthorizedError(WorkflowError):
    """The actor is not allowed to perform the transition for this stage."""

    code: str = "UNAUTHORIZED_TRANSITION"

    def __init__(
        self,
        actor_id: str,
        action: str,
        reason: str,
        required_roles: tuple[str, ...] = (),
    ):
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        self.required_roles = required_roles
        super().__init__(f"Actor {actor_id} may not '{action}': {reason}")


class ConfigurationError(WorkflowError):
    """The organization has no usable workflow step for a role check."""

    code: str = "WORKFLOW_CONFIGURATION_ERROR"

    def __init__(self, organization_id: str, reason: str):
        self.organization_id = organization_id
        self.reason = reason
        super().__init__(
            f"Workflow misconfigured for organization {organization_id}: {reason}"
        )


# Concurrency


class ConcurrencyError(FundFlowError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class PersistenceConflictError(ConcurrencyError):
    """
    The optimistic status check failed.

    Another writer moved the request after the caller read it.  The caller
    should re-read the request and retry once or report the conflict.
    """

    code: str = "PERSISTENCE_CONFLICT"

    def __init__(
        self,
        request_id: str,
        expected_status: str,
        expected_version: int,
    ):
        self.request_id = request_id
        self.expected_status = expected_status
        self.expected_version = expected_version
        super().__init__(
            f"Fund request {request_id} changed concurrently "
            f"(expected status '{expected_status}' at version {expected_version})"
        )


# Lookups


class NotFoundError(FundFlowError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class FundRequestNotFoundError(NotFoundError):
    """Fund request does not exist."""

    code: str = "FUND_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Fund request not found: {request_id}")


class WorkflowStepNotFoundError(NotFoundError):
    """Workflow step does not exist."""

    code: str = "WORKFLOW_STEP_NOT_FOUND"

    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(f"Workflow step not found: {step_id}")


# Immutability


class ImmutabilityError(FundFlowError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete a protected record.

    History entries and payment receipts are append-only; fund requests are
    never deleted and their status only moves through the state machine.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
