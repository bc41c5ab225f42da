"""
Transition authority (``fundflow_kernel.domain.authority``).

Responsibility
--------------
The single function that decides whether an actor may move a fund request
from its current status to a target status.  Every caller (service,
button rendering, tests) goes through ``authorize_transition``; no role
names are compared anywhere else.

Architecture position
---------------------
**Kernel domain layer** -- pure.  Receives the organization's steps and the
role policy as arguments; never reads them itself.

Rules
-----
1. The (current, target) pair must be in ``FUND_REQUEST_WORKFLOW``.
2. Requester-only transitions (submit from draft, resubmit from rejected)
   require the actor to be the original requester.  No role check.
3. Otherwise the owning stage is the active step whose ``step_order``
   equals ``stage_order(transition)``.  No active steps, or no owner,
   is a configuration error.
4. The step must list the action in ``allowed_actions``.
5. The actor must hold the step's role, an equivalent role, or an
   override role.  Assigned users narrow a step unless the actor acts
   through an override role.
"""

from __future__ import annotations

from dataclasses import dataclass

from fundflow_kernel.domain.fund_request import (
    Actor,
    FundRequest,
    FundRequestStatus,
    role_name,
)
from fundflow_kernel.domain.workflow import (
    FUND_REQUEST_WORKFLOW,
    Transition,
    WorkflowStep,
    active_steps_in_order,
    stage_order,
)
from fundflow_kernel.exceptions import (
    ConfigurationError,
    InvalidTransitionError,
    UnauthorizedError,
    WorkflowError,
)


@dataclass(frozen=True)
class RolePolicy:
    """Organization-wide role rules layered over the step roles.

    ``role_equivalents`` maps a step role to roles that may stand in for it
    (e.g. a director may validate in place of a manager).
    """

    override_roles: frozenset[str] = frozenset({"admin"})
    role_equivalents: tuple[tuple[str, tuple[str, ...]], ...] = ()

    def roles_for(self, role: str) -> frozenset[str]:
        name = role_name(role)
        roles = {name}
        for owner, equivalents in self.role_equivalents:
            if owner == name:
                roles.update(equivalents)
        return frozenset(roles)


@dataclass(frozen=True)
class Authorization:
    """Outcome of a successful authorization check."""

    transition: Transition
    step: WorkflowStep | None = None
    via_override: bool = False


def resolve_transition(
    current: FundRequestStatus | str,
    target: FundRequestStatus | str,
) -> Transition:
    """Look up the transition, or raise InvalidTransitionError."""
    try:
        current_status = FundRequestStatus(current)
        target_status = FundRequestStatus(target)
    except ValueError:
        raise InvalidTransitionError(str(current), str(target)) from None

    transition = FUND_REQUEST_WORKFLOW.find(current_status, target_status)
    if transition is None:
        raise InvalidTransitionError(current_status.value, target_status.value)
    return transition


def resolve_stage_step(
    steps: tuple[WorkflowStep, ...] | list[WorkflowStep],
    transition: Transition,
    organization_id: str,
) -> WorkflowStep:
    """Find the active step owning a transition, or raise ConfigurationError."""
    active = active_steps_in_order(steps)
    if not active:
        raise ConfigurationError(organization_id, "no active workflow steps")

    order = stage_order(transition)
    for step in active:
        if step.step_order == order:
            return step
    raise ConfigurationError(
        organization_id,
        f"no active step with order {order} owns '{transition.action.value}'",
    )


def authorize_transition(
    request: FundRequest,
    target: FundRequestStatus | str,
    actor: Actor,
    steps: tuple[WorkflowStep, ...] | list[WorkflowStep],
    policy: RolePolicy,
) -> Authorization:
    """Decide whether ``actor`` may move ``request`` to ``target``.

    Raises:
        InvalidTransitionError: target not reachable from the current status.
        ConfigurationError: a role check is needed but no step owns the stage.
        UnauthorizedError: the actor fails the identity, role, assignee or
            allowed-action check.
    """
    transition = resolve_transition(request.status, target)
    action = transition.action.value
    actor_id = str(actor.actor_id)

    if transition.requester_only:
        if actor.actor_id != request.requester_id:
            raise UnauthorizedError(
                actor_id, action, "only the original requester may do this",
            )
        return Authorization(transition=transition)

    step = resolve_stage_step(steps, transition, str(request.organization_id))
    required = step.responsible_role.value

    if not step.allows(transition.action):
        raise UnauthorizedError(
            actor_id, action,
            f"step '{step.step_name}' does not allow '{action}'",
            required_roles=(required,),
        )

    if actor.has_any_role(policy.override_roles):
        return Authorization(transition=transition, step=step, via_override=True)

    allowed_roles = policy.roles_for(required)
    if not actor.has_any_role(allowed_roles):
        raise UnauthorizedError(
            actor_id, action,
            f"step '{step.step_name}' requires role '{required}'",
            required_roles=tuple(sorted(allowed_roles)),
        )

    if step.assigned_user_ids and actor.actor_id not in step.assigned_user_ids:
        raise UnauthorizedError(
            actor_id, action,
            f"actor is not assigned to step '{step.step_name}'",
            required_roles=tuple(sorted(allowed_roles)),
        )

    return Authorization(transition=transition, step=step)


def available_targets(
    request: FundRequest,
    actor: Actor,
    steps: tuple[WorkflowStep, ...] | list[WorkflowStep],
    policy: RolePolicy,
) -> tuple[FundRequestStatus, ...]:
    """Statuses ``actor`` may move ``request`` to right now."""
    targets = []
    for target in FUND_REQUEST_WORKFLOW.successors(request.status):
        try:
            authorize_transition(request, target, actor, steps, policy)
        except WorkflowError:
            continue
        targets.append(target)
    return tuple(targets)
