"""
Config -> Kernel Bridges.

Functions that convert a ``WorkflowConfig`` into kernel inputs.  They live
in fundflow_config (the producer) because the kernel must NEVER import
fundflow_config.

Usage:
    from fundflow_config import get_workflow_config
    from fundflow_config.bridges import build_workflow_settings

    settings = build_workflow_settings(get_workflow_config())
    service = FundRequestService(session, settings, clock)
"""

from __future__ import annotations

from fundflow_config.schema import WorkflowConfig
from fundflow_kernel.domain.authority import RolePolicy
from fundflow_kernel.domain.fund_request import WorkflowAction, WorkflowRole
from fundflow_kernel.domain.settings import WorkflowSettings
from fundflow_kernel.domain.workflow import WorkflowStep


def build_role_policy(config: WorkflowConfig) -> RolePolicy:
    """Override roles and role equivalents as a kernel RolePolicy."""
    return RolePolicy(
        override_roles=frozenset(config.override_roles),
        role_equivalents=config.role_equivalents,
    )


def build_default_steps(config: WorkflowConfig) -> tuple[WorkflowStep, ...]:
    """Configured default steps as unpersisted kernel WorkflowSteps."""
    return tuple(
        WorkflowStep(
            step_name=step.name,
            step_order=step.order,
            responsible_role=WorkflowRole(step.role),
            allowed_actions=tuple(WorkflowAction(a) for a in step.allowed_actions),
        )
        for step in sorted(config.default_steps, key=lambda s: s.order)
    )


def build_workflow_settings(
    config: WorkflowConfig,
    locale: str | None = None,
) -> WorkflowSettings:
    """Everything the kernel services need from the configuration.

    ``locale`` selects the history labels; defaults to the configured one.
    """
    return WorkflowSettings(
        default_steps=build_default_steps(config),
        policy=build_role_policy(config),
        action_labels=config.label_set(locale).actions,
        request_number_format=config.request_number_format,
        receipt_number_format=config.receipt_number_format,
    )
