"""
Workflow settings (``fundflow_kernel.domain.settings``).

The kernel-side view of configuration: the default steps seeded for a new
organization, the role policy, history labels and number formats.  The
kernel never reads configuration files; ``fundflow_config.bridges``
builds this object from the loaded YAML.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from fundflow_kernel.domain.authority import RolePolicy
from fundflow_kernel.domain.fund_request import WorkflowAction
from fundflow_kernel.domain.workflow import WorkflowStep


@dataclass(frozen=True)
class WorkflowSettings:
    """Frozen runtime settings consumed by the services."""

    default_steps: tuple[WorkflowStep, ...]
    policy: RolePolicy = field(default_factory=RolePolicy)
    action_labels: tuple[tuple[str, str], ...] = ()
    request_number_format: str = "DF-{seq:05d}"
    receipt_number_format: str = "RC-{seq:05d}"

    def __post_init__(self) -> None:
        orders = [s.step_order for s in self.default_steps]
        if len(orders) != len(set(orders)):
            raise ValueError("Default workflow steps must have distinct step_order values")

    def action_label(self, action: WorkflowAction | str) -> str:
        """Display label recorded in history; falls back to the action code."""
        code = WorkflowAction(action).value
        for key, label in self.action_labels:
            if key == code:
                return label
        return code
