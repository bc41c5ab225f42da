"""Pure domain layer: value objects, transition table, authority, projection."""

from fundflow_kernel.domain.authority import (
    Authorization,
    RolePolicy,
    authorize_transition,
    available_targets,
)
from fundflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from fundflow_kernel.domain.fund_request import (
    STATUS_ORDINALS,
    AccountingAllocation,
    Actor,
    Currency,
    FundRequest,
    FundRequestLine,
    FundRequestStatus,
    HistoryEntry,
    NewFundRequest,
    PaymentReceipt,
    WorkflowAction,
    WorkflowRole,
    validate_new_request,
)
from fundflow_kernel.domain.progress import (
    StepProgress,
    StepState,
    progress_ratio,
    project_progress,
)
from fundflow_kernel.domain.settings import WorkflowSettings
from fundflow_kernel.domain.workflow import (
    FUND_REQUEST_TRANSITIONS,
    FUND_REQUEST_WORKFLOW,
    Transition,
    Workflow,
    WorkflowStep,
)

__all__ = [
    "AccountingAllocation",
    "Actor",
    "Authorization",
    "Clock",
    "Currency",
    "DeterministicClock",
    "FUND_REQUEST_TRANSITIONS",
    "FUND_REQUEST_WORKFLOW",
    "FundRequest",
    "FundRequestLine",
    "FundRequestStatus",
    "HistoryEntry",
    "NewFundRequest",
    "PaymentReceipt",
    "RolePolicy",
    "STATUS_ORDINALS",
    "StepProgress",
    "StepState",
    "SystemClock",
    "Transition",
    "Workflow",
    "WorkflowAction",
    "WorkflowRole",
    "WorkflowSettings",
    "WorkflowStep",
    "authorize_transition",
    "available_targets",
    "progress_ratio",
    "project_progress",
    "validate_new_request",
]
