"""Write-side services.  Each flushes within the caller's transaction."""

from fundflow_kernel.services.fund_request_service import FundRequestService
from fundflow_kernel.services.history_ledger import HistoryLedger
from fundflow_kernel.services.sequence_service import SequenceService
from fundflow_kernel.services.workflow_step_registry import WorkflowStepRegistry

__all__ = [
    "FundRequestService",
    "HistoryLedger",
    "SequenceService",
    "WorkflowStepRegistry",
]
