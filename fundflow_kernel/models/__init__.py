"""ORM models for the fund request workflow."""

from fundflow_kernel.models.fund_request import FundRequestLineModel, FundRequestModel
from fundflow_kernel.models.history import FundRequestHistoryModel
from fundflow_kernel.models.settlement import (
    AccountingAllocationModel,
    PaymentReceiptModel,
)
from fundflow_kernel.models.workflow_step import (
    WorkflowStepModel,
    WorkflowStepUserModel,
)

__all__ = [
    "AccountingAllocationModel",
    "FundRequestHistoryModel",
    "FundRequestLineModel",
    "FundRequestModel",
    "PaymentReceiptModel",
    "WorkflowStepModel",
    "WorkflowStepUserModel",
]
