"""
Fund request domain types (``fundflow_kernel.domain.fund_request``).

Responsibility
--------------
Pure value objects for a fund request: status / currency / role / action
enums, the status ordinal map used by both authorization and progress
display, the acting user, request snapshots, history entries, and the
creation-time validation rules.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  No imports from ``db/``,
``models/``, ``services/`` or ``selectors/``.

Invariants enforced
-------------------
* amount > 0, Decimal only (never float).
* amounts and unit prices fit Numeric(18, 2) exactly: at most 2 decimal
  places, at most MAX_AMOUNT.  Nothing is rounded on the way to the table.
* request_date is not after "today" (caller supplies today from a Clock).
* beneficiary and description are required.
* When lines are given the amount is their total.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID


# =========================================================================
# Enums
# =========================================================================


class FundRequestStatus(str, Enum):
    """Fund request lifecycle states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    ACCOUNTING_REVIEW = "accounting_review"
    VALIDATED = "validated"
    PAID = "paid"
    REJECTED = "rejected"


class Currency(str, Enum):
    """Supported request currencies."""

    CDF = "CDF"
    USD = "USD"


class WorkflowRole(str, Enum):
    """Organizational roles that may own a workflow step."""

    REQUESTER = "requester"
    ACCOUNTANT = "accountant"
    MANAGER = "manager"
    CASHIER = "cashier"
    ADMIN = "admin"
    DIRECTOR = "director"
    AUDITOR = "auditor"


class WorkflowAction(str, Enum):
    """Actions recorded in the history ledger and granted on steps."""

    CREATE_DRAFT = "create_draft"
    SUBMIT = "submit"
    COMPLETE_ACCOUNTING = "complete_accounting"
    APPROVE = "approve"
    PAY = "pay"
    REJECT = "reject"
    RESUBMIT = "resubmit"


# Ordinal of each status on the step_order axis.  REJECTED is a sentinel.
STATUS_ORDINALS: dict[FundRequestStatus, int] = {
    FundRequestStatus.DRAFT: 0,
    FundRequestStatus.SUBMITTED: 1,
    FundRequestStatus.ACCOUNTING_REVIEW: 2,
    FundRequestStatus.VALIDATED: 3,
    FundRequestStatus.PAID: 4,
    FundRequestStatus.REJECTED: -1,
}

# No forward transitions are displayed beyond these.
PROGRESS_TERMINAL_STATUSES: frozenset[FundRequestStatus] = frozenset({
    FundRequestStatus.PAID,
    FundRequestStatus.REJECTED,
})


def status_ordinal(status: FundRequestStatus | str) -> int:
    """Map a status to its ordinal (REJECTED -> -1)."""
    return STATUS_ORDINALS[FundRequestStatus(status)]


def role_name(role: WorkflowRole | str) -> str:
    """Plain role string for a WorkflowRole member or a role name."""
    return role.value if isinstance(role, Enum) else str(role)


# =========================================================================
# Actor
# =========================================================================


@dataclass(frozen=True)
class Actor:
    """The acting user, passed explicitly to every operation.

    ``display_name`` is snapshotted into history entries and receipts.
    """

    actor_id: UUID
    display_name: str
    roles: frozenset[str] = frozenset()

    def has_role(self, role: str) -> bool:
        return role_name(role) in {role_name(r) for r in self.roles}

    def has_any_role(self, roles: frozenset[str] | tuple[str, ...] | set[str]) -> bool:
        mine = {role_name(r) for r in self.roles}
        return bool(mine & {role_name(r) for r in roles})


# =========================================================================
# Creation input
# =========================================================================


@dataclass(frozen=True)
class FundRequestLine:
    """One article of a fund request."""

    description: str
    quantity: int = 1
    unit_price: Decimal = Decimal("0")

    @property
    def subtotal(self) -> Decimal:
        return Decimal(self.quantity) * self.unit_price

    @property
    def is_blank(self) -> bool:
        return not self.description.strip() and not self.unit_price


@dataclass(frozen=True)
class NewFundRequest:
    """Form input for creating a fund request.

    Either ``amount`` or ``lines`` (or both, when they agree) must be given.
    Blank lines are ignored.
    """

    beneficiary: str
    currency: Currency | str
    description: str
    request_date: date | None
    amount: Decimal | None = None
    lines: tuple[FundRequestLine, ...] = ()

    @property
    def effective_lines(self) -> tuple[FundRequestLine, ...]:
        return tuple(line for line in self.lines if not line.is_blank)

    @property
    def resolved_amount(self) -> Decimal | None:
        """Line total when lines are present, else the explicit amount."""
        lines = self.effective_lines
        if lines:
            return sum((line.subtotal for line in lines), Decimal("0"))
        return _as_decimal(self.amount)


def _as_decimal(value: Any) -> Decimal | None:
    """Coerce Decimal / int / numeric str to Decimal; floats are refused."""
    if value is None or isinstance(value, (float, bool)):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


# Money columns are Numeric(18, 2).
AMOUNT_QUANTUM = Decimal("0.01")
MAX_AMOUNT = Decimal("9999999999999999.99")


def _amount_problem(value: Decimal) -> str | None:
    """Why a positive amount cannot be stored exactly, or None."""
    if value > MAX_AMOUNT:
        return f"must not exceed {MAX_AMOUNT}"
    if value != value.quantize(AMOUNT_QUANTUM):
        return "must have at most 2 decimal places"
    return None


def validate_new_request(
    new: NewFundRequest,
    today: date,
) -> tuple[tuple[str, str], ...]:
    """Return every validation failure as ``(field, message)``.

    An empty tuple means the request may be created.
    """
    errors: list[tuple[str, str]] = []

    if not (new.beneficiary or "").strip():
        errors.append(("beneficiary", "is required"))
    if not (new.description or "").strip():
        errors.append(("description", "is required"))

    try:
        Currency(new.currency)
    except ValueError:
        supported = ", ".join(c.value for c in Currency)
        errors.append(("currency", f"must be one of {supported}"))

    if new.request_date is None:
        errors.append(("request_date", "is required"))
    elif new.request_date > today:
        errors.append(("request_date", "cannot be in the future"))

    line_errors = 0
    for index, line in enumerate(new.lines):
        if line.is_blank:
            continue
        prefix = f"lines[{index}]"
        before = len(errors)
        if not line.description.strip():
            errors.append((f"{prefix}.description", "is required"))
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity < 1:
            errors.append((f"{prefix}.quantity", "must be at least 1"))
        price = _as_decimal(line.unit_price)
        if not isinstance(line.unit_price, Decimal) or price is None or price <= 0:
            errors.append((f"{prefix}.unit_price", "must be a Decimal greater than zero"))
        elif _amount_problem(price):
            errors.append((f"{prefix}.unit_price", _amount_problem(price)))
        elif isinstance(line.quantity, int) and line.quantity >= 1 and line.subtotal > MAX_AMOUNT:
            errors.append((f"{prefix}.subtotal", f"must not exceed {MAX_AMOUNT}"))
        line_errors += len(errors) - before

    if new.lines and not new.effective_lines:
        errors.append(("lines", "at least one valid line is required"))

    if new.effective_lines:
        if not line_errors:
            total = new.resolved_amount
            if total > MAX_AMOUNT:
                errors.append(("amount", f"must not exceed {MAX_AMOUNT}"))
            elif new.amount is not None:
                explicit = _as_decimal(new.amount)
                if explicit is None or explicit != total:
                    errors.append(("amount", "does not match the line total"))
    else:
        amount = _as_decimal(new.amount)
        if new.amount is None:
            errors.append(("amount", "is required"))
        elif amount is None:
            errors.append(("amount", "must be a decimal number"))
        elif amount <= 0:
            errors.append(("amount", "must be greater than zero"))
        elif _amount_problem(amount):
            errors.append(("amount", _amount_problem(amount)))

    return tuple(errors)


# =========================================================================
# Snapshots
# =========================================================================


@dataclass(frozen=True)
class FundRequestLineRecord:
    """Persisted line of a fund request."""

    line_number: int
    description: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class FundRequest:
    """Immutable snapshot of a fund request.

    ``status`` and ``version`` together form the optimistic token used by
    every transition.
    """

    request_id: UUID
    organization_id: UUID
    request_number: str
    beneficiary: str
    amount: Decimal
    currency: Currency
    description: str
    request_date: date
    status: FundRequestStatus
    requester_id: UUID
    requester_name: str
    version: int = 1
    rejected_from_status: FundRequestStatus | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    lines: tuple[FundRequestLineRecord, ...] = ()


@dataclass(frozen=True)
class HistoryEntry:
    """One immutable audit record of a transition."""

    entry_id: UUID
    fund_request_id: UUID
    sequence: int
    action_code: WorkflowAction
    action: str
    from_status: FundRequestStatus | None
    to_status: FundRequestStatus
    performed_by: UUID
    performed_by_name: str
    notes: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class AccountingAllocation:
    """Account imputation captured when accounting completes."""

    expense_account: str | None = None
    treasury_account: str | None = None
    third_party_account: str | None = None
    notes: str | None = None
    accountant_id: UUID | None = None
    recorded_at: datetime | None = None


@dataclass(frozen=True)
class PaymentReceipt:
    """Receipt issued when a request is paid."""

    receipt_id: UUID
    receipt_number: str
    fund_request_id: UUID
    organization_id: UUID
    beneficiary: str
    amount: Decimal
    currency: Currency
    description: str
    cashier_id: UUID
    cashier_name: str
    treasury_account: str | None = None
    paid_at: datetime | None = None
