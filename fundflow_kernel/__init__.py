"""
Fund Flow Kernel

Fund request approval workflow for a multi-module ERP:
- Role-gated state machine from draft to paid, with rejection and resubmission
- Optimistic concurrency on every status change
- Append-only history ledger
- Per-organization workflow step registry
- Pure progress projection for display
"""

__version__ = "0.1.0"
