"""Read-only selectors returning frozen DTOs."""

from fundflow_kernel.selectors.fund_request_selector import FundRequestSelector

__all__ = ["FundRequestSelector"]
