"""Read-only selectors."""

from silver_kernel.selectors.ledger_selector import LedgerSelector

__all__ = ["LedgerSelector"]
