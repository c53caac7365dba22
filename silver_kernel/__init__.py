"""
Silver Kernel - Dual-Balance Ledger & Sale-Settlement Engine

A silver-trading ledger in which every customer carries two running balances:
- Fine-silver weight owed (grams, 3 decimal places)
- Cash/labor charges owed (currency units, 2 decimal places)

Every sale and settlement event updates both balances atomically and appends
an immutable ledger entry.
"""

__version__ = "0.1.0"
