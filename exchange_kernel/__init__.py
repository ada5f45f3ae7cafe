"""
Exchange Kernel - transactional ledger core for a currency-exchange desk.

Provides:
- Per-currency accounts with non-negative balances
- Atomic apply/reverse of Cash In, Cash Out, Buy and Sell transactions
- Collision-checked human-readable transaction references
- Typed errors and structured logging
"""

__version__ = "0.1.0"
