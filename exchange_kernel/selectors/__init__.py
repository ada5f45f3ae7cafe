"""Read-only selectors over committed ledger data."""

from exchange_kernel.selectors.account_selector import AccountSelector
from exchange_kernel.selectors.base import BaseSelector
from exchange_kernel.selectors.transaction_selector import TransactionSelector

__all__ = [
    "AccountSelector",
    "BaseSelector",
    "TransactionSelector",
]
