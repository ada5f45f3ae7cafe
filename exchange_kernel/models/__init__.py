"""ORM models for the exchange kernel."""

from exchange_kernel.models.account import Account
from exchange_kernel.models.transaction import (
    FINANCIAL_FIELDS,
    MUTABLE_FIELDS,
    ExchangeTransaction,
    TransactionStatus,
)

__all__ = [
    "Account",
    "ExchangeTransaction",
    "FINANCIAL_FIELDS",
    "MUTABLE_FIELDS",
    "TransactionStatus",
]
