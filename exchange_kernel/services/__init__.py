"""Write-side kernel services.  All of them flush; none of them commit."""

from exchange_kernel.services.account_store import AccountStore
from exchange_kernel.services.balance_mutator import BalanceMutator
from exchange_kernel.services.ledger_orchestrator import LedgerOrchestrator
from exchange_kernel.services.reference_generator import ReferenceGenerator
from exchange_kernel.services.transaction_lifecycle import (
    CreateTransactionResult,
    TransactionLifecycleController,
)
from exchange_kernel.services.transaction_validator import TransactionValidator

__all__ = [
    "AccountStore",
    "BalanceMutator",
    "CreateTransactionResult",
    "LedgerOrchestrator",
    "ReferenceGenerator",
    "TransactionLifecycleController",
    "TransactionValidator",
]
