"""Pure domain layer: transaction types, ledger effects, DTOs, clock, identity."""

from exchange_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from exchange_kernel.domain.dtos import (
    AccountBalance,
    Page,
    SummaryRow,
    TransactionRecord,
    TransactionRequest,
    TransactionSummary,
    ValidatedTransaction,
)
from exchange_kernel.domain.identity import Identity, Role
from exchange_kernel.domain.notifications import NotificationOutcome, TransactionNotifier
from exchange_kernel.domain.ledger_effects import (
    BASE_CURRENCY,
    BalanceLeg,
    Direction,
    LedgerPhase,
    TransactionType,
    plan_legs,
)

__all__ = [
    "AccountBalance",
    "BASE_CURRENCY",
    "BalanceLeg",
    "Clock",
    "DeterministicClock",
    "Direction",
    "Identity",
    "LedgerPhase",
    "NotificationOutcome",
    "Page",
    "Role",
    "SummaryRow",
    "SystemClock",
    "TransactionRecord",
    "TransactionRequest",
    "TransactionSummary",
    "TransactionNotifier",
    "TransactionType",
    "ValidatedTransaction",
    "plan_legs",
]
