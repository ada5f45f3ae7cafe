"""
Post-commit notification contract.

The kernel only knows this protocol; rendering and delivery live in
``exchange_services.receipts``.  Notifiers run strictly after the unit of
work committed and can never affect ledger state.
"""

from dataclasses import dataclass
from typing import Protocol

from exchange_kernel.domain.dtos import TransactionRecord


@dataclass(frozen=True)
class NotificationOutcome:
    """What happened to the receipt for one transaction."""

    delivered: bool
    message: str
    recipient: str | None = None
    error: str | None = None


class TransactionNotifier(Protocol):
    def notify(
        self,
        record: TransactionRecord,
        email: str | None = None,
    ) -> NotificationOutcome: ...
