"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable structures crossing the kernel boundary: TransactionRequest
    (input to create), TransactionRecord and AccountBalance (what selectors
    and the lifecycle controller hand back), and the read-side Page and
    SummaryRow shapes.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  from_model() class
    methods are boundary converters invoked only from services/selectors.

Data flow:
    TransactionRequest -> (lifecycle) -> ExchangeTransaction row -> TransactionRecord
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from exchange_kernel.domain.ledger_effects import TransactionType

if TYPE_CHECKING:
    from exchange_kernel.models.account import Account as AccountModel
    from exchange_kernel.models.transaction import (
        ExchangeTransaction as ExchangeTransactionModel,
    )


@dataclass(frozen=True)
class TransactionRequest:
    """
    Raw create request as received from the request-handling layer.

    Values are deliberately loose (``Any``) -- amounts may arrive as strings
    or numbers and the type as any accepted spelling.  TransactionValidator
    normalizes them into a ValidatedTransaction.
    """

    customer_name: str
    transaction_type: Any
    amount: Any
    currency: str
    exchange_rate: Any = None
    amount_ttd: Any = None
    customer_email: str | None = None
    notes: str = ""
    customer_signature: str = ""


@dataclass(frozen=True)
class ValidatedTransaction:
    """A TransactionRequest after field-level validation."""

    customer_name: str
    transaction_type: TransactionType
    amount: Decimal
    currency: str
    exchange_rate: Decimal
    amount_ttd: Decimal
    customer_email: str | None
    notes: str
    customer_signature: str


@dataclass(frozen=True)
class TransactionRecord:
    """Immutable snapshot of a committed transaction."""

    id: UUID
    reference: str
    transaction_type: TransactionType
    amount: Decimal
    currency: str
    exchange_rate: Decimal
    amount_ttd: Decimal
    status: str
    customer_name: str
    customer_email: str | None
    notes: str
    customer_signature: str
    created_by_id: UUID
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, model: ExchangeTransactionModel) -> TransactionRecord:
        return cls(
            id=model.id,
            reference=model.reference,
            transaction_type=TransactionType(model.transaction_type),
            amount=model.amount,
            currency=model.currency,
            exchange_rate=model.exchange_rate,
            amount_ttd=model.amount_ttd,
            status=model.status.value,
            customer_name=model.customer_name,
            customer_email=model.customer_email,
            notes=model.notes,
            customer_signature=model.customer_signature,
            created_by_id=model.created_by_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


@dataclass(frozen=True)
class AccountBalance:
    """Immutable snapshot of one currency account."""

    currency: str
    balance: Decimal

    @classmethod
    def from_model(cls, model: AccountModel) -> AccountBalance:
        return cls(currency=model.currency, balance=model.balance)


@dataclass(frozen=True)
class Page:
    """One page of a filtered transaction listing."""

    items: tuple[TransactionRecord, ...]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0


@dataclass(frozen=True)
class SummaryRow:
    """Totals for one (transaction_type, currency) group."""

    transaction_type: TransactionType
    currency: str
    count: int
    total_amount: Decimal
    total_ttd: Decimal


@dataclass(frozen=True)
class TransactionSummary:
    rows: tuple[SummaryRow, ...]
    accounts: tuple[AccountBalance, ...] = field(default_factory=tuple)
