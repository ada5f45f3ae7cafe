"""
Module: exchange_kernel.models.transaction
Responsibility: ORM persistence for exchange desk transactions (Cash In,
    Cash Out, Buy, Sell).
Architecture position: Kernel > Models.  May import from db/ and the
    domain enums only.

Invariants enforced:
    - reference is unique (uq_transaction_reference).
    - amount > 0, exchange_rate >= 0, amount_ttd >= 0 (CHECK constraints).
    - Financial fields are written once, at creation.  The lifecycle
      controller only ever updates MUTABLE_FIELDS.
    - The stored transaction_type/amount/amount_ttd/currency are the sole
      input for reversal; there is no separate journal.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from exchange_kernel.db.base import TrackedBase, UUIDString
from exchange_kernel.domain.ledger_effects import TransactionType


class TransactionStatus(str, Enum):
    """Status of a transaction record.  The engine only writes COMPLETED."""

    PENDING = "Pending"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


# Fields that may change after creation
MUTABLE_FIELDS = frozenset({"notes", "customer_signature", "customer_email"})

# Fields that drive balances or identify the record
FINANCIAL_FIELDS = frozenset({
    "reference",
    "transaction_type",
    "amount",
    "currency",
    "exchange_rate",
    "amount_ttd",
    "status",
    "created_by_id",
})


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class ExchangeTransaction(TrackedBase):
    """
    A committed desk transaction.

    Contract:
        A row exists iff its balance deltas are applied.  Creation and delete
        both happen in the same unit of work as the matching apply/reverse.
    """

    __tablename__ = "exchange_transactions"

    __table_args__ = (
        UniqueConstraint("reference", name="uq_transaction_reference"),
        CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),
        CheckConstraint("exchange_rate >= 0", name="ck_transaction_rate_non_negative"),
        CheckConstraint("amount_ttd >= 0", name="ck_transaction_ttd_non_negative"),
        Index("idx_transaction_created_at", "created_at"),
        Index("idx_transaction_currency_type", "currency", "transaction_type"),
        Index("idx_transaction_created_by", "created_by_id"),
    )

    # Human-readable identifier: TX<YYYYMMDD><6 chars>
    reference: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(
            TransactionType,
            native_enum=False,
            length=20,
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    exchange_rate: Mapped[Decimal] = mapped_column(
        Numeric(18, 6),
        nullable=False,
        default=Decimal("0"),
    )

    # Base-currency equivalent, used by Buy/Sell
    amount_ttd: Mapped[Decimal] = mapped_column(
        Numeric(18, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(
            TransactionStatus,
            native_enum=False,
            length=10,
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
        default=TransactionStatus.COMPLETED,
    )

    customer_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    customer_email: Mapped[str | None] = mapped_column(
        String(320),
        nullable=True,
    )

    notes: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    customer_signature: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    created_by_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<ExchangeTransaction {self.reference}: "
            f"{self.transaction_type.value} {self.amount} {self.currency}>"
        )
