"""
Module: exchange_kernel.models.account
Responsibility: ORM persistence for per-currency cash accounts -- the only
    shared mutable state in the system.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One account per currency (uq_account_currency).
    - balance >= 0 at all times.  Checked by BalanceMutator before every
      debit and backed by the ck_account_balance_non_negative constraint.
    - balance is stored at two decimal places.

Failure modes:
    - AccountNotFoundError when a mutation references a missing currency.
    - IntegrityError if anything bypasses the mutator and writes a negative
      balance.
"""

from decimal import Decimal

from sqlalchemy import CheckConstraint, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from exchange_kernel.db.base import TrackedBase


class Account(TrackedBase):
    """
    Cash account holding the desk's balance in one currency.

    Contract:
        Account.currency is unique and uppercase.  Rows are created once per
        currency and never deleted; balance is mutated only through
        BalanceMutator inside a unit of work.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("currency", name="uq_account_currency"),
        CheckConstraint("balance >= 0", name="ck_account_balance_non_negative"),
    )

    # ISO 4217 code, uppercase
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    balance: Mapped[Decimal] = mapped_column(
        Numeric(18, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    def __repr__(self) -> str:
        return f"<Account {self.currency}: {self.balance}>"
