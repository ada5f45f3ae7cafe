"""
BalanceMutator -- the only code path that changes an account balance.

Responsibility:
    Applies one signed delta (credit or debit) to one currency account inside
    the caller's unit of work.

Architecture position:
    Kernel > Services.  Driven exclusively by LedgerOrchestrator.

Invariants enforced:
    - balance >= 0, checked BEFORE the write; a negative balance is never
      flushed, even transiently.
    - Lost-update safety: the account row is read with SELECT ... FOR UPDATE
      (PostgreSQL row lock; SQLite already holds the write lock from
      BEGIN IMMEDIATE), so the read-modify-write cannot interleave with
      another unit of work.
    - Exactly one account row updated per call; accounts are never created
      implicitly.
    - Amounts are whole cents; new_balance = balance +/- amount exactly, so
      a reverse always restores the balance an apply started from.

Failure modes:
    - InvalidAmountError: amount non-numeric, non-finite, <= 0, or finer
      than one cent.
    - AccountNotFoundError: no account row for the currency.
    - InsufficientBalanceError (stage="apply"): debit exceeds balance.
"""

from decimal import Decimal

from sqlalchemy import select

from exchange_kernel.db.types import parse_amount, round_money
from exchange_kernel.domain.ledger_effects import Direction
from exchange_kernel.exceptions import (
    AccountNotFoundError,
    InsufficientBalanceError,
    InvalidAmountError,
)
from exchange_kernel.logging_config import get_logger
from exchange_kernel.models.account import Account
from exchange_kernel.services.base import BaseService

logger = get_logger("services.balance_mutator")


class BalanceMutator(BaseService):
    """Applies single-account balance deltas under a row lock."""

    def apply(
        self,
        currency: str,
        amount: object,
        direction: Direction | str,
    ) -> Account:
        """
        Credit or debit one account.

        Preconditions:
            - Called inside an active unit of work.

        Postconditions:
            - The account's balance changed by exactly +/- amount and was
              flushed, not committed.

        Returns:
            The updated Account row.
        """
        value = parse_amount(amount)
        # Sub-cent amounts would be checked unrounded but written rounded
        if value != round_money(value):
            raise InvalidAmountError("amount", amount, "must be whole cents")
        direction = Direction(direction)
        code = (currency or "").strip().upper()

        account = self.session.execute(
            select(Account)
            .where(Account.currency == code)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if account is None:
            raise AccountNotFoundError(code)

        current: Decimal = account.balance
        if direction is Direction.DEBIT:
            if current < value:
                raise InsufficientBalanceError(
                    currency=code,
                    available=current,
                    requested=value,
                    stage="apply",
                )
            new_balance = round_money(current - value)
        else:
            new_balance = round_money(current + value)

        account.balance = new_balance
        self.session.flush()

        logger.debug(
            f"balance_{direction.value}ed",
            extra={
                "currency": code,
                "amount": value,
                "balance_before": current,
                "balance_after": new_balance,
            },
        )
        return account
