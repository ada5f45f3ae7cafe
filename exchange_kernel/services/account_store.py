"""
AccountStore -- durable currency -> balance mapping.

Responsibility:
    Looks up and creates per-currency Account rows inside the caller's unit
    of work.  It never changes a balance; that is BalanceMutator's job.

Invariants enforced:
    - One account per currency.  create() is idempotent and survives a
      concurrent-insert race by inserting under a SAVEPOINT and re-reading on
      IntegrityError, so the rest of the unit of work is preserved.
    - Initial balances are non-negative and rounded to two places.

Failure modes:
    - AccountNotFoundError from get().
    - InvalidCurrencyError from create() for non-ISO codes.
    - InvalidAmountError from create() for negative/non-numeric balances.
"""

from decimal import Decimal, InvalidOperation
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from exchange_kernel.db.types import ZERO, round_money, validate_currency
from exchange_kernel.exceptions import AccountNotFoundError, InvalidAmountError
from exchange_kernel.logging_config import get_logger
from exchange_kernel.models.account import Account
from exchange_kernel.services.base import BaseService

logger = get_logger("services.account_store")


def _normalize_code(currency: str) -> str:
    return (currency or "").strip().upper()


def _parse_initial_balance(value: object) -> Decimal:
    try:
        balance = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidAmountError("initial_balance", value) from None
    if not balance.is_finite() or balance < 0:
        raise InvalidAmountError("initial_balance", value)
    return round_money(balance)


class AccountStore(BaseService):
    """Per-currency account lookup and creation."""

    def get(self, currency: str) -> Account:
        """
        Return the account for ``currency``.

        Raises:
            AccountNotFoundError: If no account row exists.
        """
        code = _normalize_code(currency)
        account = self.session.execute(
            select(Account).where(Account.currency == code)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def get_all(self) -> list[Account]:
        """All accounts ordered by currency."""
        return list(
            self.session.execute(
                select(Account).order_by(Account.currency)
            ).scalars()
        )

    def create(self, currency: str, initial_balance: object = ZERO) -> Account:
        """
        Create the account for ``currency`` or return the existing one.

        The initial balance only applies to a newly created row; an existing
        account's balance is left untouched.
        """
        code = validate_currency(currency)
        balance = _parse_initial_balance(initial_balance)

        existing = self.session.execute(
            select(Account).where(Account.currency == code)
        ).scalar_one_or_none()
        if existing is not None:
            return existing

        savepoint = self.session.begin_nested()
        try:
            account = Account(currency=code, balance=balance)
            self.session.add(account)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            # Another unit of work created it first
            logger.debug("account_create_race_retry", extra={"currency": code})
            savepoint.rollback()
            return self.session.execute(
                select(Account).where(Account.currency == code)
            ).scalar_one()

        logger.info(
            "account_created",
            extra={"currency": code, "initial_balance": balance},
        )
        return account

    def ensure_accounts(self, balances: Mapping[str, object]) -> list[Account]:
        """Create every configured account that does not exist yet."""
        return [
            self.create(currency, initial)
            for currency, initial in sorted(balances.items())
        ]
