"""
TransactionValidator -- pre-checks run before any balance is touched.

Responsibility:
    Two layers of checks for a create request:

    1. ``validate_request`` -- field-level: required fields, closed
       transaction type, ISO 4217 currency, strictly positive amounts,
       Buy/Sell base-currency equivalent, rate consistency, email shape.
       Pure; never reads the database.
    2. ``validate`` -- balance-level: every debit leg of the apply phase is
       covered by the current (unlocked) balance.

Architecture position:
    Kernel > Services.  Called by TransactionLifecycleController inside the
    create unit of work, before the reference is generated.

Invariants enforced:
    Nothing.  ``validate`` is ADVISORY: it reads without a lock, so a
    concurrent debit can still invalidate it.  BalanceMutator repeats the
    check under the row lock and that check is authoritative.

Failure modes:
    - InvalidFieldError, InvalidAmountError, InvalidTransactionTypeError,
      InvalidCurrencyError from validate_request().
    - InsufficientBalanceError (stage="validation"), AccountNotFoundError
      from validate().
"""

import re
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from exchange_kernel.db.types import (
    ZERO,
    parse_amount,
    parse_optional_amount,
    round_money,
    validate_currency,
)
from exchange_kernel.domain.dtos import TransactionRequest, ValidatedTransaction
from exchange_kernel.domain.ledger_effects import (
    BASE_CURRENCY,
    TransactionType,
    required_funds,
)
from exchange_kernel.exceptions import (
    AccountNotFoundError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidFieldError,
)
from exchange_kernel.logging_config import get_logger
from exchange_kernel.models.account import Account
from exchange_kernel.services.base import BaseService

logger = get_logger("services.transaction_validator")

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

CONVERSION_TYPES = frozenset({TransactionType.BUY, TransactionType.SELL})

DEFAULT_RATE_TOLERANCE = Decimal("0.01")


def normalize_email(value: str | None) -> str | None:
    """
    Lower-case and strip an email address; blank means "no email".

    Raises:
        InvalidFieldError: If a non-blank value is not shaped like an email.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidFieldError("customer_email", "must be a string")
    email = value.strip().lower()
    if not email:
        return None
    if not _EMAIL_PATTERN.match(email):
        raise InvalidFieldError("customer_email", "is not a valid email address")
    return email


class TransactionValidator(BaseService):
    """
    Field- and balance-level checks for create requests.

    Contract:
        validate_request() returns a fully normalized ValidatedTransaction or
        raises a ValidationError/CurrencyError subclass.  validate() returns
        None or raises an AccountError subclass.

    Non-goals:
        - Does NOT lock rows.
        - Does NOT fetch or verify market rates; the rate supplied with the
          request is only checked against amount_ttd for consistency.
    """

    def __init__(
        self,
        session: Session,
        base_currency: str = BASE_CURRENCY,
        rate_tolerance: Decimal = DEFAULT_RATE_TOLERANCE,
    ):
        super().__init__(session)
        self.base_currency = base_currency
        self.rate_tolerance = Decimal(str(rate_tolerance))

    def validate_request(self, request: TransactionRequest) -> ValidatedTransaction:
        """Normalize and check every field of a create request."""
        customer_name = (request.customer_name or "").strip()
        if not customer_name:
            raise InvalidFieldError("customer_name", "is required")

        if request.transaction_type in (None, ""):
            raise InvalidFieldError("transaction_type", "is required")
        transaction_type = TransactionType.parse(request.transaction_type)

        if not request.currency:
            raise InvalidFieldError("currency", "is required")
        currency = validate_currency(request.currency)

        amount = round_money(parse_amount(request.amount))
        if amount <= ZERO:
            raise InvalidAmountError("amount", request.amount)

        exchange_rate = parse_optional_amount(request.exchange_rate, "exchange_rate")
        amount_ttd = round_money(
            parse_optional_amount(request.amount_ttd, "amount_ttd")
        )

        if transaction_type in CONVERSION_TYPES:
            if currency == self.base_currency:
                raise InvalidFieldError(
                    "currency",
                    f"{transaction_type.value} must convert from a currency other "
                    f"than {self.base_currency}",
                )
            if amount_ttd <= ZERO:
                raise InvalidAmountError("amount_ttd", request.amount_ttd)
            if exchange_rate > ZERO:
                expected = round_money(amount * exchange_rate)
                if abs(expected - amount_ttd) > self.rate_tolerance:
                    raise InvalidFieldError(
                        "amount_ttd",
                        f"{amount_ttd} does not match amount x exchange_rate "
                        f"({expected})",
                    )

        return ValidatedTransaction(
            customer_name=customer_name,
            transaction_type=transaction_type,
            amount=amount,
            currency=currency,
            exchange_rate=exchange_rate,
            amount_ttd=amount_ttd,
            customer_email=normalize_email(request.customer_email),
            notes=(request.notes or "").strip(),
            customer_signature=request.customer_signature or "",
        )

    def validate(
        self,
        transaction_type: TransactionType,
        currency: str,
        amount: Decimal,
        amount_ttd: Decimal,
    ) -> None:
        """
        Check that every debit leg is covered by the current balance.

        Cash In has no debit leg and always passes (the credited account must
        still exist, which BalanceMutator enforces).
        """
        for leg in required_funds(
            TransactionType.parse(transaction_type),
            currency,
            amount,
            amount_ttd,
            self.base_currency,
        ):
            account = self.session.execute(
                select(Account).where(Account.currency == leg.currency)
            ).scalar_one_or_none()
            if account is None:
                raise AccountNotFoundError(leg.currency)
            if account.balance < leg.amount:
                logger.info(
                    "balance_precheck_failed",
                    extra={
                        "currency": leg.currency,
                        "available": account.balance,
                        "requested": leg.amount,
                    },
                )
                raise InsufficientBalanceError(
                    currency=leg.currency,
                    available=account.balance,
                    requested=leg.amount,
                    stage="validation",
                )
