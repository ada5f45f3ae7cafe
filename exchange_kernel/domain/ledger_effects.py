"""
LedgerEffects -- the apply/reverse table for every transaction type.

Responsibility:
    Single source of truth for which accounts a transaction touches, in what
    order, and in which direction.  Pure functions over frozen values; no
    I/O, no session.

Architecture position:
    Kernel > Domain -- pure functional core.  Consumed by LedgerOrchestrator
    (to drive BalanceMutator) and TransactionValidator (to know which leg
    needs funds).

    | Type     | Apply                                   | Reverse                                  |
    |----------|-----------------------------------------|------------------------------------------|
    | Cash In  | credit(ccy, amount)                     | debit(ccy, amount)                       |
    | Cash Out | debit(ccy, amount)                      | credit(ccy, amount)                      |
    | Buy      | debit(TTD, amount_ttd); credit(ccy, amt)| credit(TTD, amount_ttd); debit(ccy, amt) |
    | Sell     | debit(ccy, amount); credit(TTD, amt_ttd)| credit(ccy, amount); debit(TTD, amt_ttd) |

Invariants enforced:
    - Reverse is Apply with every direction flipped and the order kept, so
      applying then reversing nets every account to zero.
    - The set of transaction types is closed; anything else raises
      InvalidTransactionTypeError.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from exchange_kernel.exceptions import InvalidTransactionTypeError

BASE_CURRENCY = "TTD"


class TransactionType(str, Enum):
    """Closed set of desk transaction types."""

    CASH_IN = "Cash In"
    CASH_OUT = "Cash Out"
    BUY = "Buy"
    SELL = "Sell"

    @classmethod
    def parse(cls, value: object) -> "TransactionType":
        """
        Coerce user input to a TransactionType.

        Accepts members, their values ("Cash In"), names ("CASH_IN") and the
        compact spelling ("CashIn"), case-insensitively.

        Raises:
            InvalidTransactionTypeError: For anything else.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.replace(" ", "").replace("_", "").lower()
            for member in cls:
                if member.value.replace(" ", "").lower() == key:
                    return member
        raise InvalidTransactionTypeError(value)


class Direction(str, Enum):
    """Side of a single balance mutation."""

    CREDIT = "credit"
    DEBIT = "debit"

    @property
    def inverse(self) -> "Direction":
        return Direction.DEBIT if self is Direction.CREDIT else Direction.CREDIT


class LedgerPhase(str, Enum):
    APPLY = "apply"
    REVERSE = "reverse"


@dataclass(frozen=True)
class BalanceLeg:
    """One signed delta against one currency account."""

    currency: str
    amount: Decimal
    direction: Direction

    def flipped(self) -> BalanceLeg:
        return BalanceLeg(self.currency, self.amount, self.direction.inverse)

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.direction is Direction.CREDIT else -self.amount


def apply_legs(
    transaction_type: TransactionType,
    currency: str,
    amount: Decimal,
    amount_ttd: Decimal,
    base_currency: str = BASE_CURRENCY,
) -> tuple[BalanceLeg, ...]:
    """Ordered legs that apply a transaction."""
    match transaction_type:
        case TransactionType.CASH_IN:
            return (BalanceLeg(currency, amount, Direction.CREDIT),)
        case TransactionType.CASH_OUT:
            return (BalanceLeg(currency, amount, Direction.DEBIT),)
        case TransactionType.BUY:
            return (
                BalanceLeg(base_currency, amount_ttd, Direction.DEBIT),
                BalanceLeg(currency, amount, Direction.CREDIT),
            )
        case TransactionType.SELL:
            return (
                BalanceLeg(currency, amount, Direction.DEBIT),
                BalanceLeg(base_currency, amount_ttd, Direction.CREDIT),
            )
        case _:
            raise InvalidTransactionTypeError(transaction_type)


def plan_legs(
    transaction_type: TransactionType,
    currency: str,
    amount: Decimal,
    amount_ttd: Decimal,
    phase: LedgerPhase,
    base_currency: str = BASE_CURRENCY,
) -> tuple[BalanceLeg, ...]:
    """
    Ordered legs for either phase.

    Postconditions:
        plan_legs(..., REVERSE) == tuple(leg.flipped() for leg in
        plan_legs(..., APPLY)).
    """
    legs = apply_legs(transaction_type, currency, amount, amount_ttd, base_currency)
    if phase is LedgerPhase.REVERSE:
        return tuple(leg.flipped() for leg in legs)
    return legs


def required_funds(
    transaction_type: TransactionType,
    currency: str,
    amount: Decimal,
    amount_ttd: Decimal,
    base_currency: str = BASE_CURRENCY,
) -> tuple[BalanceLeg, ...]:
    """Debit legs of the apply phase: the balances that must cover them."""
    return tuple(
        leg
        for leg in apply_legs(transaction_type, currency, amount, amount_ttd, base_currency)
        if leg.direction is Direction.DEBIT
    )
