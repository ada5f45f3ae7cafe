"""
Unit tests for the apply/reverse table.

Verifies:
- Every transaction type maps to the documented legs, in order
- Reverse == apply with every direction flipped, same order
- The closed type set rejects anything else
- required_funds returns exactly the debit legs
"""

from decimal import Decimal

import pytest

from exchange_kernel.domain.ledger_effects import (
    BASE_CURRENCY,
    BalanceLeg,
    Direction,
    LedgerPhase,
    TransactionType,
    plan_legs,
    required_funds,
)
from exchange_kernel.exceptions import InvalidTransactionTypeError

AMOUNT = Decimal("100.00")
AMOUNT_TTD = Decimal("680.00")


def _legs(transaction_type, phase=LedgerPhase.APPLY):
    return plan_legs(transaction_type, "USD", AMOUNT, AMOUNT_TTD, phase)


class TestApplyTable:
    def test_cash_in(self):
        assert _legs(TransactionType.CASH_IN) == (
            BalanceLeg("USD", AMOUNT, Direction.CREDIT),
        )

    def test_cash_out(self):
        assert _legs(TransactionType.CASH_OUT) == (
            BalanceLeg("USD", AMOUNT, Direction.DEBIT),
        )

    def test_buy_pays_base_then_receives_foreign(self):
        assert _legs(TransactionType.BUY) == (
            BalanceLeg(BASE_CURRENCY, AMOUNT_TTD, Direction.DEBIT),
            BalanceLeg("USD", AMOUNT, Direction.CREDIT),
        )

    def test_sell_pays_foreign_then_receives_base(self):
        assert _legs(TransactionType.SELL) == (
            BalanceLeg("USD", AMOUNT, Direction.DEBIT),
            BalanceLeg(BASE_CURRENCY, AMOUNT_TTD, Direction.CREDIT),
        )

    def test_custom_base_currency(self):
        legs = plan_legs(
            TransactionType.BUY, "USD", AMOUNT, AMOUNT_TTD, LedgerPhase.APPLY, "JMD"
        )
        assert legs[0].currency == "JMD"


class TestReverseTable:
    @pytest.mark.parametrize("transaction_type", list(TransactionType))
    def test_reverse_flips_every_leg_in_order(self, transaction_type):
        applied = _legs(transaction_type)
        reversed_ = _legs(transaction_type, LedgerPhase.REVERSE)
        assert reversed_ == tuple(leg.flipped() for leg in applied)

    @pytest.mark.parametrize("transaction_type", list(TransactionType))
    def test_apply_plus_reverse_nets_to_zero(self, transaction_type):
        net: dict[str, Decimal] = {}
        for phase in LedgerPhase:
            for leg in _legs(transaction_type, phase):
                net[leg.currency] = net.get(leg.currency, Decimal("0")) + leg.signed_amount
        assert all(total == 0 for total in net.values())

    def test_buy_reverse(self):
        assert _legs(TransactionType.BUY, LedgerPhase.REVERSE) == (
            BalanceLeg(BASE_CURRENCY, AMOUNT_TTD, Direction.CREDIT),
            BalanceLeg("USD", AMOUNT, Direction.DEBIT),
        )


class TestTransactionTypeParse:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Cash In", TransactionType.CASH_IN),
            ("cash out", TransactionType.CASH_OUT),
            ("CASH_IN", TransactionType.CASH_IN),
            ("CashOut", TransactionType.CASH_OUT),
            ("buy", TransactionType.BUY),
            ("SELL", TransactionType.SELL),
            (TransactionType.BUY, TransactionType.BUY),
        ],
    )
    def test_accepted_spellings(self, raw, expected):
        assert TransactionType.parse(raw) is expected

    @pytest.mark.parametrize("raw", ["Refund", "", None, 3, "Cash"])
    def test_unknown_rejected(self, raw):
        with pytest.raises(InvalidTransactionTypeError) as exc_info:
            TransactionType.parse(raw)
        assert exc_info.value.code == "INVALID_TRANSACTION_TYPE"

    def test_table_rejects_unknown_type(self):
        with pytest.raises(InvalidTransactionTypeError):
            plan_legs("Refund", "USD", AMOUNT, AMOUNT_TTD, LedgerPhase.APPLY)


class TestRequiredFunds:
    def test_cash_in_needs_nothing(self):
        assert required_funds(TransactionType.CASH_IN, "USD", AMOUNT, AMOUNT_TTD) == ()

    def test_cash_out_needs_currency(self):
        assert required_funds(TransactionType.CASH_OUT, "USD", AMOUNT, AMOUNT_TTD) == (
            BalanceLeg("USD", AMOUNT, Direction.DEBIT),
        )

    def test_buy_needs_base(self):
        assert required_funds(TransactionType.BUY, "USD", AMOUNT, AMOUNT_TTD) == (
            BalanceLeg(BASE_CURRENCY, AMOUNT_TTD, Direction.DEBIT),
        )

    def test_sell_needs_currency(self):
        assert required_funds(TransactionType.SELL, "USD", AMOUNT, AMOUNT_TTD) == (
            BalanceLeg("USD", AMOUNT, Direction.DEBIT),
        )
