"""
Hypothesis-based property tests.

Properties:
- Reverse legs exactly cancel apply legs, for every transaction type
- Any sequence of accepted Cash In / Cash Out operations leaves the balance
  equal to the running sum, and never negative
- Create followed by delete restores every balance exactly
- parse_amount never accepts a non-positive value

The database is shared across the examples of one test, so each example
measures balances relative to where it started.
"""

from collections import defaultdict
from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from exchange_kernel.db.types import parse_amount
from exchange_kernel.domain.ledger_effects import LedgerPhase, TransactionType, plan_legs
from exchange_kernel.exceptions import InsufficientBalanceError, InvalidAmountError

money = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("99999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

cash_operations = st.lists(
    st.tuples(st.sampled_from(["Cash In", "Cash Out"]), money),
    min_size=1,
    max_size=8,
)

DB_SETTINGS = settings(
    max_examples=25,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)


class TestLegProperties:
    @given(
        transaction_type=st.sampled_from(list(TransactionType)),
        amount=money,
        amount_ttd=money,
        currency=st.sampled_from(["USD", "EUR", "GBP"]),
    )
    def test_reverse_cancels_apply(self, transaction_type, amount, amount_ttd, currency):
        net = defaultdict(Decimal)
        for phase in (LedgerPhase.APPLY, LedgerPhase.REVERSE):
            for leg in plan_legs(transaction_type, currency, amount, amount_ttd, phase):
                net[leg.currency] += leg.signed_amount
        assert all(value == 0 for value in net.values())

    @given(value=st.decimals(max_value=Decimal("0"), allow_nan=False, allow_infinity=False))
    def test_non_positive_never_parsed(self, value):
        with pytest.raises(InvalidAmountError):
            parse_amount(value)


class TestBalanceProperties:
    @given(operations=cash_operations)
    @DB_SETTINGS
    def test_balance_tracks_accepted_operations(
        self, operations, controller, make_request, teller, seed_accounts, balance_of
    ):
        seed_accounts(USD="100.00")
        expected = balance_of("USD")

        for transaction_type, amount in operations:
            try:
                controller.create(make_request(transaction_type, amount, "USD"), teller)
            except InsufficientBalanceError:
                assert transaction_type == "Cash Out" and amount > expected
                continue
            expected += amount if transaction_type == "Cash In" else -amount

            balance = balance_of("USD")
            assert balance == expected
            assert balance >= 0

    @given(
        transaction_type=st.sampled_from(list(TransactionType)),
        amount=money,
        amount_ttd=money,
    )
    @DB_SETTINGS
    def test_create_then_delete_restores_balances(
        self, transaction_type, amount, amount_ttd,
        controller, make_request, teller, seed_accounts, balance_of,
    ):
        seed_accounts(TTD="100000.00", USD="100000.00")
        before = (balance_of("TTD"), balance_of("USD"))

        record = controller.create(
            make_request(transaction_type, amount, "USD", amount_ttd=amount_ttd),
            teller,
        ).record
        controller.delete(record.id, teller)

        assert (balance_of("TTD"), balance_of("USD")) == before
