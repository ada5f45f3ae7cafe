"""
Tests for BalanceMutator.

Verifies:
- Credits and debits change exactly one account by exactly the amount
- A debit larger than the balance raises before any write
- Invalid amounts and unknown currencies are rejected
- Nothing is committed by the mutator itself
"""

from decimal import Decimal

import pytest

from exchange_kernel.domain.ledger_effects import Direction
from exchange_kernel.exceptions import (
    AccountNotFoundError,
    InsufficientBalanceError,
    InvalidAmountError,
)
from exchange_kernel.services.balance_mutator import BalanceMutator


@pytest.fixture
def accounts(seed_accounts):
    seed_accounts(TTD="1000.00", USD="50.00")


class TestCreditDebit:
    def test_credit(self, uow_provider, accounts, balance_of):
        with uow_provider.scope() as uow:
            account = BalanceMutator(uow.session).apply("USD", "25.50", Direction.CREDIT)
            assert account.balance == Decimal("75.50")
        assert balance_of("USD") == Decimal("75.50")
        assert balance_of("TTD") == Decimal("1000.00")

    def test_debit(self, uow_provider, accounts, balance_of):
        with uow_provider.scope() as uow:
            BalanceMutator(uow.session).apply("USD", Decimal("20.00"), Direction.DEBIT)
        assert balance_of("USD") == Decimal("30.00")

    def test_debit_to_exactly_zero(self, uow_provider, accounts, balance_of):
        with uow_provider.scope() as uow:
            BalanceMutator(uow.session).apply("USD", "50.00", "debit")
        assert balance_of("USD") == Decimal("0.00")

    def test_lowercase_currency_accepted(self, uow_provider, accounts, balance_of):
        with uow_provider.scope() as uow:
            BalanceMutator(uow.session).apply("usd", "1", Direction.CREDIT)
        assert balance_of("USD") == Decimal("51.00")

    def test_trailing_zeros_accepted(self, uow_provider, accounts, balance_of):
        with uow_provider.scope() as uow:
            BalanceMutator(uow.session).apply("USD", "0.100", Direction.CREDIT)
        assert balance_of("USD") == Decimal("50.10")

    def test_sequential_mutations_in_one_unit(self, uow_provider, accounts, balance_of):
        with uow_provider.scope() as uow:
            mutator = BalanceMutator(uow.session)
            mutator.apply("USD", "10", Direction.DEBIT)
            mutator.apply("USD", "5", Direction.CREDIT)
            mutator.apply("USD", "45", Direction.DEBIT)
        assert balance_of("USD") == Decimal("0.00")


class TestInsufficientBalance:
    def test_overdraw_rejected(self, uow_provider, accounts, balance_of):
        with pytest.raises(InsufficientBalanceError) as exc_info:
            with uow_provider.scope() as uow:
                BalanceMutator(uow.session).apply("USD", "75.00", Direction.DEBIT)

        err = exc_info.value
        assert err.currency == "USD"
        assert err.available == Decimal("50.00")
        assert err.requested == Decimal("75.00")
        assert err.stage == "apply"
        assert balance_of("USD") == Decimal("50.00")

    def test_earlier_mutation_in_unit_discarded(self, uow_provider, accounts, balance_of):
        with pytest.raises(InsufficientBalanceError):
            with uow_provider.scope() as uow:
                mutator = BalanceMutator(uow.session)
                mutator.apply("TTD", "100.00", Direction.DEBIT)
                mutator.apply("USD", "500.00", Direction.DEBIT)

        assert balance_of("TTD") == Decimal("1000.00")
        assert balance_of("USD") == Decimal("50.00")


class TestRejectedInputs:
    @pytest.mark.parametrize("amount", ["0", "-1", "abc", None, "NaN"])
    def test_invalid_amount(self, uow_provider, accounts, amount):
        with pytest.raises(InvalidAmountError):
            with uow_provider.scope() as uow:
                BalanceMutator(uow.session).apply("USD", amount, Direction.CREDIT)

    def test_unknown_account_never_created(self, uow_provider, accounts):
        with pytest.raises(AccountNotFoundError) as exc_info:
            with uow_provider.scope() as uow:
                BalanceMutator(uow.session).apply("EUR", "10", Direction.CREDIT)
        assert exc_info.value.currency == "EUR"

        with pytest.raises(AccountNotFoundError):
            with uow_provider.scope() as uow:
                BalanceMutator(uow.session).apply("EUR", "10", Direction.DEBIT)

    def test_bad_direction(self, uow_provider, accounts):
        with pytest.raises(ValueError):
            with uow_provider.scope() as uow:
                BalanceMutator(uow.session).apply("USD", "10", "sideways")


class TestLogging:
    def test_debit_logged(self, uow_provider, accounts, captured_logs):
        with uow_provider.scope() as uow:
            BalanceMutator(uow.session).apply("USD", "20.00", Direction.DEBIT)

        entries = [r for r in captured_logs() if r["message"] == "balance_debited"]
        assert len(entries) == 1
        assert entries[0]["currency"] == "USD"
        assert entries[0]["balance_before"] == "50.00"
        assert entries[0]["balance_after"] == "30.00"


class TestSubCentAmounts:
    @pytest.mark.parametrize("direction", [Direction.CREDIT, Direction.DEBIT])
    @pytest.mark.parametrize("amount", ["0.004", "0.005", "10.001", Decimal("1.999")])
    def test_rejected_before_any_write(
        self, uow_provider, accounts, balance_of, captured_logs, amount, direction
    ):
        with pytest.raises(InvalidAmountError):
            with uow_provider.scope() as uow:
                BalanceMutator(uow.session).apply("USD", amount, direction)

        assert balance_of("USD") == Decimal("50.00")
        assert not any(r["message"].startswith("balance_") for r in captured_logs())

    def test_tiny_debit_does_not_report_success(self, uow_provider, seed_accounts, balance_of):
        seed_accounts(EUR="1.00")
        with pytest.raises(InvalidAmountError, match="whole cents"):
            with uow_provider.scope() as uow:
                BalanceMutator(uow.session).apply("EUR", "0.004", Direction.DEBIT)
        assert balance_of("EUR") == Decimal("1.00")
