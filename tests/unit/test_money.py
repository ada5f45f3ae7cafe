"""
Unit tests for monetary parsing and rounding.

Verifies:
- Half-up rounding to two places
- Strictly positive amount parsing (strings, ints, floats, Decimals)
- Optional amount parsing (blank/zero -> 0)
- ISO 4217 currency validation
"""

from decimal import Decimal

import pytest

from exchange_kernel.db.types import (
    MONEY_DECIMAL_PLACES,
    parse_amount,
    parse_optional_amount,
    round_money,
    validate_currency,
)
from exchange_kernel.exceptions import InvalidAmountError, InvalidCurrencyError


class TestRoundMoney:
    """round_money is the only sanctioned rounding for balances."""

    def test_default_places(self):
        assert MONEY_DECIMAL_PLACES == 2
        assert round_money(Decimal("10")) == Decimal("10.00")

    def test_half_up(self):
        assert round_money(Decimal("0.005")) == Decimal("0.01")
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        assert round_money(Decimal("2.344")) == Decimal("2.34")

    def test_deterministic(self):
        values = {round_money(Decimal("1234.5678")) for _ in range(100)}
        assert values == {Decimal("1234.57")}


class TestParseAmount:
    """parse_amount accepts positive numerics only."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("100.00", Decimal("100.00")),
            (" 42.5 ", Decimal("42.5")),
            (7, Decimal("7")),
            (0.1, Decimal("0.1")),
            (Decimal("0.01"), Decimal("0.01")),
        ],
    )
    def test_valid(self, raw, expected):
        assert parse_amount(raw) == expected

    def test_float_goes_through_str(self):
        """0.1 must not become its binary expansion."""
        assert parse_amount(0.1) == Decimal("0.1")

    @pytest.mark.parametrize(
        "raw",
        [None, "", "abc", "0", 0, "-5", Decimal("-0.01"), "NaN", "Infinity", True],
    )
    def test_invalid(self, raw):
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_amount(raw)
        assert exc_info.value.field == "amount"
        assert exc_info.value.code == "INVALID_AMOUNT"

    def test_field_name_carried(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_amount("-1", field="amount_ttd")
        assert exc_info.value.field == "amount_ttd"


class TestParseOptionalAmount:
    """Missing, blank, and zero optional amounts collapse to zero."""

    @pytest.mark.parametrize("raw", [None, "", "   ", 0, "0", "0.00", Decimal("0")])
    def test_zero_like(self, raw):
        assert parse_optional_amount(raw, "exchange_rate") == Decimal("0")

    def test_positive(self):
        assert parse_optional_amount("6.8", "exchange_rate") == Decimal("6.8")

    @pytest.mark.parametrize("raw", ["-1", "abc"])
    def test_invalid(self, raw):
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_optional_amount(raw, "exchange_rate")
        assert exc_info.value.field == "exchange_rate"


class TestValidateCurrency:
    def test_normalizes(self):
        assert validate_currency(" usd ") == "USD"

    def test_base_currency_known(self):
        assert validate_currency("TTD") == "TTD"

    @pytest.mark.parametrize("raw", ["", "ZZZ", "US", "DOLLARS"])
    def test_invalid(self, raw):
        with pytest.raises(InvalidCurrencyError):
            validate_currency(raw)
