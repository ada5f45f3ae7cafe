"""
Module: exchange_kernel.db.types
Responsibility: Money precision, rounding, amount parsing and currency
    validation shared by every model and service.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - round_money() is the ONLY sanctioned rounding function for balances.
    - No floats: parse_amount() routes every incoming number through str()
      into Decimal and rejects NaN/Infinity.
    - validate_currency() is the canonical ISO 4217 check.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from exchange_kernel.exceptions import InvalidAmountError, InvalidCurrencyError

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for balances and amounts.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def parse_amount(value: object, field: str = "amount") -> Decimal:
    """
    Parse a strictly positive monetary amount.

    Accepts Decimal, int, float or numeric strings.  Floats go through str()
    so ``0.1`` becomes ``Decimal("0.1")`` rather than its binary expansion.

    Raises:
        InvalidAmountError: If value is missing, non-numeric, non-finite,
            or not strictly positive.
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmountError(field, value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(field, value) from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmountError(field, value)
    return amount


def parse_optional_amount(value: object, field: str) -> Decimal:
    """
    Parse an optional non-negative amount (exchange rate, TTD equivalent).

    Missing, empty, or zero values yield ``Decimal("0")``; anything else must
    be a positive number.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return Decimal("0")
    try:
        if Decimal(str(value).strip()) == 0:
            return Decimal("0")
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(field, value) from None
    return parse_amount(value, field)


# ISO 4217 Currency Codes
ISO_4217_CURRENCIES: set[str] = {
    "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD",
    "AED", "AFN", "ALL", "AMD", "ANG", "AOA", "ARS", "AWG", "AZN",
    "BAM", "BBD", "BDT", "BGN", "BHD", "BIF", "BMD", "BND", "BOB", "BRL", "BSD", "BTN", "BWP", "BYN", "BZD",
    "CDF", "CLP", "CNY", "COP", "CRC", "CUP", "CVE", "CZK",
    "DJF", "DKK", "DOP", "DZD",
    "EGP", "ERN", "ETB",
    "FJD", "FKP",
    "GEL", "GHS", "GIP", "GMD", "GNF", "GTQ", "GYD",
    "HKD", "HNL", "HTG", "HUF",
    "IDR", "ILS", "INR", "IQD", "IRR", "ISK",
    "JMD", "JOD",
    "KES", "KGS", "KHR", "KMF", "KPW", "KRW", "KWD", "KYD", "KZT",
    "LAK", "LBP", "LKR", "LRD", "LSL", "LYD",
    "MAD", "MDL", "MGA", "MKD", "MMK", "MNT", "MOP", "MRU", "MUR", "MVR", "MWK", "MXN", "MYR", "MZN",
    "NAD", "NGN", "NIO", "NOK", "NPR",
    "OMR",
    "PAB", "PEN", "PGK", "PHP", "PKR", "PLN", "PYG",
    "QAR",
    "RON", "RSD", "RUB", "RWF",
    "SAR", "SBD", "SCR", "SDG", "SEK", "SGD", "SHP", "SLE", "SOS", "SRD", "SSP", "STN", "SYP", "SZL",
    "THB", "TJS", "TMT", "TND", "TOP", "TRY", "TTD", "TWD", "TZS",
    "UAH", "UGX", "UYU", "UZS",
    "VES", "VND", "VUV",
    "WST",
    "XAF", "XCD", "XOF", "XPF",
    "YER",
    "ZAR", "ZMW", "ZWL",
}


def validate_currency(currency: str) -> str:
    """
    Validate that a currency code is a valid ISO 4217 code.

    Returns:
        The validated currency code (uppercase, trimmed).

    Raises:
        InvalidCurrencyError: If the currency code is not valid.
    """
    if not currency or not isinstance(currency, str):
        raise InvalidCurrencyError(str(currency))

    normalized = currency.upper().strip()

    if normalized not in ISO_4217_CURRENCIES:
        raise InvalidCurrencyError(currency)

    return normalized


def is_valid_currency(currency: str) -> bool:
    """Check if a currency code is a valid ISO 4217 code."""
    try:
        validate_currency(currency)
        return True
    except InvalidCurrencyError:
        return False
