"""
ExchangeConfig schema.

Frozen dataclasses the YAML configuration set is parsed into.  Nothing here
reads files; see ``exchange_config.loader``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class LedgerSettings:
    """Base currency, rate tolerance and the accounts the desk starts with."""

    base_currency: str = "TTD"
    # Allowed |round2(amount * exchange_rate) - amount_ttd| for Buy/Sell
    rate_tolerance: Decimal = Decimal("0.01")
    initial_accounts: tuple[tuple[str, Decimal], ...] = ()

    @property
    def initial_balances(self) -> dict[str, Decimal]:
        return dict(self.initial_accounts)


@dataclass(frozen=True)
class ReferenceSettings:
    prefix: str = "TX"
    suffix_length: int = 6
    max_attempts: int = 10


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///exchange_ledger.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class ReceiptSettings:
    enabled: bool = True
    business_name: str = "Exchange Desk"
    sender: str = "receipts@example.com"
    subject_template: str = "Your Transaction Receipt - {reference}"


@dataclass(frozen=True)
class ExchangeConfig:
    """The complete runtime configuration of one desk."""

    config_id: str
    version: int
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    reference: ReferenceSettings = field(default_factory=ReferenceSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    receipts: ReceiptSettings = field(default_factory=ReceiptSettings)
    checksum: str = ""
