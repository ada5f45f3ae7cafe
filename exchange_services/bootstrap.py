"""
Composition root for an exchange desk.

Responsibility:
    Turns an ExchangeConfig into a ready-to-use desk: engine initialized,
    schema created, configured accounts present, lifecycle controller wired
    with the receipt notifier.  Also exposes the read side through short
    read-only units of work.

Architecture position:
    Services.  The only place that reads configuration values and passes them
    to kernel constructors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from exchange_config import ExchangeConfig, get_active_config
from exchange_kernel.db.engine import create_tables, init_engine_from_url
from exchange_kernel.db.unit_of_work import UnitOfWorkProvider
from exchange_kernel.domain.clock import Clock, SystemClock
from exchange_kernel.domain.dtos import (
    AccountBalance,
    Page,
    TransactionRecord,
    TransactionSummary,
)
from exchange_kernel.logging_config import get_logger
from exchange_kernel.selectors.account_selector import AccountSelector
from exchange_kernel.selectors.transaction_selector import TransactionSelector
from exchange_kernel.services.account_store import AccountStore
from exchange_kernel.services.reference_generator import RandomSource
from exchange_kernel.services.transaction_lifecycle import (
    TransactionLifecycleController,
)
from exchange_services.receipts import NotificationSink, OutboxSink, ReceiptNotifier

logger = get_logger("services.bootstrap")


@dataclass
class ExchangeDesk:
    """A wired desk: the write controller plus read helpers."""

    config: ExchangeConfig
    uow_provider: UnitOfWorkProvider
    controller: TransactionLifecycleController
    notifier: ReceiptNotifier | None = None

    def balances(self) -> tuple[AccountBalance, ...]:
        with self.uow_provider.scope() as uow:
            return AccountSelector(uow.session).list_balances()

    def get_transaction(self, transaction_id: Any) -> TransactionRecord:
        with self.uow_provider.scope() as uow:
            return TransactionSelector(uow.session).get(transaction_id)

    def list_transactions(self, **filters: Any) -> Page:
        with self.uow_provider.scope() as uow:
            return TransactionSelector(uow.session).list_transactions(**filters)

    def summary(
        self,
        date_from: date | datetime | None = None,
        date_to: date | datetime | None = None,
        currency: str | None = None,
    ) -> TransactionSummary:
        with self.uow_provider.scope() as uow:
            return TransactionSelector(uow.session).summary(
                date_from=date_from, date_to=date_to, currency=currency
            )


def build_exchange_desk(
    config: ExchangeConfig | None = None,
    sink: NotificationSink | None = None,
    clock: Clock | None = None,
    rng: RandomSource | None = None,
    create_schema: bool = True,
) -> ExchangeDesk:
    """
    Wire a desk from configuration.

    Args:
        config: Defaults to ``get_active_config()``.
        sink: Receipt transport.  Defaults to an in-memory OutboxSink.
            Ignored when receipts are disabled in config.
        clock: Defaults to SystemClock.
        rng: Reference suffix source.  Defaults to secrets.SystemRandom.
        create_schema: Create missing tables (idempotent).
    """
    config = config or get_active_config()
    database = config.database
    init_engine_from_url(
        database.url,
        echo=database.echo,
        pool_size=database.pool_size,
        max_overflow=database.max_overflow,
        pool_timeout=database.pool_timeout,
    )
    if create_schema:
        create_tables()

    uow_provider = UnitOfWorkProvider()
    with uow_provider.scope() as uow:
        AccountStore(uow.session).ensure_accounts(config.ledger.initial_balances)

    ledger = config.ledger
    notifier = None
    if config.receipts.enabled:
        notifier = ReceiptNotifier(
            sink or OutboxSink(),
            settings=config.receipts,
            base_currency=ledger.base_currency,
        )

    controller = TransactionLifecycleController(
        uow_provider,
        clock=clock or SystemClock(),
        notifier=notifier,
        base_currency=ledger.base_currency,
        rate_tolerance=ledger.rate_tolerance,
        reference_prefix=config.reference.prefix,
        reference_suffix_length=config.reference.suffix_length,
        reference_max_attempts=config.reference.max_attempts,
        rng=rng,
    )

    logger.info(
        "exchange_desk_ready",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "base_currency": ledger.base_currency,
            "receipts_enabled": notifier is not None,
        },
    )
    return ExchangeDesk(
        config=config,
        uow_provider=uow_provider,
        controller=controller,
        notifier=notifier,
    )
