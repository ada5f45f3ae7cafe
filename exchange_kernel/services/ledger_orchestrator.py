"""
LedgerOrchestrator -- maps a transaction to its ordered balance mutations.

Responsibility:
    Looks up the legs for (transaction_type, phase) in the ledger effects
    table and drives BalanceMutator through them, in order, inside the
    caller's unit of work.

Architecture position:
    Kernel > Services.  Called by TransactionLifecycleController for create
    (apply) and delete (reverse).

Invariants enforced:
    - A Buy/Sell touches both accounts or neither: the first leg is only
      flushed, never committed, so if the second leg raises the caller's
      unit of work aborts and the first leg disappears with it.
    - Reverse is exactly Apply with directions flipped; reversal uses the
      stored amount/amount_ttd, never a re-derived rate.
    - Every leg goes through BalanceMutator, so the authoritative balance
      check is never skipped.
    - Every account a transaction touches is row-locked up front in
      currency order, whatever the leg order.  A Buy (TTD then foreign)
      and a Sell (foreign then TTD) running together therefore queue on
      the same first lock instead of deadlocking.

Failure modes:
    - InvalidTransactionTypeError for anything outside the closed enum.
    - Anything BalanceMutator raises, unchanged.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from exchange_kernel.domain.ledger_effects import (
    BASE_CURRENCY,
    BalanceLeg,
    LedgerPhase,
    TransactionType,
    plan_legs,
)
from exchange_kernel.logging_config import get_logger
from exchange_kernel.models.account import Account
from exchange_kernel.models.transaction import ExchangeTransaction
from exchange_kernel.services.balance_mutator import BalanceMutator
from exchange_kernel.services.base import BaseService

logger = get_logger("services.ledger_orchestrator")


class LedgerOrchestrator(BaseService):
    """
    Drives the apply/reverse legs of a transaction.

    Contract:
        Returns the touched Account rows in leg order.  On any exception no
        commit has happened; the owner of the unit of work must abort.
    """

    def __init__(
        self,
        session: Session,
        mutator: BalanceMutator | None = None,
        base_currency: str = BASE_CURRENCY,
    ):
        super().__init__(session)
        self.mutator = mutator or BalanceMutator(session)
        self.base_currency = base_currency

    def apply(
        self,
        transaction_type: TransactionType | str,
        currency: str,
        amount: Decimal,
        amount_ttd: Decimal,
    ) -> list[Account]:
        return self._run(
            LedgerPhase.APPLY, transaction_type, currency, amount, amount_ttd
        )

    def reverse(
        self,
        transaction_type: TransactionType | str,
        currency: str,
        amount: Decimal,
        amount_ttd: Decimal,
    ) -> list[Account]:
        return self._run(
            LedgerPhase.REVERSE, transaction_type, currency, amount, amount_ttd
        )

    def reverse_transaction(self, transaction: ExchangeTransaction) -> list[Account]:
        """Undo a stored transaction's effect from its persisted fields."""
        return self.reverse(
            transaction.transaction_type,
            transaction.currency,
            transaction.amount,
            transaction.amount_ttd,
        )

    def legs_for(
        self,
        phase: LedgerPhase,
        transaction_type: TransactionType | str,
        currency: str,
        amount: Decimal,
        amount_ttd: Decimal,
    ) -> tuple[BalanceLeg, ...]:
        return plan_legs(
            TransactionType.parse(transaction_type),
            currency,
            amount,
            amount_ttd,
            phase,
            self.base_currency,
        )

    def _run(
        self,
        phase: LedgerPhase,
        transaction_type: TransactionType | str,
        currency: str,
        amount: Decimal,
        amount_ttd: Decimal,
    ) -> list[Account]:
        legs = self.legs_for(phase, transaction_type, currency, amount, amount_ttd)
        self._lock_accounts(legs)
        touched = [
            self.mutator.apply(leg.currency, leg.amount, leg.direction)
            for leg in legs
        ]
        logger.info(
            f"ledger_{phase.value}_completed",
            extra={
                "transaction_type": TransactionType.parse(transaction_type).value,
                "legs": [
                    {
                        "currency": leg.currency,
                        "direction": leg.direction.value,
                        "amount": leg.amount,
                    }
                    for leg in legs
                ],
            },
        )
        return touched

    def _lock_accounts(self, legs: tuple[BalanceLeg, ...]) -> list[str]:
        """
        Take FOR UPDATE locks on every leg's account, sorted by currency.

        Missing accounts are skipped here; the mutator raises
        AccountNotFoundError for them when their leg runs.
        """
        currencies = sorted({leg.currency.strip().upper() for leg in legs})
        locked = self.session.execute(
            select(Account.currency)
            .where(Account.currency.in_(currencies))
            .order_by(Account.currency)
            .with_for_update()
        ).scalars().all()
        logger.debug("accounts_locked", extra={"currencies": list(locked)})
        return list(locked)
