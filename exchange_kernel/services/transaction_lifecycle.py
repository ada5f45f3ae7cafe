"""
TransactionLifecycleController -- create, update and delete transactions.

Responsibility:
    The single public write entry point.  Owns the unit-of-work boundary for
    every lifecycle operation and sequences the kernel services inside it.

Architecture position:
    Kernel > Services.  Outer layers (HTTP handlers, CLI, the composition
    root in ``exchange_services``) call this; nothing below it does.

State machine (create):

    Requested -> Validated -> BalancesApplied -> Persisted -> Committed
        |            |               |              |
        +------------+---------------+--------------+--> Failed (aborted)

    In code the record row is inserted before the orchestrator runs, but both
    are flushed into the same unit of work, so "persisted" and "balances
    applied" only become visible together at commit.

Invariants enforced:
    - A transaction row exists iff its balance deltas are applied.  Create
      and delete each run apply/reverse and the row insert/delete in ONE
      unit of work; any exception aborts it before propagating.
    - Post-commit receipt delivery never raises and never touches committed
      state.
    - Only notes, customer_signature and customer_email change after
      creation.  Updates never enter the orchestrator.
    - Delete is authorized for admins or the creator only.

Failure modes:
    - Everything the validator, reference generator and orchestrator raise.
    - RecordNotFoundError, NotAuthorizedError, ImmutableFieldError,
      InvalidFieldError.
    - ConcurrencyConflictError on lock conflicts or a reference collision
      detected at insert (both retryable from scratch).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from exchange_kernel.db.unit_of_work import UnitOfWorkProvider
from exchange_kernel.domain.clock import Clock, SystemClock
from exchange_kernel.domain.dtos import TransactionRecord, TransactionRequest
from exchange_kernel.domain.identity import Identity
from exchange_kernel.domain.ledger_effects import BASE_CURRENCY
from exchange_kernel.domain.notifications import (
    NotificationOutcome,
    TransactionNotifier,
)
from exchange_kernel.exceptions import (
    ConcurrencyConflictError,
    ImmutableFieldError,
    InvalidFieldError,
    NotAuthorizedError,
    RecordNotFoundError,
)
from exchange_kernel.logging_config import LogContext, get_logger
from exchange_kernel.models.transaction import (
    MUTABLE_FIELDS,
    ExchangeTransaction,
    TransactionStatus,
)
from exchange_kernel.services.balance_mutator import BalanceMutator
from exchange_kernel.services.ledger_orchestrator import LedgerOrchestrator
from exchange_kernel.services.reference_generator import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_PREFIX,
    DEFAULT_SUFFIX_LENGTH,
    RandomSource,
    ReferenceGenerator,
)
from exchange_kernel.services.transaction_validator import (
    DEFAULT_RATE_TOLERANCE,
    TransactionValidator,
    normalize_email,
)

logger = get_logger("services.transaction_lifecycle")

NO_EMAIL_MESSAGE = "Email not sent (no email provided)"
DELIVERY_FAILED_MESSAGE = "Transaction successful but failed to send email receipt"


@dataclass(frozen=True)
class CreateTransactionResult:
    """A committed transaction plus what happened to its receipt."""

    record: TransactionRecord
    notification: NotificationOutcome


def _coerce_id(transaction_id: UUID | str) -> UUID:
    if isinstance(transaction_id, UUID):
        return transaction_id
    try:
        return UUID(str(transaction_id))
    except ValueError:
        raise InvalidFieldError("transaction_id", "invalid format") from None


class TransactionLifecycleController:
    """
    Orchestrates create/update/delete across the kernel services.

    Contract:
        Every public write method runs in exactly one unit of work obtained
        from ``uow_provider``.  On return the unit is committed; on raise it
        is aborted.

    Non-goals:
        - Does NOT retry.  Retryable errors carry ``retryable = True`` and
          the caller decides.
        - Does NOT authenticate; ``identity`` is trusted.
    """

    def __init__(
        self,
        uow_provider: UnitOfWorkProvider,
        clock: Clock | None = None,
        notifier: TransactionNotifier | None = None,
        base_currency: str = BASE_CURRENCY,
        rate_tolerance: Decimal = DEFAULT_RATE_TOLERANCE,
        reference_prefix: str = DEFAULT_PREFIX,
        reference_suffix_length: int = DEFAULT_SUFFIX_LENGTH,
        reference_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        rng: RandomSource | None = None,
        mutator_factory: Callable[[Session], BalanceMutator] = BalanceMutator,
    ):
        self._uow_provider = uow_provider
        self._clock = clock or SystemClock()
        self._notifier = notifier
        self._base_currency = base_currency
        self._rate_tolerance = rate_tolerance
        self._reference_prefix = reference_prefix
        self._reference_suffix_length = reference_suffix_length
        self._reference_max_attempts = reference_max_attempts
        self._rng = rng
        self._mutator_factory = mutator_factory

    # Per-unit-of-work collaborators

    def _validator(self, session: Session) -> TransactionValidator:
        return TransactionValidator(
            session,
            base_currency=self._base_currency,
            rate_tolerance=self._rate_tolerance,
        )

    def _orchestrator(self, session: Session) -> LedgerOrchestrator:
        return LedgerOrchestrator(
            session,
            mutator=self._mutator_factory(session),
            base_currency=self._base_currency,
        )

    def _reference_generator(self, session: Session) -> ReferenceGenerator:
        return ReferenceGenerator(
            session,
            clock=self._clock,
            rng=self._rng,
            prefix=self._reference_prefix,
            suffix_length=self._reference_suffix_length,
            max_attempts=self._reference_max_attempts,
        )

    def _load_for_update(
        self, session: Session, transaction_id: UUID
    ) -> ExchangeTransaction:
        transaction = session.execute(
            select(ExchangeTransaction)
            .where(ExchangeTransaction.id == transaction_id)
            .with_for_update()
        ).scalar_one_or_none()
        if transaction is None:
            raise RecordNotFoundError(str(transaction_id))
        return transaction

    # Create

    def create(
        self,
        request: TransactionRequest,
        identity: Identity,
    ) -> CreateTransactionResult:
        """
        Validate, apply and persist a new transaction, then send its receipt.

        Returns:
            CreateTransactionResult.  ``notification.delivered`` is False if
            no email was given or delivery failed; the transaction is
            committed either way.
        """
        with LogContext.bind(actor_id=str(identity.id)):
            with self._uow_provider.scope() as uow:
                session = uow.session
                validator = self._validator(session)
                validated = validator.validate_request(request)
                validator.validate(
                    validated.transaction_type,
                    validated.currency,
                    validated.amount,
                    validated.amount_ttd,
                )

                reference = self._reference_generator(session).generate()
                now = self._clock.now()
                transaction = ExchangeTransaction(
                    reference=reference,
                    transaction_type=validated.transaction_type,
                    amount=validated.amount,
                    currency=validated.currency,
                    exchange_rate=validated.exchange_rate,
                    amount_ttd=validated.amount_ttd,
                    status=TransactionStatus.COMPLETED,
                    customer_name=validated.customer_name,
                    customer_email=validated.customer_email,
                    notes=validated.notes,
                    customer_signature=validated.customer_signature,
                    created_by_id=identity.id,
                    created_at=now,
                    updated_at=now,
                )
                session.add(transaction)
                try:
                    session.flush()
                except IntegrityError as exc:
                    raise ConcurrencyConflictError(
                        f"reference {reference} was taken concurrently"
                    ) from exc

                with LogContext.bind(reference=reference):
                    self._orchestrator(session).apply(
                        validated.transaction_type,
                        validated.currency,
                        validated.amount,
                        validated.amount_ttd,
                    )
                record = TransactionRecord.from_model(transaction)

            logger.info(
                "transaction_created",
                extra={
                    "transaction_id": record.id,
                    "reference": record.reference,
                    "transaction_type": record.transaction_type.value,
                    "amount": record.amount,
                    "currency": record.currency,
                    "amount_ttd": record.amount_ttd,
                },
            )
            notification = self._notify(record, record.customer_email)
            return CreateTransactionResult(record=record, notification=notification)

    # Update

    def update(
        self,
        transaction_id: UUID | str,
        changes: Mapping[str, Any],
        identity: Identity,
    ) -> TransactionRecord:
        """
        Change the non-financial fields of a transaction.

        Raises:
            ImmutableFieldError: If ``changes`` names any other field.
            InvalidFieldError: Empty change set, non-string value, or a
                malformed email.
        """
        rejected = set(changes) - MUTABLE_FIELDS
        if rejected:
            raise ImmutableFieldError(list(rejected))
        if not changes:
            raise InvalidFieldError("changes", "no fields to update")

        cleaned: dict[str, str | None] = {}
        for field, value in changes.items():
            if field == "customer_email":
                cleaned[field] = normalize_email(value)
            elif value is None or isinstance(value, str):
                cleaned[field] = value or ""
            else:
                raise InvalidFieldError(field, "must be a string")

        tid = _coerce_id(transaction_id)
        with LogContext.bind(actor_id=str(identity.id), transaction_id=str(tid)):
            with self._uow_provider.scope() as uow:
                transaction = self._load_for_update(uow.session, tid)
                for field, value in cleaned.items():
                    setattr(transaction, field, value)
                transaction.updated_by_id = identity.id
                transaction.updated_at = self._clock.now()
                uow.session.flush()
                record = TransactionRecord.from_model(transaction)

            logger.info(
                "transaction_updated",
                extra={"reference": record.reference, "fields": sorted(cleaned)},
            )
            return record

    # Delete

    def delete(
        self,
        transaction_id: UUID | str,
        identity: Identity,
    ) -> TransactionRecord:
        """
        Reverse a transaction's balance effect and remove its record.

        Returns:
            Snapshot of the record as it was before deletion.

        Raises:
            RecordNotFoundError: No such transaction (including a second
                delete of the same id).
            NotAuthorizedError: Caller is neither admin nor creator.
            InsufficientBalanceError: Reversal would overdraw an account
                (e.g. the bought currency was already paid out); nothing
                changes.
        """
        tid = _coerce_id(transaction_id)
        with LogContext.bind(actor_id=str(identity.id), transaction_id=str(tid)):
            with self._uow_provider.scope() as uow:
                session = uow.session
                transaction = self._load_for_update(session, tid)
                if not identity.may_delete(transaction.created_by_id):
                    logger.warning(
                        "transaction_delete_denied",
                        extra={"reference": transaction.reference},
                    )
                    raise NotAuthorizedError(str(identity.id), str(tid), "delete")

                record = TransactionRecord.from_model(transaction)
                with LogContext.bind(reference=transaction.reference):
                    self._orchestrator(session).reverse_transaction(transaction)
                session.delete(transaction)
                session.flush()

            logger.info(
                "transaction_deleted",
                extra={
                    "reference": record.reference,
                    "transaction_type": record.transaction_type.value,
                    "amount": record.amount,
                    "currency": record.currency,
                },
            )
            return record

    # Receipts

    def send_receipt(
        self,
        transaction_id: UUID | str,
        email: str | None = None,
    ) -> NotificationOutcome:
        """
        (Re-)send the receipt of a committed transaction.

        Uses ``email`` if given, otherwise the stored customer email.

        Raises:
            RecordNotFoundError: No such transaction.
            InvalidFieldError: Neither an email argument nor a stored email.
        """
        tid = _coerce_id(transaction_id)
        recipient = normalize_email(email)
        with self._uow_provider.scope() as uow:
            transaction = uow.session.get(ExchangeTransaction, tid)
            if transaction is None:
                raise RecordNotFoundError(str(tid))
            record = TransactionRecord.from_model(transaction)

        recipient = recipient or record.customer_email
        if not recipient:
            raise InvalidFieldError(
                "customer_email", "No email address provided or found in transaction"
            )
        return self._notify(record, recipient)

    def _notify(self, record: TransactionRecord, email: str | None) -> NotificationOutcome:
        if not email:
            return NotificationOutcome(delivered=False, message=NO_EMAIL_MESSAGE)
        if self._notifier is None:
            return NotificationOutcome(
                delivered=False,
                message="No receipt notifier configured",
                recipient=email,
            )
        try:
            return self._notifier.notify(record, email)
        except Exception as exc:
            # Committed already; delivery problems are reported, not raised
            logger.error(
                "receipt_delivery_failed",
                exc_info=True,
                extra={"reference": record.reference, "recipient": email},
            )
            return NotificationOutcome(
                delivered=False,
                message=DELIVERY_FAILED_MESSAGE,
                recipient=email,
                error=str(exc),
            )
