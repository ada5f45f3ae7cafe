"""
Module: exchange_kernel.selectors.transaction_selector
Responsibility: Read-only transaction queries -- single lookup, the filtered
    and paginated listing behind the transaction history screen, and the
    per-type/per-currency summary rollup.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only committed rows are visible (the caller's session sees committed
      data only; selectors never flush).
    - Sums are Decimal, rounded to two places; never float.

Failure modes:
    - RecordNotFoundError from get() / get_by_reference().
    - InvalidFieldError for out-of-range paging or an unknown sort column.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.sql import Select

from exchange_kernel.db.types import ZERO, round_money
from exchange_kernel.domain.dtos import (
    Page,
    SummaryRow,
    TransactionRecord,
    TransactionSummary,
)
from exchange_kernel.domain.ledger_effects import TransactionType
from exchange_kernel.exceptions import InvalidFieldError, RecordNotFoundError
from exchange_kernel.models.transaction import ExchangeTransaction
from exchange_kernel.selectors.account_selector import AccountSelector
from exchange_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

SORTABLE_COLUMNS = {
    "created_at": ExchangeTransaction.created_at,
    "amount": ExchangeTransaction.amount,
    "amount_ttd": ExchangeTransaction.amount_ttd,
    "reference": ExchangeTransaction.reference,
    "customer_name": ExchangeTransaction.customer_name,
    "currency": ExchangeTransaction.currency,
    "transaction_type": ExchangeTransaction.transaction_type,
}


def _as_money(value: object) -> Decimal:
    # SUM over Numeric may come back as float or int on some drivers
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return round_money(value)


def _start_of(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _end_of(value: date | datetime) -> datetime:
    # A bare date covers the whole day
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.max, tzinfo=timezone.utc)


def _escape_like(text: str) -> str:
    """Make ``%`` and ``_`` in a search term literal for ILIKE."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class TransactionSelector(BaseSelector[ExchangeTransaction]):
    """
    Selector for transaction history and reporting.

    Non-goals:
        - Does NOT render CSV/PDF exports; callers format the DTOs.
    """

    def get(self, transaction_id: UUID | str) -> TransactionRecord:
        try:
            tid = transaction_id if isinstance(transaction_id, UUID) else UUID(str(transaction_id))
        except ValueError:
            raise InvalidFieldError("transaction_id", "invalid format") from None
        transaction = self.session.get(ExchangeTransaction, tid)
        if transaction is None:
            raise RecordNotFoundError(str(tid))
        return TransactionRecord.from_model(transaction)

    def get_by_reference(self, reference: str) -> TransactionRecord:
        transaction = self.session.execute(
            select(ExchangeTransaction).where(
                ExchangeTransaction.reference == reference.strip().upper()
            )
        ).scalar_one_or_none()
        if transaction is None:
            raise RecordNotFoundError(reference)
        return TransactionRecord.from_model(transaction)

    def _filtered(
        self,
        stmt: Select,
        currency: str | None = None,
        transaction_type: TransactionType | str | None = None,
        date_from: date | datetime | None = None,
        date_to: date | datetime | None = None,
        search: str | None = None,
    ) -> Select:
        if currency:
            stmt = stmt.where(ExchangeTransaction.currency == currency.strip().upper())
        if transaction_type:
            stmt = stmt.where(
                ExchangeTransaction.transaction_type
                == TransactionType.parse(transaction_type)
            )
        if date_from is not None:
            stmt = stmt.where(ExchangeTransaction.created_at >= _start_of(date_from))
        if date_to is not None:
            stmt = stmt.where(ExchangeTransaction.created_at <= _end_of(date_to))
        if search:
            pattern = f"%{_escape_like(search.strip())}%"
            stmt = stmt.where(
                or_(
                    ExchangeTransaction.customer_name.ilike(pattern, escape="\\"),
                    ExchangeTransaction.customer_email.ilike(pattern, escape="\\"),
                    ExchangeTransaction.reference.ilike(pattern, escape="\\"),
                )
            )
        return stmt

    def list_transactions(
        self,
        currency: str | None = None,
        transaction_type: TransactionType | str | None = None,
        date_from: date | datetime | None = None,
        date_to: date | datetime | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> Page:
        """
        Filtered, sorted, paginated transaction listing.

        ``date_to`` given as a date is inclusive of that whole day.  ``search``
        matches customer name, customer email or reference,
        case-insensitively.
        """
        if page < 1:
            raise InvalidFieldError("page", "must be at least 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise InvalidFieldError("limit", f"must be between 1 and {MAX_PAGE_SIZE}")
        column = SORTABLE_COLUMNS.get(sort_by)
        if column is None:
            raise InvalidFieldError("sort_by", f"cannot sort by {sort_by!r}")

        filters = dict(
            currency=currency,
            transaction_type=transaction_type,
            date_from=date_from,
            date_to=date_to,
            search=search,
        )
        total = self.session.execute(
            self._filtered(
                select(func.count()).select_from(ExchangeTransaction), **filters
            )
        ).scalar_one()

        order = column.desc() if descending else column.asc()
        # Tie-break on reference so paging is stable
        stmt = (
            self._filtered(select(ExchangeTransaction), **filters)
            .order_by(order, ExchangeTransaction.reference)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = tuple(
            TransactionRecord.from_model(row)
            for row in self.session.execute(stmt).scalars()
        )
        return Page(items=items, total=total, page=page, limit=limit)

    def summary(
        self,
        date_from: date | datetime | None = None,
        date_to: date | datetime | None = None,
        currency: str | None = None,
    ) -> TransactionSummary:
        """
        Count, amount and base-currency totals per (type, currency), plus
        every account balance.  Rows are ordered by currency, then type.
        """
        stmt = self._filtered(
            select(
                ExchangeTransaction.transaction_type,
                ExchangeTransaction.currency,
                func.count(ExchangeTransaction.id),
                func.sum(ExchangeTransaction.amount),
                func.sum(ExchangeTransaction.amount_ttd),
            ),
            currency=currency,
            date_from=date_from,
            date_to=date_to,
        ).group_by(
            ExchangeTransaction.transaction_type,
            ExchangeTransaction.currency,
        )

        rows = [
            SummaryRow(
                transaction_type=TransactionType(transaction_type),
                currency=row_currency,
                count=count,
                total_amount=_as_money(total_amount),
                total_ttd=_as_money(total_ttd),
            )
            for transaction_type, row_currency, count, total_amount, total_ttd
            in self.session.execute(stmt)
        ]
        rows.sort(key=lambda r: (r.currency, r.transaction_type.value))

        return TransactionSummary(
            rows=tuple(rows),
            accounts=AccountSelector(self.session).list_balances(),
        )
