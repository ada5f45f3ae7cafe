"""
Transaction receipts.

Responsibility:
    Renders the plain-text receipt for a committed transaction and hands it
    to a NotificationSink (SMTP relay, message queue, in-memory outbox).

Architecture position:
    Services.  ReceiptNotifier implements the kernel's TransactionNotifier
    protocol; the lifecycle controller only calls it after commit.

Failure modes:
    Sink exceptions propagate out of ``notify``.  The lifecycle controller
    turns them into a non-delivered NotificationOutcome; committed state is
    never affected.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from exchange_config.schema import ReceiptSettings
from exchange_kernel.domain.dtos import TransactionRecord
from exchange_kernel.domain.ledger_effects import TransactionType
from exchange_kernel.domain.notifications import NotificationOutcome
from exchange_kernel.logging_config import get_logger

logger = get_logger("services.receipts")

NO_RECIPIENT_MESSAGE = "Email not sent (no email provided)"
DELIVERED_MESSAGE = "Receipt sent"


@dataclass(frozen=True)
class ReceiptMessage:
    recipient: str
    sender: str
    subject: str
    body: str
    reference: str


class NotificationSink(Protocol):
    """Delivery transport.  Returns a transport message id, if any."""

    def deliver(self, message: ReceiptMessage) -> str | None: ...


class OutboxSink:
    """
    Thread-safe in-memory sink.

    Used for development desks and tests; production wiring passes a real
    transport to ``build_exchange_desk``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._messages: list[ReceiptMessage] = []

    def deliver(self, message: ReceiptMessage) -> str | None:
        with self._lock:
            self._messages.append(message)
            return f"outbox-{len(self._messages)}"

    @property
    def messages(self) -> list[ReceiptMessage]:
        with self._lock:
            return list(self._messages)


def _format_money(currency: str, amount: Decimal) -> str:
    return f"{currency} {amount:,.2f}"


def render_receipt(
    record: TransactionRecord,
    business_name: str,
    base_currency: str = "TTD",
) -> str:
    """Plain-text receipt body for ``record``."""
    lines = [
        f"Dear {record.customer_name},",
        "",
        f"Thank you for your transaction with {business_name}. "
        "Here are your transaction details:",
        "",
        f"Transaction ID: {record.reference}",
    ]
    if record.created_at is not None:
        lines.append(f"Date: {record.created_at:%Y-%m-%d %H:%M}")
    lines += [
        f"Transaction Type: {record.transaction_type.value}",
        f"Amount: {_format_money(record.currency, record.amount)}",
    ]
    if record.transaction_type in (TransactionType.BUY, TransactionType.SELL):
        lines.append(
            f"Amount ({base_currency}): "
            f"{_format_money(base_currency, record.amount_ttd)}"
        )
        if record.exchange_rate:
            lines.append(f"Exchange Rate: {record.exchange_rate.normalize():f}")
    if record.notes:
        lines.append(f"Notes: {record.notes}")
    lines += [
        "",
        "If you have any questions about this transaction, please contact us.",
        "",
        "Regards,",
        business_name,
    ]
    return "\n".join(lines) + "\n"


class ReceiptNotifier:
    """Builds receipt messages and delivers them through a sink."""

    def __init__(
        self,
        sink: NotificationSink,
        settings: ReceiptSettings | None = None,
        base_currency: str = "TTD",
    ):
        self.sink = sink
        self.settings = settings or ReceiptSettings()
        self.base_currency = base_currency

    def build_message(self, record: TransactionRecord, recipient: str) -> ReceiptMessage:
        return ReceiptMessage(
            recipient=recipient,
            sender=self.settings.sender,
            subject=self.settings.subject_template.format(reference=record.reference),
            body=render_receipt(record, self.settings.business_name, self.base_currency),
            reference=record.reference,
        )

    def notify(
        self,
        record: TransactionRecord,
        email: str | None = None,
    ) -> NotificationOutcome:
        recipient = email or record.customer_email
        if not recipient:
            return NotificationOutcome(delivered=False, message=NO_RECIPIENT_MESSAGE)

        message_id = self.sink.deliver(self.build_message(record, recipient))
        logger.info(
            "receipt_delivered",
            extra={
                "reference": record.reference,
                "recipient": recipient,
                "message_id": message_id,
            },
        )
        return NotificationOutcome(
            delivered=True,
            message=DELIVERED_MESSAGE,
            recipient=recipient,
        )
