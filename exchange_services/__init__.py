"""
exchange_services -- composition root and post-commit side effects.

Responsibility:
    Wires configuration into the kernel (``bootstrap``) and renders and
    delivers transaction receipts (``receipts``).

Architecture position:
    Services.  May import from ``exchange_kernel`` and ``exchange_config``.
    ``exchange_kernel`` must never import from this package.
"""

from exchange_services.bootstrap import ExchangeDesk, build_exchange_desk
from exchange_services.receipts import (
    NotificationSink,
    OutboxSink,
    ReceiptMessage,
    ReceiptNotifier,
    render_receipt,
)

__all__ = [
    "ExchangeDesk",
    "NotificationSink",
    "OutboxSink",
    "ReceiptMessage",
    "ReceiptNotifier",
    "build_exchange_desk",
    "render_receipt",
]
