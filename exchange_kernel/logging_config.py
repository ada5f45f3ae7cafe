"""
Structured JSON logging for the exchange kernel.

Each record is one JSON line: ``ts``, ``level``, ``logger``, ``message``,
then whichever transaction context is bound (``actor_id``,
``transaction_id``, ``reference``), then the record's ``extra`` fields.
Amounts stay exact: Decimals are written as strings, never floats.

Usage::

    logger = get_logger("services.ledger_orchestrator")

    with LogContext.bind(actor_id=str(identity.id), reference=txn.reference):
        logger.info("ledger_apply_completed", extra={"legs": [...]})
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

LOGGER_NAMESPACE = "exchange_kernel"

# Fields a record can inherit from the code path that logged it
CONTEXT_FIELDS = ("actor_id", "transaction_id", "reference")

_bound: ContextVar[dict[str, str] | None] = ContextVar(
    "exchange_log_context", default=None
)


class LogContext:
    """Transaction context stamped onto every record logged inside ``bind``."""

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_bound.get() or {})

    @staticmethod
    def clear() -> None:
        _bound.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """
        Layer ``fields`` over the current context until the block exits.

        None values are ignored; anything else is stored as ``str``.  Nested
        binds see the outer fields and restore them on the way out.

        Raises:
            TypeError: A field outside CONTEXT_FIELDS.
        """
        unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
        if unknown:
            raise TypeError(f"unknown log context field(s): {', '.join(unknown)}")
        merged = LogContext.get_all()
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        token = _bound.set(merged)
        try:
            yield
        finally:
            _bound.reset(token)


_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    # ExchangeKernelError subclasses carry currency, available, requested...
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for key, value in vars(exc).items():
        if not key.startswith("_"):
            fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


def get_logger(name: str) -> logging.Logger:
    """``get_logger("services.x")`` -> the ``exchange_kernel.services.x`` logger."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler (stderr unless given) to the kernel namespace.

    Only the first call has any effect; the composition root and the engine
    factory may both call it.
    """
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

    namespace = logging.getLogger(LOGGER_NAMESPACE)
    namespace.setLevel(level)
    namespace.propagate = False
    handler = handler or logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter())
    namespace.addHandler(handler)


def reset_logging() -> None:
    """Undo configure_logging so a test session can configure afresh."""
    global _configured
    with _configure_lock:
        _configured = False
    namespace = logging.getLogger(LOGGER_NAMESPACE)
    namespace.handlers.clear()
    namespace.setLevel(logging.WARNING)
