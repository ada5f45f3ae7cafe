"""
Configuration Loader (``exchange_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen dataclasses of
``exchange_config.schema``.  Runtime callers go through
``exchange_config.get_active_config()``; this module is its internals and
test tooling.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required keys (``config_id``,
  ``version``).
* Currency codes are ISO 4217, balances and tolerances non-negative,
  reference bounds positive.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from exchange_config.schema import (
    DatabaseSettings,
    ExchangeConfig,
    LedgerSettings,
    ReceiptSettings,
    ReferenceSettings,
)
from exchange_kernel.db.types import is_valid_currency


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def parse_decimal(value: Any, name: str) -> Decimal:
    """Parse a non-negative decimal; YAML floats go through str()."""
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"{name}: not a number: {value!r}") from None
    if not result.is_finite() or result < 0:
        raise ValueError(f"{name}: must be a non-negative number, got {value!r}")
    return result


def parse_currency(value: Any, name: str) -> str:
    code = str(value).strip().upper()
    if not is_valid_currency(code):
        raise ValueError(f"{name}: invalid ISO 4217 currency code {value!r}")
    return code


def _positive_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{name}: must be a positive integer, got {value!r}")
    return value


def parse_ledger(data: dict[str, Any]) -> LedgerSettings:
    base_currency = parse_currency(data.get("base_currency", "TTD"), "ledger.base_currency")
    raw_accounts = data.get("initial_accounts") or {}
    if not isinstance(raw_accounts, dict):
        raise ValueError("ledger.initial_accounts: must be a mapping of currency -> balance")
    accounts = tuple(
        sorted(
            (
                parse_currency(code, "ledger.initial_accounts"),
                parse_decimal(balance, f"ledger.initial_accounts.{code}"),
            )
            for code, balance in raw_accounts.items()
        )
    )
    return LedgerSettings(
        base_currency=base_currency,
        rate_tolerance=parse_decimal(
            data.get("rate_tolerance", "0.01"), "ledger.rate_tolerance"
        ),
        initial_accounts=accounts,
    )


def parse_reference(data: dict[str, Any]) -> ReferenceSettings:
    prefix = str(data.get("prefix", "TX"))
    if not prefix.isalnum():
        raise ValueError(f"reference.prefix: must be alphanumeric, got {prefix!r}")
    return ReferenceSettings(
        prefix=prefix.upper(),
        suffix_length=_positive_int(data.get("suffix_length", 6), "reference.suffix_length"),
        max_attempts=_positive_int(data.get("max_attempts", 10), "reference.max_attempts"),
    )


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    return DatabaseSettings(
        url=str(data.get("url", defaults.url)),
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=_positive_int(data.get("pool_size", defaults.pool_size), "database.pool_size"),
        max_overflow=int(data.get("max_overflow", defaults.max_overflow)),
        pool_timeout=_positive_int(
            data.get("pool_timeout", defaults.pool_timeout), "database.pool_timeout"
        ),
    )


def parse_receipts(data: dict[str, Any]) -> ReceiptSettings:
    defaults = ReceiptSettings()
    template = str(data.get("subject_template", defaults.subject_template))
    try:
        template.format(reference="TX")
    except (KeyError, IndexError, ValueError) as exc:
        raise ValueError(
            f"receipts.subject_template: only {{reference}} may be used ({exc})"
        ) from None
    return ReceiptSettings(
        enabled=bool(data.get("enabled", defaults.enabled)),
        business_name=str(data.get("business_name", defaults.business_name)),
        sender=str(data.get("sender", defaults.sender)),
        subject_template=template,
    )


def parse_config(data: dict[str, Any]) -> ExchangeConfig:
    """
    Parse a full configuration set.

    Raises:
        KeyError: if ``config_id`` or ``version`` is missing.
        ValueError: if any value is out of range.
    """
    return ExchangeConfig(
        config_id=str(data["config_id"]),
        version=_positive_int(data["version"], "version"),
        ledger=parse_ledger(data.get("ledger") or {}),
        reference=parse_reference(data.get("reference") or {}),
        database=parse_database(data.get("database") or {}),
        receipts=parse_receipts(data.get("receipts") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
