"""
exchange_config -- single public entrypoint for desk configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``ExchangeConfig``.

Architecture position:
    Configuration.  Sits above ``exchange_kernel`` and below
    ``exchange_services``.  The kernel MUST NEVER import from
    ``exchange_config``; the composition root translates config values into
    kernel constructor arguments.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``KeyError`` / ``ValueError`` -- missing or out-of-range values.

Audit relevance:
    Every successful call emits a ``config_loaded`` log entry with the
    config_id, version and SHA-256 checksum.
"""

from __future__ import annotations

import dataclasses
from pathlib import Path

from exchange_config.loader import load_yaml_file, parse_config
from exchange_config.schema import (
    DatabaseSettings,
    ExchangeConfig,
    LedgerSettings,
    ReceiptSettings,
    ReferenceSettings,
)
from exchange_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    path: Path | str | None = None,
    database_url: str | None = None,
) -> ExchangeConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: YAML configuration file.  Defaults to
            ``exchange_config/sets/default.yaml``.
        database_url: Overrides ``database.url`` from the file (deployments
            and tests point the same set at a different database).

    Returns:
        ExchangeConfig -- frozen, validated.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(config_path))

    if database_url is not None:
        config = dataclasses.replace(
            config,
            database=dataclasses.replace(config.database, url=database_url),
        )

    logger.info(
        "config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "base_currency": config.ledger.base_currency,
            "account_count": len(config.ledger.initial_accounts),
        },
    )
    return config


__all__ = [
    "DatabaseSettings",
    "ExchangeConfig",
    "LedgerSettings",
    "ReceiptSettings",
    "ReferenceSettings",
    "get_active_config",
]
