"""Database layer - engine, base classes, types, and unit of work."""

from exchange_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from exchange_kernel.db.engine import create_tables, get_engine, get_session
from exchange_kernel.db.types import ZERO, round_money, validate_currency
from exchange_kernel.db.unit_of_work import UnitOfWork, UnitOfWorkProvider

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "ZERO",
    "round_money",
    "validate_currency",
    "UnitOfWork",
    "UnitOfWorkProvider",
]
