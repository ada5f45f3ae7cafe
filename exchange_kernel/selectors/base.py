"""
Module: exchange_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.  Selectors
    are the reporting side of the kernel: lookups, listings and rollups over
    committed data, with no mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain DTOs.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never call session.add(), delete(),
      flush() or commit().
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
    - Session ownership: the caller owns the session and its transaction
      scope.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from exchange_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
