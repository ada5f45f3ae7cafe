"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for every
    write-side service.  Services receive the SQLAlchemy ``Session`` of the
    caller's unit of work and use ``session.flush()`` -- never
    ``session.commit()``.

Invariants enforced:
    Transaction boundaries: services flush within the caller's unit of work
    and never commit or roll back themselves.  UnitOfWorkProvider owns
    commit/abort, which is what lets a two-leg Buy/Sell and its record
    insert succeed or fail together.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only reporting queries -- those belong in
          ``exchange_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        """
        Args:
            session: Session of the active unit of work.
        """
        self.session = session
