"""
Module: exchange_kernel.db.unit_of_work
Responsibility: The begin/commit/abort boundary every balance mutation runs
    inside.  A UnitOfWork wraps one SQLAlchemy Session and its database
    transaction; UnitOfWorkProvider hands them out and owns their lifecycle.
Architecture position: Kernel > DB.  Services receive ``uow.session`` and only
    ever flush; the provider is the single place that commits or rolls back.

Invariants enforced:
    - All-or-nothing: either every flushed change in the unit commits, or the
      whole unit is rolled back.
    - Guaranteed cleanup: ``scope()`` aborts on every failing exit path,
      including BaseException subclasses, before the error reaches the caller.
    - abort() is idempotent; commit() on a finished unit is an error.

Failure modes:
    - ConcurrencyConflictError when the database reports a lock timeout,
      deadlock, or serialization failure (translated from OperationalError).
    - UnitOfWorkError when commit() is called on a unit that is no longer
      active.
"""

from contextlib import contextmanager
from enum import Enum
from typing import Generator

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from exchange_kernel.db.engine import get_session_factory
from exchange_kernel.exceptions import ConcurrencyConflictError, UnitOfWorkError
from exchange_kernel.logging_config import get_logger

logger = get_logger("db.unit_of_work")

# PostgreSQL SQLSTATEs: serialization_failure, deadlock_detected, lock_not_available
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
_SQLITE_CONFLICT_MARKERS = ("database is locked", "database table is locked")


class UnitOfWorkState(str, Enum):
    """Lifecycle of a unit of work: ACTIVE -> COMMITTED | ABORTED."""

    ACTIVE = "active"
    COMMITTED = "committed"
    ABORTED = "aborted"


class UnitOfWork:
    """
    One transactional scope.

    Contract:
        Holds the Session all reads and writes of one lifecycle operation go
        through.  Services flush into it; only the provider ends it.
    """

    def __init__(self, session: Session):
        self.session = session
        self.state = UnitOfWorkState.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.state == UnitOfWorkState.ACTIVE

    def __repr__(self) -> str:
        return f"<UnitOfWork {self.state.value}>"


def is_concurrency_conflict(exc: BaseException) -> bool:
    """Return True if a driver error is a lock/serialization conflict."""
    if isinstance(exc, DBAPIError):
        pgcode = getattr(exc.orig, "pgcode", None)
        if pgcode in _CONFLICT_SQLSTATES:
            return True
    if isinstance(exc, OperationalError):
        message = str(exc.orig).lower()
        return any(marker in message for marker in _SQLITE_CONFLICT_MARKERS)
    return False


class UnitOfWorkProvider:
    """
    Hands out units of work and commits or aborts them.

    Usage:
        provider = UnitOfWorkProvider()
        with provider.scope() as uow:
            mutator = BalanceMutator(uow.session)
            mutator.apply("USD", Decimal("10.00"), Direction.CREDIT)
        # committed here, or aborted and re-raised
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self._session_factory = session_factory or get_session_factory()

    def begin(self) -> UnitOfWork:
        """Open a new session and start its transaction."""
        session = self._session_factory()
        try:
            session.begin()
        except DBAPIError as exc:
            session.close()
            if is_concurrency_conflict(exc):
                raise ConcurrencyConflictError(str(exc.orig)) from exc
            raise
        logger.debug("unit_of_work_started")
        return UnitOfWork(session)

    def commit(self, uow: UnitOfWork) -> None:
        """
        Commit and close the unit.

        Raises:
            UnitOfWorkError: If the unit is not active.
            ConcurrencyConflictError: If the database rejects the commit
                with a lock/serialization conflict (the unit is aborted).
        """
        if not uow.is_active:
            raise UnitOfWorkError(uow.state.value, "commit")
        try:
            uow.session.commit()
        except DBAPIError as exc:
            self.abort(uow)
            if is_concurrency_conflict(exc):
                raise ConcurrencyConflictError(str(exc.orig)) from exc
            raise
        uow.state = UnitOfWorkState.COMMITTED
        uow.session.close()
        logger.debug("unit_of_work_committed")

    def abort(self, uow: UnitOfWork) -> None:
        """Roll back and close the unit.  No-op if already finished."""
        if not uow.is_active:
            return
        uow.state = UnitOfWorkState.ABORTED
        try:
            uow.session.rollback()
        finally:
            uow.session.close()
        logger.info("unit_of_work_aborted")

    @contextmanager
    def scope(self) -> Generator[UnitOfWork, None, None]:
        """
        Run a block inside one unit of work.

        Commits on normal exit.  On any exception the unit is aborted first,
        driver lock conflicts are re-raised as ConcurrencyConflictError, and
        everything else propagates unchanged.
        """
        uow = self.begin()
        try:
            yield uow
        except DBAPIError as exc:
            self.abort(uow)
            if is_concurrency_conflict(exc):
                raise ConcurrencyConflictError(str(exc.orig)) from exc
            raise
        except BaseException:
            self.abort(uow)
            raise
        self.commit(uow)
