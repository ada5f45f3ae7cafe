"""
Module: exchange_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and schema management.  Single point of database connection
    configuration for the whole system.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from services/, selectors/, or domain/ (create_tables imports
    models/ lazily so Base.metadata is populated).

Invariants enforced:
    - PostgreSQL sessions run at READ COMMITTED; account rows are locked with
      SELECT ... FOR UPDATE by the Balance Mutator to prevent lost updates.
    - SQLite has no row locks, so every transaction is opened with
      ``BEGIN IMMEDIATE``, taking the database write lock up front.  This
      serializes concurrent units of work and makes SAVEPOINTs work under
      pysqlite.
    - Connection pooling via QueuePool with pre-ping for PostgreSQL.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory called before
      init_engine_from_url().
    - OperationalError ("database is locked") when the SQLite busy timeout
      expires; translated to ConcurrencyConflictError by the unit of work.
"""

import atexit

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from exchange_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

# Module-level engine and session factory
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    Postconditions: Module-level _engine and _SessionFactory are initialized.
        All subsequent get_engine/get_session calls use this engine.

    Args:
        database_url: PostgreSQL or SQLite connection URL.
        echo: If True, log all SQL statements.
        pool_size: Number of connections to keep in the pool (PostgreSQL).
        max_overflow: Max connections beyond pool_size (PostgreSQL).
        pool_pre_ping: If True, test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        _engine = create_engine(
            url,
            echo=echo,
            connect_args={
                "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
                "check_same_thread": False,
            },
        )
        _install_sqlite_transaction_hooks(_engine)
    else:
        _engine = create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "echo": echo,
        },
    )

    return _engine


def _install_sqlite_transaction_hooks(engine: Engine) -> None:
    """Take over pysqlite's implicit BEGIN handling."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Disable pysqlite's own BEGIN emission; SQLAlchemy drives it below.
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """
    Get a new session instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Useful for multi-threaded scenarios where each thread needs its own session.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def create_tables() -> None:
    """
    Create all tables defined in the models.

    Raises:
        RuntimeError: If engine is not initialized.
    """
    from exchange_kernel.db.base import Base
    import exchange_kernel.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    """
    Drop all tables. Use with caution - primarily for testing.
    """
    from exchange_kernel.db.base import Base
    import exchange_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """
    Reset the engine and session factory.

    Useful for test cleanup.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    """Dispose the engine on process exit to release all pooled connections."""
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)
