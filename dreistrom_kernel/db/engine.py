"""
Module: dreistrom_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management
    and transactional scope utilities. Single point of database connection
    configuration.
Architecture position: Kernel > DB. May import from db/base.py. MUST NOT
    import from services/, selectors/ or outer layers (create_tables imports
    models to populate metadata).

Backends:
    - PostgreSQL (production): READ COMMITTED with explicit row-level locking
      (``SELECT ... FOR UPDATE``) on the invoice sequence counter. The bounded
      lock wait is applied per transaction with ``SET LOCAL lock_timeout``.
    - SQLite (local runs and tests): pysqlite's own transaction handling is
      switched off and every transaction starts with ``BEGIN IMMEDIATE``, so
      writers serialize at database level. The bounded wait is the driver's
      busy timeout.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory are called
      before init_engine_from_url().

Audit relevance:
    session_scope() provides atomic commit-or-rollback. The invoice row and
    its sequence increment are committed or discarded together.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from dreistrom_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

DEFAULT_LOCK_TIMEOUT_MS = 5000

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_locking(engine: Engine) -> None:
    """Make every SQLite transaction take the write lock up front."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_for_url(
    database_url: str,
    lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Build an engine for ``database_url`` without touching module state.

    Tests use this to open a second engine with a different lock timeout
    against the same database.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={
                "check_same_thread": False,
                "timeout": lock_timeout_ms / 1000,
            },
        )
        _install_sqlite_locking(engine)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )
    return engine


def init_engine_from_url(
    database_url: str,
    lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
    echo: bool = False,
    **pool_options: Any,
) -> Engine:
    """
    Initialize the module-level engine and session factory.

    A second call overwrites the first.
    """
    global _engine, _SessionFactory

    _engine = create_engine_for_url(
        database_url, lock_timeout_ms=lock_timeout_ms, echo=echo, **pool_options
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "lock_timeout_ms": lock_timeout_ms,
            "echo": echo,
        },
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Each thread or request needs its own session.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Commits on normal exit. On exception the session is rolled back and the
    exception re-raised.

    Usage:
        with session_scope() as session:
            session.add(entity)
    """
    session = factory() if factory is not None else get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """Create all tables defined by the kernel models."""
    from dreistrom_kernel.db.base import Base
    import dreistrom_kernel.models  # noqa: F401  (populates Base.metadata)

    Base.metadata.create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from dreistrom_kernel.db.base import Base
    import dreistrom_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory (test cleanup)."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose() -> None:
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)


def is_postgres(engine: Engine | None = None) -> bool:
    target = engine if engine is not None else _engine
    if target is None:
        return False
    return target.dialect.name == "postgresql"
