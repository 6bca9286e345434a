"""
Module: stock_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities for the persistence adapter.
Architecture position: Kernel > DB.  May import from db/base.py only
    (create_tables/drop_tables import the sequence counter and adjustment
    ORM models so that their tables are registered on Base.metadata).

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().

Audit relevance:
    session_scope() gives callers atomic commit-or-rollback around a
    lifecycle transition and its audit rows.
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stock_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def init_engine_from_url(database_url: str, echo: bool = False, **engine_kwargs) -> Engine:
    """
    Initialize the SQLAlchemy engine.

    In-memory SQLite URLs get a StaticPool so every session sees the same
    database; any other URL uses SQLAlchemy's default pool with pre-ping.

    Args:
        database_url: SQLAlchemy URL, e.g. ``postgresql+psycopg2://...`` or
            ``sqlite:///:memory:``.
        echo: If True, log all SQL statements.
        **engine_kwargs: Passed through to ``create_engine``.
    """
    global _engine, _SessionFactory

    if database_url.startswith("sqlite") and ":memory:" in database_url:
        engine_kwargs.setdefault("poolclass", StaticPool)
        engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        engine_kwargs.setdefault("pool_pre_ping", True)

    _engine = create_engine(database_url, echo=echo, **engine_kwargs)
    if _engine.dialect.name == "sqlite":
        _enable_sqlite_transactions(_engine)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def _enable_sqlite_transactions(engine: Engine) -> None:
    """
    Let SQLAlchemy own BEGIN on SQLite.

    pysqlite defers BEGIN until the first DML statement, which breaks
    SAVEPOINT and SELECT isolation.  Foreign keys are off by default.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Commits on normal exit; rolls back and re-raises on exception.

    Usage:
        with session_scope() as session:
            StockAdjustmentService(session).submit(adjustment_id, actor_id)
    """
    session = get_session()
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


def create_tables() -> None:
    """Create every adapter table registered on Base.metadata."""
    from stock_kernel.db.base import Base
    import stock_kernel.services.sequence_service  # noqa: F401
    import stock_modules.adjustment.orm  # noqa: F401

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    from stock_kernel.db.base import Base
    import stock_kernel.services.sequence_service  # noqa: F401
    import stock_modules.adjustment.orm  # noqa: F401

    Base.metadata.drop_all(get_engine())
    logger.info("tables_dropped")


def reset_engine() -> None:
    """Dispose the engine and forget the session factory. FOR TESTING ONLY."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
