"""
Module: garment_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management
    and the transactional scope used by callers of the services.
Architecture position: Kernel > DB.  Imports db/base.py; create_tables imports
    the model package so that every table is registered on ``Base.metadata``.

Invariants enforced:
    - Services never commit.  ``session_scope`` is where a unit of work is
      committed, or rolled back as a whole when anything inside it raises.
      A goods issue posting therefore either lands completely or not at all.
    - PostgreSQL runs at READ COMMITTED with explicit ``SELECT ... FOR UPDATE``
      on inventory layers and issue headers.
    - In-memory SQLite uses a single shared connection so the database is
      visible to every session.  File-backed SQLite keeps one connection per
      session, so each unit of work commits or rolls back on its own.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from garment_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _is_memory_sqlite(database_url: str) -> bool:
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
) -> Engine:
    """
    Create an engine with the pool suited to ``database_url``.

    In-memory SQLite shares one connection so every session sees the same
    database.  File-backed SQLite keeps SQLAlchemy's default pool, giving
    each session its own connection and its own transaction.
    """
    if _is_memory_sqlite(database_url):
        return create_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": pool_timeout},
        )
    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
) -> Engine:
    """
    Initialize the module-level engine and session factory.

    A second call replaces the previous engine.

    Args:
        database_url: SQLAlchemy URL, e.g. ``postgresql+psycopg2://...``,
            ``sqlite+pysqlite:///erp.db`` or ``sqlite+pysqlite:///:memory:``.
        echo: Log every SQL statement.
        pool_size: Connections kept open (PostgreSQL only).
        max_overflow: Connections allowed beyond pool_size (PostgreSQL only).
        pool_pre_ping: Test pooled connections before use (PostgreSQL only).
        pool_timeout: Seconds to wait for a pooled connection, or for a
            SQLite file lock.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    _engine = build_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "pool": type(_engine.pool).__name__,
            "echo": echo,
        },
    )
    return _engine


def get_engine() -> Engine:
    """Engine created by the last init_engine_from_url() call."""
    if _engine is None:
        raise RuntimeError("No database engine; call init_engine_from_url() before opening sessions")
    return _engine


def get_session() -> Session:
    """Open a session; the caller owns commit and close."""
    return get_session_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """Session factory, for callers that open one session per thread."""
    if _SessionFactory is None:
        raise RuntimeError("No database engine; call init_engine_from_url() before opening sessions")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Run one unit of work, such as posting a goods issue, in one transaction.

    Commits on normal exit.  On exception the whole unit of work is rolled
    back, the rollback is logged and the exception re-raised.

    Usage:
        with session_scope() as session:
            services = ErpServices(session, config)
            services.issues.post_issue(issue_id)
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
    """Create every table registered by ``garment_kernel.models``."""
    from garment_kernel.db.base import Base
    import garment_kernel.models  # noqa: F401  (registers tables)

    Base.metadata.create_all(get_engine())
    logger.info(
        "tables_created",
        extra={"tables": sorted(Base.metadata.tables)},
    )


def drop_tables() -> None:
    """Drop every ERP table (test teardown)."""
    from garment_kernel.db.base import Base
    import garment_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None
    _SessionFactory = None


def _atexit_dispose() -> None:
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)
