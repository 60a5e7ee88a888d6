"""
Module: books_kernel.db.engine
Responsibility: SQLAlchemy engine construction and session factories for
    the SQL storage backend.
Architecture position: Kernel > DB.  May import from db/base.py and
    logging_config.  Model imports happen inside create_tables() only.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED with explicit row locks
      (``SELECT ... FOR UPDATE``) for every read-modify-write of a balance
      or a stock level.
    - SQLite opens every transaction with ``BEGIN IMMEDIATE`` so that two
      writers serialize on the database lock instead of both reading a
      stale level and failing on upgrade.  SQLite ignores FOR UPDATE.
    - Connection pooling via QueuePool with pre-ping for PostgreSQL.

Failure modes:
    - OperationalError (``database is locked``) when a SQLite writer waits
      longer than ``sqlite_timeout`` seconds; translated to
      ConcurrencyConflictError by the storage layer.
    - Connection pool exhaustion if pool_size + max_overflow is exceeded.

Unlike a process-wide singleton, each StorageBackend owns its engine, so a
test can run several isolated databases side by side.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from books_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def is_sqlite_url(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def _install_sqlite_begin_immediate(engine: Engine) -> None:
    """Take pysqlite's transaction handling over and emit BEGIN IMMEDIATE."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_timeout: float = 30.0,
) -> Engine:
    """
    Build an engine for a PostgreSQL or SQLite database URL.

    Args:
        database_url: ``postgresql+psycopg2://...``, ``sqlite:///path`` or
            ``sqlite://`` (private in-process database).
        echo: If True, log all SQL statements.
        pool_size: PostgreSQL connections kept in the pool.
        max_overflow: PostgreSQL connections allowed beyond pool_size.
        pool_pre_ping: Test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.
        sqlite_timeout: Seconds a SQLite writer waits for the database lock.

    Returns:
        SQLAlchemy Engine instance.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        in_process = url.database in (None, "", ":memory:")
        kwargs = {"connect_args": {"timeout": sqlite_timeout, "check_same_thread": False}}
        if in_process:
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)
        _install_sqlite_begin_immediate(engine)
        logger.info(
            "engine_initialized",
            extra={"dialect": "sqlite", "in_process": in_process, "echo": echo},
        )
        return engine

    engine = create_engine(
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
    logger.info(
        "engine_initialized",
        extra={
            "dialect": url.get_backend_name(),
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "echo": echo,
        },
    )
    return engine


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


def create_tables(engine: Engine) -> None:
    """
    Create every table known to the model registry.

    All model modules are imported here so that Base.metadata is complete
    even when the caller imported none of them.
    """
    from books_kernel.db.base import Base
    from books_kernel.models import import_all_models

    import_all_models()
    Base.metadata.create_all(engine)
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables(engine: Engine) -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from books_kernel.db.base import Base

    Base.metadata.drop_all(engine)
