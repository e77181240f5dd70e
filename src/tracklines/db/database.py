"""Database configuration and setup."""

import time
from pathlib import Path
from typing import Optional

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ..utils.logging_config import get_logger

logger = get_logger('database')

TRACKER_TABLES = (
    "tracker_entry_line_duration",
    "tracker_entry_line",
    "tracker_entry",
)


class Base(DeclarativeBase):
    """Base class for models."""

    pass


def _is_sqlite_url(url: str) -> bool:
    """Check if database URL is for SQLite."""
    return url.startswith("sqlite")


def _ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    path = url.split(":///", 1)[1].split("?", 1)[0] if ":///" in url else ""
    if path and path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)


def _setup_sqlite_pragma(dbapi_connection, connection_record):
    """Set SQLite pragmas for better concurrency."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA busy_timeout=5000")  # 5 second timeout for concurrent access
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _setup_query_logging(engine: Engine, enable_query_logging: bool = False):
    """Set up query performance logging if enabled."""
    if not enable_query_logging:
        return

    @event.listens_for(engine, "before_cursor_execute")
    def receive_before_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ):
        context._query_start_time = time.time()

    @event.listens_for(engine, "after_cursor_execute")
    def receive_after_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ):
        total = time.time() - context._query_start_time

        # Log slow queries (>100ms) as warnings, others as debug
        if total > 0.1:
            logger.warning(
                f"Slow query ({total:.3f}s): {statement[:200]}{'...' if len(statement) > 200 else ''}"
            )
        else:
            logger.debug(
                f"Query ({total:.3f}s): {statement[:100]}{'...' if len(statement) > 100 else ''}"
            )


def create_database_engine(
    database_url: str, echo: bool = False, enable_query_logging: bool = False
) -> AsyncEngine:
    """Create the async engine (the shared connection pool)."""
    if _is_sqlite_url(database_url):
        _ensure_sqlite_directory(database_url)
        engine = create_async_engine(database_url, echo=echo)
        # Pragmas are set on the underlying DBAPI connection
        event.listen(engine.sync_engine, "connect", _setup_sqlite_pragma)
    else:
        engine = create_async_engine(database_url, echo=echo, pool_pre_ping=True)

    _setup_query_logging(engine.sync_engine, enable_query_logging)

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory whose objects stay usable after commit."""
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def init_database(engine: AsyncEngine) -> None:
    """Create any missing tables."""
    # Models must be imported so their tables are registered on Base.metadata
    from . import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema is ready")


async def truncate_tables(engine: AsyncEngine, reset_sequences: bool = True) -> None:
    """Delete every tracker row. Children first because of foreign keys."""
    logger.info("Truncating tables...")
    async with engine.begin() as conn:
        for table in TRACKER_TABLES:
            await conn.execute(text(f"DELETE FROM {table}"))

        if reset_sequences and engine.dialect.name == "sqlite":
            has_sequence = await conn.execute(
                text("SELECT name FROM sqlite_master WHERE name = 'sqlite_sequence'")
            )
            if has_sequence.first() is not None:
                await conn.execute(
                    text(
                        "DELETE FROM sqlite_sequence WHERE name IN "
                        "('tracker_entry', 'tracker_entry_line', 'tracker_entry_line_duration')"
                    )
                )
    logger.info("Tables truncated successfully")


async def check_connection(engine: AsyncEngine) -> Optional[str]:
    """Return None if the database answers, otherwise the error text."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        return str(e)
    return None
