"""
Async engine, session factory and declarative base.

SQL echo follows settings.sqlalchemy_echo (never on in production) and the
connection string is never logged. Statements slower than
SLOW_QUERY_THRESHOLD_MS are logged with their parameters counted, not shown.
"""

import logging
import time

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from bizdocs.config import settings

logger = logging.getLogger(__name__)

SLOW_QUERY_THRESHOLD_MS = 500

# Server databases only; SQLite picks its own pool
SERVER_POOL_OPTIONS = {
    "pool_size": 20,
    "max_overflow": 10,
    "pool_recycle": 3600,
    "pool_pre_ping": True,
}


def _pool_options(url: str) -> dict:
    return {} if url.startswith("sqlite") else SERVER_POOL_OPTIONS


def watch_slow_queries(async_engine, threshold_ms: float = SLOW_QUERY_THRESHOLD_MS) -> None:
    sync_engine = async_engine.sync_engine

    @event.listens_for(sync_engine, "before_cursor_execute")
    def _start_timer(conn, cursor, statement, parameters, context, executemany):
        conn.info["query_started"] = time.monotonic()

    @event.listens_for(sync_engine, "after_cursor_execute")
    def _report_slow(conn, cursor, statement, parameters, context, executemany):
        started = conn.info.pop("query_started", None)
        if started is None:
            return
        elapsed_ms = (time.monotonic() - started) * 1000
        if elapsed_ms >= threshold_ms:
            logger.warning(
                "Slow query (%.0fms, %d params): %.200s",
                elapsed_ms,
                len(parameters) if parameters else 0,
                statement,
            )


def enable_sqlite_savepoints(async_engine) -> None:
    """Let SQLAlchemy own BEGIN on pysqlite/aiosqlite so SAVEPOINT works.

    Document inserts that retry on a duplicate number run inside a nested
    transaction; the stock driver's implicit transaction handling breaks it.
    """

    @event.listens_for(async_engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def enforce_sqlite_foreign_keys(async_engine) -> None:
    """SQLite ignores REFERENCES unless each connection turns the check on."""

    @event.listens_for(async_engine.sync_engine, "connect")
    def _foreign_keys_on(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.sqlalchemy_echo,
    **_pool_options(settings.DATABASE_URL),
)
watch_slow_queries(engine)
if engine.dialect.name == "sqlite":
    enable_sqlite_savepoints(engine)
    enforce_sqlite_foreign_keys(engine)

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """Request-scoped session. Routes commit; this only closes."""
    async with async_session_maker() as session:
        yield session


async def init_db():
    """Create missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
