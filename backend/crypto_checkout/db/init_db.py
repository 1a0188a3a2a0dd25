"""
Database Handle and Schema Initialization

Builds one async engine per backing store URL, chosen once at startup:
SQLite (aiosqlite) for local runs and tests, PostgreSQL (asyncpg) or
MySQL (aiomysql) in deployment. Query code never branches on the engine.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..config import Settings, settings as default_settings
from .models import Base

logger = logging.getLogger(__name__)


def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    """Enable WAL mode and a busy timeout so concurrent writers queue instead of failing."""
    # Transactions are started explicitly in _begin_sqlite_transaction
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_sqlite_transaction(conn) -> None:
    """
    Emit BEGIN at the start of every transaction.

    The sqlite3 driver only opens a transaction before DML, so without this
    the SELECTs of one unit of work would each see their own snapshot.
    """
    conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, pool_size: int = 5, connect_timeout: int = 30) -> AsyncEngine:
    """
    Create the async engine for the configured backing store.

    Args:
        database_url: SQLAlchemy async URL
        pool_size: Connection pool size (server databases only)
        connect_timeout: Seconds to wait for a connection or lock

    Returns:
        AsyncEngine bound to the chosen dialect
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        engine = create_async_engine(
            url,
            echo=False,
            connect_args={
                "timeout": connect_timeout,
                "check_same_thread": False
            },
        )
        event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)
        event.listen(engine.sync_engine, "begin", _begin_sqlite_transaction)
        return engine

    return create_async_engine(
        url,
        echo=False,
        pool_size=pool_size,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600  # Recycle connections after 1 hour
    )


class Database:
    """
    Explicitly constructed store handle.

    Owns the engine and session factory; created at startup, passed to the
    services that need it, and disposed on shutdown.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "Database":
        return cls(build_engine(
            app_settings.database_url,
            pool_size=app_settings.db_pool_size,
            connect_timeout=app_settings.db_connect_timeout_seconds,
        ))

    @property
    def backend_name(self) -> str:
        return self.engine.url.get_backend_name()

    async def create_tables(self) -> None:
        """Create transactions and webhook_events tables if missing."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Database schema ready ({self.backend_name})")

    async def ping(self) -> None:
        """Round-trip a trivial query; raises if the store is unreachable."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database connections released")


@asynccontextmanager
async def open_database(app_settings: Settings) -> AsyncIterator[Database]:
    """
    Scoped acquisition of the database handle.

    Usage:
        async with open_database(settings) as database:
            store = TransactionStore(database.session_factory)
    """
    database = Database.from_settings(app_settings)
    try:
        await database.create_tables()
        yield database
    finally:
        await database.dispose()


async def initialize_database(app_settings: Settings = default_settings) -> None:
    """Create the schema and release the engine."""
    async with open_database(app_settings):
        pass


def main():
    """CLI entry point for initializing database."""
    logging.basicConfig(level=logging.INFO)
    asyncio.run(initialize_database())


if __name__ == "__main__":
    main()
