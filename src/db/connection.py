"""
Async database connection management using SQLAlchemy 2.0.

Supports:
- PostgreSQL via asyncpg (production)
- SQLite via aiosqlite (local development and tests)

Note: Uses per-event-loop engine management so the same manager works from
the main server loop and from any loop a test client or worker thread runs.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

from dotenv import load_dotenv
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from src.utils.env_utils import parse_bool_env, parse_int_env, parse_str_env

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./impecks.db"


class DatabaseUnavailableError(RuntimeError):
    """Raised when a session is requested but no engine can be provided."""


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseConfig:
    """Database configuration from environment variables."""

    def __init__(self):
        # Database enabled flag - set to false to skip all DB operations
        self.enabled = parse_bool_env("DATABASE_ENABLED", True)

        self.database_url = parse_str_env("DATABASE_URL", DEFAULT_DATABASE_URL)

        # Connection pool settings (ignored for SQLite)
        self.pool_size = parse_int_env("DB_POOL_SIZE", 5)
        self.max_overflow = parse_int_env("DB_MAX_OVERFLOW", 10)
        self.pool_timeout = parse_int_env("DB_POOL_TIMEOUT", 30)
        self.pool_recycle = parse_int_env("DB_POOL_RECYCLE", 1800)  # 30 min

        # Create schema at startup (no migrations in this service)
        self.create_tables = parse_bool_env("DB_CREATE_TABLES", True)

        # Debug mode
        self.echo_sql = parse_bool_env("DB_ECHO", False)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


class DatabaseManager:
    """
    Manages async database connections.

    Implements singleton pattern with per-event-loop resource management.
    """

    _instance: Optional["DatabaseManager"] = None
    _initialized: bool = False
    _shutdown: bool = False  # Prevents new connections after close_all()

    # Per-loop resources: maps loop_id -> resource
    _engines: Dict[int, AsyncEngine] = {}
    _session_factories: Dict[int, async_sessionmaker] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.config = DatabaseConfig()
        self._initialized = True

    def _get_loop_id(self) -> int:
        """Return the id of the running event loop, or 0 if none is running."""
        try:
            loop = asyncio.get_running_loop()
            return id(loop)
        except RuntimeError:
            return 0

    async def _async_setup_engine_for_loop(self, loop_id: int):
        """Initialize engine and session factory for the current event loop."""
        if self._shutdown:
            logger.debug(f"Skipping engine setup for loop {loop_id} - shutdown in progress")
            return

        if not self.config.enabled:
            logger.debug(f"Skipping engine setup for loop {loop_id} - database disabled")
            return

        if loop_id in self._engines:
            return

        engine = self._create_direct_engine()

        self._engines[loop_id] = engine
        self._session_factories[loop_id] = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        logger.info(
            f"Database engine initialized for loop {loop_id}: "
            f"dialect={engine.dialect.name}"
        )

    def _create_direct_engine(self) -> AsyncEngine:
        """Create engine from DATABASE_URL."""
        url = make_url(self.config.database_url)
        logger.info(f"Creating database connection: {url.render_as_string(hide_password=True)}")

        if self.config.is_sqlite:
            # aiosqlite connections are bound to the loop that opened them
            engine = create_async_engine(url, poolclass=NullPool, echo=self.config.echo_sql)
            event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
            return engine

        return create_async_engine(
            url,
            poolclass=AsyncAdaptedQueuePool,
            pool_pre_ping=True,
            pool_size=self.config.pool_size,
            max_overflow=self.config.max_overflow,
            pool_timeout=self.config.pool_timeout,
            pool_recycle=self.config.pool_recycle,
            echo=self.config.echo_sql,
        )

    async def get_engine_async(self) -> Optional[AsyncEngine]:
        """Get the async engine, initializing for the current event loop if necessary."""
        if not self.config.enabled:
            return None
        loop_id = self._get_loop_id()
        if loop_id not in self._engines:
            await self._async_setup_engine_for_loop(loop_id)
        return self._engines.get(loop_id)

    async def test_connection(self, timeout: float = 15.0) -> bool:
        """
        Test database connectivity with timeout.

        Args:
            timeout: Maximum time to wait for connection test (seconds)

        Returns:
            True if connection successful, False otherwise
        """
        from sqlalchemy import text

        if not self.config.enabled:
            logger.info("Database disabled - skipping connection test")
            return True

        engine = await self.get_engine_async()
        if not engine:
            logger.warning("No database engine available")
            return False

        try:
            async with engine.connect() as conn:
                await asyncio.wait_for(conn.execute(text("SELECT 1")), timeout=timeout)
            logger.info("Database connection test successful")
            return True
        except asyncio.TimeoutError:
            logger.error(f"Database connection test timed out after {timeout}s")
            return False
        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get an async session with automatic commit/rollback.

        Raises DatabaseUnavailableError if the database is disabled or
        shutting down.

        Usage:
            async with db.session() as session:
                result = await session.execute(...)
        """
        if not self.config.enabled:
            raise DatabaseUnavailableError("Database is disabled")

        loop_id = self._get_loop_id()
        if loop_id not in self._session_factories:
            await self._async_setup_engine_for_loop(loop_id)

        if loop_id not in self._session_factories:
            raise DatabaseUnavailableError("Database is shutting down")

        session = self._session_factories[loop_id]()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_tables(self):
        """Create all tables that do not exist yet."""
        from .models import Base

        engine = await self.get_engine_async()
        if engine is None:
            return
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def close_all(self):
        """Dispose every engine and refuse new connections."""
        self._shutdown = True

        # Dispose current loop's engine (we can only await in current loop)
        current_loop_id = self._get_loop_id()
        if current_loop_id in self._engines:
            try:
                await self._engines[current_loop_id].dispose()
            except Exception as e:
                logger.debug(f"Error disposing engine: {e}")

        self._engines.clear()
        self._session_factories.clear()

        logger.info("All database connections closed")

    def reset(self):
        """Forget all engines and re-read configuration (tests and reloads)."""
        self._engines.clear()
        self._session_factories.clear()
        self._shutdown = False
        self.config = DatabaseConfig()


# Global database manager instance
db = DatabaseManager()

