"""SQL Server connection pool manager."""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from .config import DatabaseConfig
from .constants import APPLICATION_NAME, POOL_RECYCLE_SECONDS
from .error_handling import ConnectionError
from .utils import sanitize_for_logging

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Everything a statement batch produced, in server order."""
    recordsets: List[List[Dict[str, Any]]] = field(default_factory=list)
    rows_affected: List[int] = field(default_factory=list)


def build_connection_url(config: DatabaseConfig) -> URL:
    """Translate the environment configuration into an ``mssql+aioodbc`` URL."""
    query = {
        "driver": config.driver,
        "Encrypt": "yes" if config.encrypt else "no",
        "TrustServerCertificate": "yes" if config.trust_server_certificate else "no",
        "APP": APPLICATION_NAME,
    }

    username = None
    password = None
    if config.odbc_authentication:
        query["Authentication"] = config.odbc_authentication
        username = config.login_name
        password = config.password
    elif not config.uses_integrated_auth:
        username = config.login_name
        password = config.password
    # With no UID the pyodbc connector emits Trusted_Connection=Yes

    return URL.create(
        "mssql+aioodbc",
        username=username,
        password=password,
        host=config.server,
        port=config.port,
        database=config.database,
        query=query,
    )


class DatabaseManager:
    """Owns the single process-wide connection pool.

    Tool code never creates or closes connections itself; every call checks
    out a pooled connection for the duration of one round trip.
    """

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None

    async def connect(self, config: DatabaseConfig) -> None:
        """Create the pool and verify it with a trivial query.

        Raises:
            ConnectionError: if the server cannot be reached or login fails
        """
        logger.info("Connecting to SQL Server: %s", sanitize_for_logging(config.describe()))

        try:
            self.engine = create_async_engine(
                build_connection_url(config),
                poolclass=AsyncAdaptedQueuePool,
                pool_size=config.pool_size,
                max_overflow=config.max_overflow,
                pool_timeout=config.connection_timeout,
                pool_pre_ping=True,
                pool_recycle=POOL_RECYCLE_SECONDS,
                isolation_level="AUTOCOMMIT",
                echo=False,
                connect_args={"timeout": config.connection_timeout},
            )

            async with self.engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                result.fetchone()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to connect to {config.server}:{config.port}/{config.database}: {type(e).__name__}: {e}")
            await self._dispose_quietly()
            raise ConnectionError(
                f"Failed to connect to SQL Server {config.server}:{config.port}/{config.database}",
                details=str(e),
                original_error=e
            ) from e

        logger.info(f"Connected to SQL Server database: {config.database} at {config.server}:{config.port}")

    def acquire(self) -> AsyncEngine:
        """Return the shared pool."""
        if not self.engine:
            raise ConnectionError("No database connection established")
        return self.engine

    @asynccontextmanager
    async def get_connection(self) -> AsyncIterator[AsyncConnection]:
        """Context manager yielding one pooled connection."""
        async with self.acquire().connect() as conn:
            yield conn

    async def fetch_all(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run one statement with named binds and return its rows as dicts."""
        async with self.get_connection() as conn:
            result = await conn.execute(text(sql), params or {})
            if not result.returns_rows:
                return []
            return [dict(row) for row in result.mappings().all()]

    async def execute_batch(self, sql: str, params: Optional[Sequence[Any]] = None) -> BatchResult:
        """Run a batch on the driver cursor and collect every result set.

        ``params`` bind positionally to ``?`` markers. Without params the text
        goes to the server untouched, so ``?`` or ``:name`` inside ad-hoc SQL
        are never mistaken for placeholders.
        """
        batch = BatchResult()

        async with self.get_connection() as conn:
            raw = await conn.get_raw_connection()
            cursor = await raw.driver_connection.cursor()
            try:
                if params:
                    await cursor.execute(sql, *params)
                else:
                    await cursor.execute(sql)

                while True:
                    if cursor.description:
                        columns = [column[0] for column in cursor.description]
                        rows = [dict(zip(columns, row)) for row in await cursor.fetchall()]
                        batch.recordsets.append(rows)
                        batch.rows_affected.append(len(rows))
                    elif cursor.rowcount is not None and cursor.rowcount >= 0:
                        batch.rows_affected.append(cursor.rowcount)

                    if not await cursor.nextset():
                        break
            finally:
                await cursor.close()

        return batch

    async def _dispose_quietly(self) -> None:
        if self.engine:
            try:
                await self.engine.dispose()
            except Exception as e:
                logger.warning(f"Error disposing connection pool: {e}")
            self.engine = None

    async def disconnect(self) -> None:
        """Close the pool. Best-effort; failures are logged, not raised."""
        if self.engine:
            await self._dispose_quietly()
            logger.info("Database connection pool closed")
