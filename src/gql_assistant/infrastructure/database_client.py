"""
Database client for the pgvector knowledge store using asyncpg.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg

from ..config import DatabaseConfig
from ..domain.errors import DatabaseConnectionError, DatabaseQueryError
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id


logger = get_module_logger()


class DatabaseClient:
    """
    Low-level async PostgreSQL client using an asyncpg pool.

    Knowledge search and archive writes are built on top of this in
    KnowledgeRepository.

    Usage:
        client = DatabaseClient(config)
        await client.connect()
        rows = await client.fetch("SELECT content FROM knowledge_embeddings LIMIT $1", [5])
        await client.close()
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._is_connected = False

        logger.info(
            "DatabaseClient initialized",
            connection_pool_size=config.connection_pool_max_size,
            query_timeout_seconds=config.query_timeout_seconds,
            application_name=config.application_name
        )

    async def connect(self) -> None:
        """
        Establish connection pool to the database.

        Raises:
            DatabaseConnectionError: If connection fails
        """
        if self._is_connected:
            logger.warning("Database client already connected")
            return

        trace_id = current_trace_id()
        logger.info("Establishing database connection", trace_id=trace_id)

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.config.database_url,
                min_size=self.config.connection_pool_min_size,
                max_size=self.config.connection_pool_max_size,
                command_timeout=self.config.query_timeout_seconds,
                timeout=self.config.connection_timeout_seconds,
                max_queries=self.config.connection_pool_max_queries,
                server_settings={
                    'application_name': self.config.application_name,
                    'jit': 'on' if self.config.jit_enabled else 'off'
                }
            )

            async with self._pool.acquire() as conn:
                if await conn.fetchval("SELECT 1") != 1:
                    raise DatabaseConnectionError("Connection test query failed")

            self._is_connected = True
            logger.info(
                "Database connection established successfully",
                pool_size=self.config.connection_pool_max_size,
                trace_id=trace_id
            )

        except asyncpg.InvalidPasswordError as e:
            error_msg = f"Authentication failed: {e}"
            logger.error(error_msg, trace_id=trace_id)
            raise DatabaseConnectionError(error_msg) from e

        except Exception as e:
            error_msg = f"Failed to connect to database: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=trace_id)
            raise DatabaseConnectionError(error_msg) from e

    async def close(self) -> None:
        """Close database connection pool."""
        if self._pool:
            await self._pool.close()

        self._is_connected = False
        self._pool = None
        logger.info("Database connection closed", trace_id=current_trace_id())

    def is_connected(self) -> bool:
        """Check if database client is connected."""
        return self._is_connected and self._pool is not None

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on database connection.

        Returns:
            {"status": "healthy" | "unhealthy", "connected": bool, ...}
        """
        if not self.is_connected():
            return {
                "status": "unhealthy",
                "connected": False,
                "error": "Database client not connected"
            }

        try:
            async with self.acquire_connection() as conn:
                has_vector = await conn.fetchval(
                    "SELECT EXISTS (SELECT 1 FROM pg_extension WHERE extname = 'vector')"
                )
            return {
                "status": "healthy",
                "connected": True,
                "pool_size": self.config.connection_pool_max_size,
                "pgvector_installed": bool(has_vector)
            }

        except Exception as e:
            logger.error(
                "Database health check failed",
                error=str(e),
                error_type=type(e).__name__,
                trace_id=current_trace_id()
            )
            return {
                "status": "unhealthy",
                "connected": True,
                "error": str(e)
            }

    @asynccontextmanager
    async def acquire_connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection from the pool."""
        if not self.is_connected() or self._pool is None:
            raise DatabaseConnectionError("Database client is not connected")

        async with self._pool.acquire() as connection:
            yield connection

    async def fetch(self, query: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """
        Run a statement and return rows as dictionaries.

        Raises:
            DatabaseConnectionError: If not connected
            DatabaseQueryError: If the statement fails
        """
        trace_id = current_trace_id()

        try:
            async with self.acquire_connection() as conn:
                rows = await conn.fetch(query, *(params or []))
            return [dict(row) for row in rows]

        except DatabaseConnectionError:
            raise

        except asyncpg.UndefinedTableError as e:
            error_msg = f"Table does not exist: {e}"
            logger.error(error_msg, query=query[:200], trace_id=trace_id)
            raise DatabaseQueryError(error_msg) from e

        except Exception as e:
            error_msg = f"Query execution failed: {e}"
            logger.error(
                error_msg,
                error_type=type(e).__name__,
                query=query[:200],
                trace_id=trace_id
            )
            raise DatabaseQueryError(error_msg) from e

    async def execute(self, query: str, params: Optional[List[Any]] = None) -> str:
        """
        Run a statement without a result set and return its status tag.

        Raises:
            DatabaseConnectionError: If not connected
            DatabaseQueryError: If the statement fails
        """
        try:
            async with self.acquire_connection() as conn:
                return await conn.execute(query, *(params or []))

        except DatabaseConnectionError:
            raise

        except Exception as e:
            error_msg = f"Statement execution failed: {e}"
            logger.error(
                error_msg,
                error_type=type(e).__name__,
                query=query[:200],
                trace_id=current_trace_id()
            )
            raise DatabaseQueryError(error_msg) from e
