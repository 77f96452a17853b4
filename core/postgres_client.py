"""
PostgreSQL Client for the Campaign Service

Process-wide asyncpg connection pool with an explicit lifecycle. The service
factory connects it on startup, injects it into every repository and closes it
on shutdown; repositories never open connections of their own.

Usage:
    from core.postgres_client import AsyncPostgresClient

    db = AsyncPostgresClient(dsn=settings.infrastructure.postgres_dsn)
    await db.connect()

    rows = await db.query("SELECT * FROM enrichment.campaigns WHERE user_id = $1", [user_id])

    await db.close()
"""

import logging
from typing import Any, Dict, List, Optional

import asyncpg

logger = logging.getLogger(__name__)


class DatabaseNotConnectedError(RuntimeError):
    """Raised when a query is issued before connect() or after close()"""
    pass


class AsyncPostgresClient:
    """
    Thin wrapper around an asyncpg pool.

    Rows are returned as plain dicts so repositories stay independent of the
    driver's Record type.
    """

    def __init__(
        self,
        dsn: str,
        min_size: int = 1,
        max_size: int = 10,
        service_name: str = "campaign_service",
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.service_name = service_name
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Create the connection pool"""
        if self._pool is not None:
            return

        self._pool = await asyncpg.create_pool(
            dsn=self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            server_settings={"application_name": self.service_name},
        )
        logger.info(
            f"PostgreSQL pool ready for {self.service_name} "
            f"(min={self.min_size}, max={self.max_size})"
        )

    async def close(self) -> None:
        """Gracefully close the connection pool"""
        if self._pool is None:
            return

        await self._pool.close()
        self._pool = None
        logger.info(f"PostgreSQL pool closed for {self.service_name}")

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise DatabaseNotConnectedError("PostgreSQL pool is not connected")
        return self._pool

    async def health_check(self) -> bool:
        """Check database health"""
        try:
            row = await self.query_row("SELECT 1 AS healthy")
            return row is not None
        except Exception as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            return False

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Execute query and return all rows"""
        pool = self._require_pool()
        records = await pool.fetch(sql, *(params or []))
        return [dict(record) for record in records]

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return a single row"""
        pool = self._require_pool()
        record = await pool.fetchrow(sql, *(params or []))
        return dict(record) if record is not None else None

    async def query_value(self, sql: str, params: Optional[List[Any]] = None) -> Any:
        """Execute query and return the first column of the first row"""
        pool = self._require_pool()
        return await pool.fetchval(sql, *(params or []))

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> int:
        """Execute SQL statement, returning the number of affected rows"""
        pool = self._require_pool()
        status = await pool.execute(sql, *(params or []))
        # asyncpg returns the command tag, e.g. "DELETE 3" or "INSERT 0 1"
        try:
            return int(status.split()[-1])
        except (ValueError, IndexError):
            return 0


__all__ = ["AsyncPostgresClient", "DatabaseNotConnectedError"]
