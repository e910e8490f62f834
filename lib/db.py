"""
Database module - PostgreSQL connection pooling
"""
import asyncpg
from contextlib import asynccontextmanager
from typing import AsyncIterator

from lib.settings import settings


class Database:
    """Database connection pool manager"""

    def __init__(self):
        self.pool = None

    async def connect(self):
        """Create connection pool"""
        self.pool = await asyncpg.create_pool(
            str(settings.database_url),
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=60
        )

    async def disconnect(self):
        """Close connection pool"""
        if self.pool:
            await self.pool.close()

    @asynccontextmanager
    async def acquire(self):
        """Acquire connection from pool, wrapped in a transaction"""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def health_check(self) -> bool:
        """Test database connectivity"""
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                return result == 1
        except (OSError, asyncpg.PostgresError):
            return False


db = Database()


async def get_conn() -> AsyncIterator[asyncpg.Connection]:
    """FastAPI dependency: one pooled connection per request"""
    async with db.pool.acquire() as conn:
        yield conn
