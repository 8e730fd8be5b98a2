"""
Settlement Ledger Repository

Data access layer - PostgreSQL (asyncpg)

The ledger is a single JSONB key-value table. A transaction is one asyncpg
transaction that first takes a transaction-scoped advisory lock per
declared key, in sorted order; the locks are released on commit or
rollback.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import asyncpg

from core.config import InfraConfig

logger = logging.getLogger(__name__)


class _PostgresTransaction:
    """Reads and writes on the connection owning the open transaction"""

    def __init__(self, conn: asyncpg.Connection, table: str):
        self.conn = conn
        self.table = table

    async def get(self, key: str) -> Optional[Any]:
        value = await self.conn.fetchval(f"SELECT value FROM {self.table} WHERE key = $1", key)
        return json.loads(value) if value is not None else None

    async def put(self, key: str, value: Any) -> None:
        await self.conn.execute(
            f"""
            INSERT INTO {self.table} (key, value, updated_at)
            VALUES ($1, $2::jsonb, NOW())
            ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
            """,
            key,
            json.dumps(value),
        )

    async def delete(self, key: str) -> None:
        await self.conn.execute(f"DELETE FROM {self.table} WHERE key = $1", key)

    async def lock(self, key: str) -> None:
        # Advisory locks are re-entrant within a session
        await self.conn.execute("SELECT pg_advisory_xact_lock(hashtext($1))", key)


class PostgresLedgerStore:
    """Settlement ledger - PostgreSQL (Async)"""

    def __init__(self, config: Optional[InfraConfig] = None):
        self.config = config or InfraConfig.from_env()
        self.schema = self.config.postgres_schema
        self.table = f"{self.schema}.ledger_entries"
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self) -> None:
        logger.info(
            f"Connecting to PostgreSQL at {self.config.postgres_host}:{self.config.postgres_port}"
        )
        self.pool = await asyncpg.create_pool(
            host=self.config.postgres_host,
            port=self.config.postgres_port,
            user=self.config.postgres_user,
            password=self.config.postgres_password,
            database=self.config.postgres_db,
            min_size=self.config.postgres_pool_min,
            max_size=self.config.postgres_pool_max,
            timeout=30,
        )

        async with self.pool.acquire() as conn:
            await conn.execute(f"CREATE SCHEMA IF NOT EXISTS {self.schema}")
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    key TEXT PRIMARY KEY,
                    value JSONB NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
                """
            )
        logger.info(f"PostgresLedgerStore ready ({self.table})")

    async def close(self) -> None:
        if self.pool:
            await self.pool.close()
            self.pool = None

    async def health_check(self) -> bool:
        if not self.pool:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Ledger health check failed: {e}")
            return False

    @asynccontextmanager
    async def transaction(self, *lock_keys: str) -> AsyncIterator[_PostgresTransaction]:
        if not self.pool:
            raise RuntimeError("PostgresLedgerStore not initialized. Call initialize() first.")

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                tx = _PostgresTransaction(conn, self.table)
                for key in sorted(set(lock_keys)):
                    await tx.lock(key)
                yield tx

    async def peek(self, key: str) -> Optional[Any]:
        if not self.pool:
            raise RuntimeError("PostgresLedgerStore not initialized. Call initialize() first.")

        async with self.pool.acquire() as conn:
            value = await conn.fetchval(f"SELECT value FROM {self.table} WHERE key = $1", key)
        return json.loads(value) if value is not None else None


__all__ = ["PostgresLedgerStore"]
