"""
PostgreSQL record store backed by an asyncpg connection pool.

Analysis payloads are stored as JSONB; a codec registered on every pooled
connection turns them into Python dicts transparently.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, List, Optional

import asyncpg

from clauseguard.storage.base import ANALYSIS_RESULTS, CHAT_MESSAGES, CONTRACTS, RecordStore, Row
from clauseguard.utils.errors import PersistenceError, RecordNotFoundError
from clauseguard.utils.logging import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {CONTRACTS} (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    file_name TEXT NOT NULL,
    file_size BIGINT NOT NULL,
    mime_type TEXT NOT NULL,
    storage_path TEXT,
    extracted_text TEXT NOT NULL,
    word_count INTEGER NOT NULL DEFAULT 0,
    page_count INTEGER NOT NULL DEFAULT 1,
    status TEXT NOT NULL,
    current_analysis_id TEXT,
    error_message TEXT,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_{CONTRACTS}_user_id ON {CONTRACTS} (user_id);

CREATE TABLE IF NOT EXISTS {ANALYSIS_RESULTS} (
    id TEXT PRIMARY KEY,
    contract_id TEXT NOT NULL REFERENCES {CONTRACTS} (id) ON DELETE CASCADE,
    user_id TEXT NOT NULL,
    schema_version INTEGER NOT NULL,
    analysis JSONB NOT NULL,
    legacy JSONB NOT NULL DEFAULT '{{}}'::jsonb,
    risk_score INTEGER NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_{ANALYSIS_RESULTS}_contract_id ON {ANALYSIS_RESULTS} (contract_id);

CREATE TABLE IF NOT EXISTS {CHAT_MESSAGES} (
    id TEXT PRIMARY KEY,
    contract_id TEXT NOT NULL REFERENCES {CONTRACTS} (id) ON DELETE CASCADE,
    user_id TEXT NOT NULL,
    message TEXT NOT NULL,
    response TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_{CHAT_MESSAGES}_contract_id ON {CHAT_MESSAGES} (contract_id);
"""


# Lost connections and pool acquire timeouts surface as OSError / TimeoutError
CONNECTION_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


async def _init_connection(conn: asyncpg.Connection) -> None:
    await conn.set_type_codec(
        "jsonb",
        encoder=lambda value: json.dumps(value, default=str),
        decoder=json.loads,
        schema="pg_catalog",
    )


class PostgresRecordStore(RecordStore):
    """Record store over a shared asyncpg pool."""

    def __init__(
        self,
        connection_string: str,
        min_connections: int = 1,
        max_connections: int = 10,
        command_timeout: float = 60,
    ) -> None:
        """
        Initialize the store.

        Args:
            connection_string: PostgreSQL DSN
            min_connections: Pool minimum size
            max_connections: Pool maximum size
            command_timeout: Per-statement timeout in seconds
        """
        super().__init__()
        self.connection_string = connection_string
        self.min_connections = min_connections
        self.max_connections = max_connections
        self.command_timeout = command_timeout
        self.pool: Optional[asyncpg.Pool] = None
        self._initialization_lock = asyncio.Lock()

    async def initialize(self) -> None:
        async with self._initialization_lock:
            if self.pool is not None:
                logger.debug("Postgres record store already initialized")
                return

            try:
                logger.info("Initializing Postgres record store...")
                self.pool = await asyncpg.create_pool(
                    self.connection_string,
                    min_size=self.min_connections,
                    max_size=self.max_connections,
                    command_timeout=self.command_timeout,
                    init=_init_connection,
                    server_settings={"application_name": "clauseguard"},
                )
                async with self.pool.acquire() as conn:
                    await conn.execute(SCHEMA_SQL)

                self._initialized = True
                logger.info(
                    f"Postgres record store ready: {self.min_connections}-{self.max_connections} connections"
                )

            except Exception as e:
                logger.error(f"Failed to initialize Postgres record store: {e}")
                if self.pool:
                    await self.pool.close()
                    self.pool = None
                raise PersistenceError(f"Failed to initialize Postgres: {e}") from e

    async def close(self) -> None:
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("Postgres record store closed")
        self._initialized = False

    @asynccontextmanager
    async def _connection(self):
        if not self.pool:
            await self.initialize()
        async with self.pool.acquire() as conn:
            yield conn

    async def _run(self, method: str, query: str, *args) -> Any:
        try:
            async with self._connection() as conn:
                return await getattr(conn, method)(query, *args)
        except PersistenceError:
            raise
        except CONNECTION_ERRORS as e:
            raise PersistenceError(
                f"Database error: {type(e).__name__}: {e}", {"query": query.split()[0]}
            ) from e

    async def insert(self, table: str, row: Row) -> Row:
        self._check_columns(table, row)
        columns = list(row)
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        query = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *"

        record = await self._run("fetchrow", query, *[row[c] for c in columns])
        return dict(record)

    async def update(self, table: str, record_id: str, changes: Row) -> Row:
        self._check_columns(table, changes)
        if not changes:
            existing = await self.get(table, record_id)
            if existing is None:
                raise RecordNotFoundError(table, record_id)
            return existing

        columns = list(changes)
        assignments = ", ".join(f"{column} = ${i}" for i, column in enumerate(columns, start=2))
        query = f"UPDATE {table} SET {assignments} WHERE id = $1 RETURNING *"

        record = await self._run("fetchrow", query, record_id, *[changes[c] for c in columns])
        if record is None:
            raise RecordNotFoundError(table, record_id)
        return dict(record)

    async def get(self, table: str, record_id: str) -> Optional[Row]:
        self._check_table(table)
        record = await self._run("fetchrow", f"SELECT * FROM {table} WHERE id = $1", record_id)
        return dict(record) if record is not None else None

    async def select_by(self, table: str, column: str, value: Any, newest_first: bool = True) -> List[Row]:
        self._check_columns(table, [column])
        direction = "DESC" if newest_first else "ASC"
        query = f"SELECT * FROM {table} WHERE {column} = $1 ORDER BY created_at {direction}"
        records = await self._run("fetch", query, value)
        return [dict(r) for r in records]

    async def count(self, table: str, filters: Optional[Row] = None) -> int:
        filters = filters or {}
        self._check_columns(table, filters)
        columns = list(filters)
        where = " AND ".join(f"{column} = ${i}" for i, column in enumerate(columns, start=1))
        query = f"SELECT COUNT(*) FROM {table}" + (f" WHERE {where}" if where else "")
        return await self._run("fetchval", query, *[filters[c] for c in columns])

    async def delete(self, table: str, filters: Row) -> int:
        self._check_filters(table, filters)
        columns = list(filters)
        where = " AND ".join(f"{column} = ${i}" for i, column in enumerate(columns, start=1))
        status = await self._run("execute", f"DELETE FROM {table} WHERE {where}", *[filters[c] for c in columns])
        # Command tag is "DELETE <count>"
        return int(status.split()[-1])
