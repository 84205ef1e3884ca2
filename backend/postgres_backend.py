"""PostgreSQL backend (asyncpg).

Read-only statements run inside `BEGIN READ ONLY` and are always rolled
back. There is no session flag to restore; asyncpg resets connection state
when the connection goes back to the pool. `conn.fetch` always prepares the
statement, and the server refuses to prepare `a; b`, so caller SQL is a
single statement.
"""
from __future__ import annotations
import json
from typing import Any, Dict, List, Optional, Sequence

import asyncpg

from . import POSTGRES
from .base_backend import ColumnInfo, TableInfo, rows_to_json, text_payload
from .config import PostgresConfig
from .errors import BackendConnectionError, CleanupError, NotConnectedError, QueryError
from .logging_util import debug, info, warn

LIST_TABLES_SQL = (
    "SELECT table_name FROM information_schema.tables "
    "WHERE table_schema = $1 AND table_type = 'BASE TABLE' "
    "ORDER BY table_name"
)
TABLE_SCHEMA_SQL = (
    "SELECT column_name, data_type FROM information_schema.columns "
    "WHERE table_schema = $1 AND table_name = $2 "
    "ORDER BY ordinal_position"
)
JSON_TYPES = ("json", "jsonb")


async def _init_connection(conn) -> None:
    # asyncpg returns json/jsonb as text by default; decode so rows nest properly
    for typename in JSON_TYPES:
        await conn.set_type_codec(typename, encoder=json.dumps, decoder=json.loads, schema="pg_catalog")


class PostgresBackend:
    """PostgreSQL driver.

    Catalog queries are scoped to config.schema (default `public`).
    """
    kind = POSTGRES

    def __init__(self, config: PostgresConfig):
        self.config = config
        self.host = config.host
        self.port = config.port
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        if self._pool is not None:
            return
        cfg = self.config
        try:
            self._pool = await asyncpg.create_pool(
                host=cfg.host,
                port=cfg.port,
                user=cfg.user,
                password=cfg.password or None,
                database=cfg.database or None,
                min_size=1,
                max_size=cfg.pool_size,
                ssl=cfg.ssl,
                init=_init_connection,
            )
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            warn("connect_failed", backend=self.kind, host=cfg.host, port=cfg.port, error=str(e))
            raise BackendConnectionError(f"Failed to connect to PostgreSQL at {cfg.host}:{cfg.port}: {e}") from e
        info("backend_connected", backend=self.kind, host=cfg.host, port=cfg.port,
             database=cfg.database, pool_size=cfg.pool_size, ssl=cfg.ssl)

    async def disconnect(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        await pool.close()
        info("backend_disconnected", backend=self.kind)

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise NotConnectedError(self.kind)
        return self._pool

    async def execute_query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        pool = self._require_pool()
        async with pool.acquire() as conn:
            try:
                records = await conn.fetch(sql, *params)
            except asyncpg.PostgresError as e:
                raise QueryError(str(e)) from e
        return [dict(r) for r in records]

    async def execute_read_only_query(self, sql: str) -> Dict[str, Any]:
        pool = self._require_pool()
        async with pool.acquire() as conn:
            tx = conn.transaction(readonly=True)
            try:
                await tx.start()
                records = await conn.fetch(sql)
            except asyncpg.PostgresError as e:
                debug("read_only_query_failed", backend=self.kind, error=str(e))
                raise QueryError(str(e)) from e
            finally:
                await self._rollback(tx)
        return text_payload(rows_to_json([dict(r) for r in records]))

    async def _rollback(self, tx) -> None:
        try:
            await tx.rollback()
        except Exception as e:
            # raised when start() itself failed, or the connection is gone
            err = CleanupError("rollback", e)
            warn("cleanup_failed", backend=self.kind, step=err.step, error=str(e))

    async def list_tables(self) -> List[TableInfo]:
        rows = await self.execute_query(LIST_TABLES_SQL, (self.config.schema,))
        return [TableInfo(name=r["table_name"]) for r in rows if r.get("table_name")]

    async def get_table_schema(self, table_name: str) -> List[ColumnInfo]:
        rows = await self.execute_query(TABLE_SCHEMA_SQL, (self.config.schema, table_name))
        return [ColumnInfo(name=r["column_name"], data_type=r["data_type"]) for r in rows]
