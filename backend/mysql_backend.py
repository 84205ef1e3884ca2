"""MySQL backend (aiomysql).

Read-only statements run with the session flag set:

    COM_SET_OPTION MULTI_STATEMENTS_OFF
    SET SESSION TRANSACTION READ ONLY
    BEGIN
    <caller sql>
    ROLLBACK
    SET SESSION TRANSACTION READ WRITE

aiomysql negotiates CLIENT_MULTI_STATEMENTS on every connection and offers no
switch to drop it, so multi-statement mode is turned off per session before
caller SQL runs. Otherwise `...; COMMIT; SET SESSION TRANSACTION READ WRITE;
DELETE ...` would end the read-only transaction from inside one call.

The pool reuses connections, so the flag is reset on every exit path. A
connection whose reset cannot be confirmed is closed before release and the
pool drops it rather than handing a read-only session to the next caller.
"""
from __future__ import annotations
import struct
from typing import Any, Dict, List, Optional, Sequence

import aiomysql
import pymysql
from pymysql.constants import COMMAND, FIELD_TYPE

from . import MYSQL
from .base_backend import ColumnInfo, TableInfo, decode_json_columns, rows_to_json, text_payload
from .config import MySQLConfig
from .errors import BackendConnectionError, CleanupError, NotConnectedError, QueryError
from .logging_util import debug, info, warn

SET_READ_ONLY = "SET SESSION TRANSACTION READ ONLY"
SET_READ_WRITE = "SET SESSION TRANSACTION READ WRITE"
# enum_mysql_set_option: MYSQL_OPTION_MULTI_STATEMENTS_ON = 0, _OFF = 1
MULTI_STATEMENTS_OFF = 1

LIST_TABLES_SQL = (
    "SELECT table_name AS table_name FROM information_schema.tables "
    "WHERE table_schema = DATABASE() AND table_type = 'BASE TABLE' "
    "ORDER BY table_name"
)
TABLE_SCHEMA_SQL = (
    "SELECT column_name AS column_name, data_type AS data_type "
    "FROM information_schema.columns "
    "WHERE table_schema = DATABASE() AND table_name = %s "
    "ORDER BY ordinal_position"
)


def _field(row: Dict[str, Any], name: str) -> Any:
    # information_schema keys come back upper-case on MySQL 8 unless aliased
    value = row.get(name)
    if value is None:
        value = row.get(name.upper())
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    return value


def _json_columns(description) -> List[str]:
    # pymysql hands JSON columns back as text; the type code tells them apart
    return [d[0] for d in description or () if d[1] == FIELD_TYPE.JSON]


class MySQLBackend:
    """MySQL driver.

    Responsibilities:
      - Own one lazily created aiomysql pool (autocommit, dict rows)
      - Catalog introspection through information_schema
      - Read-only execution guarded by the session flag plus rollback
    """
    kind = MYSQL

    def __init__(self, config: MySQLConfig):
        self.config = config
        self.host = config.host
        self.port = config.port
        self._pool: Optional[aiomysql.Pool] = None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    # --- Lifecycle -------------------------------------------------------------------
    async def connect(self) -> None:
        if self._pool is not None:
            return
        cfg = self.config
        try:
            self._pool = await aiomysql.create_pool(
                host=cfg.host,
                port=cfg.port,
                user=cfg.user,
                password=cfg.password,
                db=cfg.database or None,
                minsize=1,
                maxsize=cfg.pool_size,
                autocommit=True,
                cursorclass=aiomysql.DictCursor,
                auth_plugin=cfg.auth_plugin,
            )
        except (pymysql.MySQLError, OSError) as e:
            warn("connect_failed", backend=self.kind, host=cfg.host, port=cfg.port, error=str(e))
            raise BackendConnectionError(f"Failed to connect to MySQL at {cfg.host}:{cfg.port}: {e}") from e
        info("backend_connected", backend=self.kind, host=cfg.host, port=cfg.port,
             database=cfg.database, pool_size=cfg.pool_size)

    async def disconnect(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        pool.close()
        await pool.wait_closed()
        info("backend_disconnected", backend=self.kind)

    def _require_pool(self) -> aiomysql.Pool:
        if self._pool is None:
            raise NotConnectedError(self.kind)
        return self._pool

    # --- Queries ---------------------------------------------------------------------
    async def execute_query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        pool = self._require_pool()
        async with pool.acquire() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cur:
                try:
                    await cur.execute(sql, tuple(params) or None)
                    rows = await cur.fetchall()
                except pymysql.MySQLError as e:
                    raise QueryError(str(e)) from e
        return list(rows or [])

    async def execute_read_only_query(self, sql: str) -> Dict[str, Any]:
        pool = self._require_pool()
        async with pool.acquire() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cur:
                try:
                    await self._disable_multi_statements(conn)
                    await cur.execute(SET_READ_ONLY)
                    await conn.begin()
                    # no args: the statement is sent verbatim, '%' included
                    await cur.execute(sql)
                    rows = await cur.fetchall()
                    json_columns = _json_columns(cur.description)
                    await conn.rollback()
                    await cur.execute(SET_READ_WRITE)
                except BaseException as e:
                    await self._restore_session(conn, cur)
                    if isinstance(e, pymysql.MySQLError):
                        debug("read_only_query_failed", backend=self.kind, error=str(e))
                        raise QueryError(str(e)) from e
                    raise
        rows = decode_json_columns(list(rows or []), json_columns)
        return text_payload(rows_to_json(rows))

    @staticmethod
    async def _disable_multi_statements(conn) -> None:
        """Send COM_SET_OPTION(MULTI_STATEMENTS_OFF); `a; b` then fails as a syntax error.

        aiomysql has no public wrapper for this command, so it goes through the
        same internal send/read pair its own commands use.
        """
        await conn._execute_command(COMMAND.COM_SET_OPTION, struct.pack("<H", MULTI_STATEMENTS_OFF))
        await conn._read_packet()

    async def _restore_session(self, conn, cur) -> None:
        """Best-effort rollback then read-write reset; failures are logged only."""
        try:
            await conn.rollback()
        except Exception as e:
            self._log_cleanup(CleanupError("rollback", e))
        try:
            await cur.execute(SET_READ_WRITE)
        except Exception as e:
            self._log_cleanup(CleanupError("reset_read_write", e))
            # closed connections are discarded by the pool on release
            conn.close()

    def _log_cleanup(self, err: CleanupError) -> None:
        warn("cleanup_failed", backend=self.kind, step=err.step, error=str(err.__cause__))

    # --- Catalog ---------------------------------------------------------------------
    async def list_tables(self) -> List[TableInfo]:
        rows = await self.execute_query(LIST_TABLES_SQL)
        return [TableInfo(name=_field(r, "table_name")) for r in rows if _field(r, "table_name")]

    async def get_table_schema(self, table_name: str) -> List[ColumnInfo]:
        rows = await self.execute_query(TABLE_SCHEMA_SQL, (table_name,))
        return [
            ColumnInfo(name=_field(r, "column_name"), data_type=_field(r, "data_type"))
            for r in rows
        ]
