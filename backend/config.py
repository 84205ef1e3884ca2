"""Environment driven configuration.

Resolved once at startup with AppConfig.from_env() and passed explicitly to
the driver factory; nothing in the package reads connection settings from a
module-level global.

Invalid integers fall back to their defaults with an `invalid_env_int`
warning; pool sizes are clamped to [MIN_POOL_SIZE, MAX_POOL_SIZE].
"""
from __future__ import annotations
import os
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Mapping, Optional

from . import BACKEND_KINDS, DEFAULT_SERVER_NAME, PACKAGE_VERSION, MYSQL, POSTGRES
from .errors import UnsupportedBackendError
from .logging_util import warn

DEFAULT_MYSQL_PORT = 3306
DEFAULT_POSTGRES_PORT = 5432
DEFAULT_POOL_SIZE = 10
MIN_POOL_SIZE = 1
MAX_POOL_SIZE = 100
SCHEMA_SUFFIX = "schema"

_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class DatabaseConfig:
    host: str = "127.0.0.1"
    port: int = 0
    user: str = ""
    password: str = field(default="", repr=False)
    database: str = ""
    pool_size: int = DEFAULT_POOL_SIZE


@dataclass(frozen=True)
class MySQLConfig(DatabaseConfig):
    port: int = DEFAULT_MYSQL_PORT
    user: str = "root"
    # Client auth plugin requested in the handshake ("" lets the server pick).
    # mysql_clear_password switch requests are answered with `password`.
    auth_plugin: str = ""


@dataclass(frozen=True)
class PostgresConfig(DatabaseConfig):
    port: int = DEFAULT_POSTGRES_PORT
    user: str = "postgres"
    ssl: bool = False
    schema: str = "public"


@dataclass(frozen=True)
class AppConfig:
    db_type: str = MYSQL
    server_name: str = DEFAULT_SERVER_NAME
    server_version: str = PACKAGE_VERSION
    mysql: MySQLConfig = field(default_factory=MySQLConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)

    @property
    def database(self) -> DatabaseConfig:
        """Connection settings of the selected backend."""
        if self.db_type == MYSQL:
            return self.mysql
        if self.db_type == POSTGRES:
            return self.postgres
        raise UnsupportedBackendError(self.db_type, BACKEND_KINDS)

    def redacted(self) -> Dict[str, Any]:
        data = asdict(self)
        for section in (MYSQL, POSTGRES):
            if data[section].get("password"):
                data[section]["password"] = "***"
        return data

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        env = os.environ if environ is None else environ

        def _str(name: str, default: str) -> str:
            raw = env.get(name)
            return default if raw is None else raw

        def _int(name: str, default: int) -> int:
            raw = env.get(name)
            if raw is None or raw == "":
                return default
            try:
                return int(raw)
            except ValueError:
                warn("invalid_env_int", key=name, value=raw, default=default)
                return default

        def _pool(name: str) -> int:
            size = _int(name, DEFAULT_POOL_SIZE)
            if size < MIN_POOL_SIZE or size > MAX_POOL_SIZE:
                clamped = min(MAX_POOL_SIZE, max(MIN_POOL_SIZE, size))
                warn("backend_config_clamped", key=name, original=size, clamped=clamped)
                return clamped
            return size

        mysql = MySQLConfig(
            host=_str("MYSQL_HOST", "127.0.0.1"),
            port=_int("MYSQL_PORT", DEFAULT_MYSQL_PORT),
            user=_str("MYSQL_USER", "root"),
            password=_str("MYSQL_PASS", ""),
            database=_str("MYSQL_DB", ""),
            pool_size=_pool("MYSQL_CONNECTION_LIMIT"),
            auth_plugin=_str("MYSQL_AUTH_PLUGIN", ""),
        )
        postgres = PostgresConfig(
            host=_str("PG_HOST", "127.0.0.1"),
            port=_int("PG_PORT", DEFAULT_POSTGRES_PORT),
            user=_str("PG_USER", "postgres"),
            password=_str("PG_PASS", ""),
            database=_str("PG_DB", ""),
            pool_size=_pool("PG_CONNECTION_LIMIT"),
            ssl=_str("PG_SSL", "false").strip().lower() in _TRUE,
            schema=_str("PG_SCHEMA", "public") or "public",
        )
        return cls(
            db_type=_str("DB_TYPE", MYSQL).strip().lower(),
            server_name=_str("SERVER_NAME", DEFAULT_SERVER_NAME),
            server_version=_str("SERVER_VERSION", PACKAGE_VERSION),
            mysql=mysql,
            postgres=postgres,
        )
