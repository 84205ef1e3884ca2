"""Driver factory: resolved configuration -> backend instance.

Pure construction; no connection is opened until Backend.connect().
"""
from __future__ import annotations
from typing import Dict, List, Type

from . import MYSQL, POSTGRES
from .base_backend import Backend
from .config import AppConfig
from .errors import UnsupportedBackendError
from .logging_util import error, info
from .mysql_backend import MySQLBackend
from .postgres_backend import PostgresBackend

_REGISTRY: Dict[str, Type] = {
    MYSQL: MySQLBackend,
    POSTGRES: PostgresBackend,
}


def supported_backends() -> List[str]:
    return sorted(_REGISTRY)


def create_backend(config: AppConfig) -> Backend:
    """Return the driver selected by config.db_type.

    Raises:
        UnsupportedBackendError: db_type is not one of supported_backends()
    """
    backend_cls = _REGISTRY.get(config.db_type)
    if backend_cls is None:
        error("unsupported_backend", db_type=config.db_type, supported=supported_backends())
        raise UnsupportedBackendError(config.db_type, supported_backends())
    backend = backend_cls(config.database)
    info("backend_created", backend=config.db_type, driver=backend_cls.__name__)
    return backend
