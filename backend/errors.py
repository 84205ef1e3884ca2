"""Error taxonomy shared by drivers and request handlers.

Everything raised on purpose derives from BackendError so the request
boundary can catch one type. CleanupError is only ever logged.
"""
from __future__ import annotations
from typing import Iterable


class BackendError(Exception):
    """Base class for errors raised by this package."""


class BackendConnectionError(BackendError, ConnectionError):
    """Pool creation or authentication failed."""


class QueryError(BackendError):
    """The engine rejected a statement (syntax, permissions, read-only violation)."""


class NotConnectedError(QueryError):
    def __init__(self, kind: str):
        super().__init__(f"{kind} backend is not connected (call connect() first)")
        self.kind = kind


class InvalidResourceError(BackendError):
    def __init__(self, uri: str, reason: str = "invalid resource URI"):
        super().__init__(f"{reason}: {uri}")
        self.uri = uri


class UnknownToolError(BackendError):
    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class UnsupportedBackendError(BackendError):
    def __init__(self, kind: str, supported: Iterable[str] = ()):
        supported = sorted(supported)
        msg = f"Unsupported database type: {kind!r}"
        if supported:
            msg += f". Supported: {supported}"
        super().__init__(msg)
        self.kind = kind
        self.supported = supported


class CleanupError(BackendError):
    """Rollback or session reset failed after a read-only query.

    Never raised to callers: it would mask the statement's own error.
    """
    def __init__(self, step: str, cause: BaseException):
        super().__init__(f"{step} failed: {cause}")
        self.step = step
        self.__cause__ = cause


__all__ = [
    "BackendError", "BackendConnectionError", "QueryError", "NotConnectedError",
    "InvalidResourceError", "UnknownToolError", "UnsupportedBackendError", "CleanupError",
]
