"""The `db_query` tool: caller SQL through the backend's read-only protocol.

Query failures come back as `isError: true` payloads so the client can
inspect them; only an unknown tool name raises.
"""
from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional

from backend.base_backend import Backend, text_payload
from backend.errors import BackendError, UnknownToolError
from backend.logging_util import info, warn

TOOL_NAME = "db_query"


class QueryTool:
    def __init__(self, backend: Backend):
        self.backend = backend

    def list_tools(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": TOOL_NAME,
                "description": f"Run a read-only {self.backend.kind} SQL query",
                "inputSchema": {
                    "type": "object",
                    "properties": {"sql": {"type": "string"}},
                    "required": ["sql"],
                },
            }
        ]

    async def call_tool(self, name: str, arguments: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        if name != TOOL_NAME:
            raise UnknownToolError(name)
        sql = (arguments or {}).get("sql")
        if not isinstance(sql, str) or not sql.strip():
            return text_payload("Query execution error: 'sql' must be a non-empty string", is_error=True)
        try:
            await self.backend.connect()
            result = await self.backend.execute_read_only_query(sql)
        except BackendError as e:
            warn("db_query_failed", backend=self.backend.kind, error=str(e))
            return text_payload(f"Query execution error: {e}", is_error=True)
        info("db_query_ok", backend=self.backend.kind)
        return result
