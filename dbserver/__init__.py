"""Protocol-facing services: resource catalog, `db_query` tool, MCP server."""

from .catalog import ResourceCatalog
from .query_tool import QueryTool, TOOL_NAME

__all__ = ["ResourceCatalog", "QueryTool", "TOOL_NAME"]
