"""MCP front-end for the read-only database server.

Wires the resource catalog and the `db_query` tool into a low-level
`mcp.server.Server` and owns the backend lifecycle: the pool is created on
the first request and closed when the server context exits (end of stdio
stream, SIGINT or SIGTERM).

Usage:
  python -m dbserver                      # serve over stdio, settings from env / .env
  python -m dbserver --env-file prod.env
  python -m dbserver --dump-config        # print resolved (redacted) settings and exit
"""
from __future__ import annotations
import argparse, asyncio, json, signal, sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import mcp.types as types
from dotenv import load_dotenv
from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server

from backend.base_backend import Backend
from backend.config import AppConfig
from backend.errors import BackendError, QueryError
from backend.factory import create_backend
from backend.logging_util import error, info

from .catalog import ResourceCatalog
from .query_tool import QueryTool


class DatabaseMCPServer:
    """MCP server exposing table schemas as resources and `db_query` as a tool."""

    def __init__(self, config: AppConfig, backend: Optional[Backend] = None):
        self.config = config
        self.backend = backend if backend is not None else create_backend(config)
        self.catalog = ResourceCatalog(self.backend)
        self.query_tool = QueryTool(self.backend)
        self.server = Server(config.server_name, version=config.server_version)
        self._setup_handlers()

    async def __aenter__(self) -> "DatabaseMCPServer":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.backend.disconnect()

    # --- Request handlers ------------------------------------------------------------
    async def handle_list_resources(self) -> List[types.Resource]:
        try:
            resources = await self.catalog.list_resources()
        except BackendError as e:
            error("list_resources_failed", error=str(e))
            raise
        return [types.Resource(uri=r["uri"], name=r["name"], mimeType=r["mimeType"]) for r in resources]

    async def handle_read_resource(self, uri: Any) -> List[ReadResourceContents]:
        try:
            resource = await self.catalog.read_resource(str(uri))
        except BackendError as e:
            error("read_resource_failed", uri=str(uri), error=str(e))
            raise
        return [ReadResourceContents(content=resource["text"], mime_type=resource["mimeType"])]

    async def handle_list_tools(self) -> List[types.Tool]:
        return [types.Tool(**tool) for tool in self.query_tool.list_tools()]

    async def handle_call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> List[types.TextContent]:
        payload = await self.query_tool.call_tool(name, arguments)
        text = "\n".join(block["text"] for block in payload["content"])
        if payload["isError"]:
            # the SDK turns a raised error into an isError=true result with this text
            raise QueryError(text)
        return [types.TextContent(type="text", text=text)]

    def _setup_handlers(self) -> None:
        server = self.server

        @server.list_resources()
        async def list_resources() -> List[types.Resource]:
            return await self.handle_list_resources()

        @server.read_resource()
        async def read_resource(uri) -> List[ReadResourceContents]:
            return await self.handle_read_resource(uri)

        @server.list_tools()
        async def list_tools() -> List[types.Tool]:
            return await self.handle_list_tools()

        @server.call_tool()
        async def call_tool(name: str, arguments: Dict[str, Any]) -> List[types.TextContent]:
            return await self.handle_call_tool(name, arguments)

    async def run_stdio(self) -> None:
        info("server_start", name=self.config.server_name, version=self.config.server_version,
             backend=self.backend.kind, transport="stdio")
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(read_stream, write_stream, self.server.create_initialization_options())


async def serve(app: DatabaseMCPServer) -> None:
    """Run until stdin closes or a termination signal arrives, then disconnect."""
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, task.cancel)
        except (NotImplementedError, RuntimeError):  # Windows event loops
            pass
    async with app:
        try:
            await app.run_stdio()
        except asyncio.CancelledError:
            info("server_shutdown", reason="signal")
    info("server_stopped")


def parse_args(argv: List[str]):
    ap = argparse.ArgumentParser(description="Read-only MCP server for MySQL / PostgreSQL")
    ap.add_argument("--env-file", type=Path, default=None, help="dotenv file to load (default: ./.env if present)")
    ap.add_argument("--dump-config", action="store_true", help="Print resolved configuration (passwords masked) and exit")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    env_file = args.env_file or Path(".env")
    if env_file.exists():
        load_dotenv(env_file, override=False)
    elif args.env_file is not None:
        error("env_file_missing", path=str(env_file))
        return 1
    config = AppConfig.from_env()
    if args.dump_config:
        print(json.dumps(config.redacted(), indent=2))
        return 0
    try:
        app = DatabaseMCPServer(config)
    except BackendError as e:
        error("server_init_failed", error=str(e))
        return 1
    try:
        asyncio.run(serve(app))
    except KeyboardInterrupt:  # pragma: no cover - platforms without signal handlers
        info("server_shutdown", reason="keyboard_interrupt")
    return 0
