"""Resource catalog: every table exposed as `<kind>://<host>:<port>/<table>/schema`."""
from __future__ import annotations
from typing import Any, Dict, List
from urllib.parse import quote, unquote, urlsplit

from backend.base_backend import Backend, rows_to_json
from backend.config import SCHEMA_SUFFIX
from backend.errors import InvalidResourceError
from backend.logging_util import debug

MIME_TYPE = "application/json"


def resource_uri(backend: Backend, table_name: str) -> str:
    return f"{backend.kind}://{backend.host}:{backend.port}/{quote(table_name, safe='')}/{SCHEMA_SUFFIX}"


def parse_resource_uri(uri: str) -> str:
    """Return the table name addressed by a schema resource URI."""
    parts = urlsplit(str(uri)).path.split("/")
    suffix = parts.pop() if parts else ""
    table = unquote(parts.pop()) if parts else ""
    if suffix != SCHEMA_SUFFIX:
        raise InvalidResourceError(str(uri), f"expected '/{SCHEMA_SUFFIX}' suffix")
    if not table:
        raise InvalidResourceError(str(uri), "missing table name")
    return table


class ResourceCatalog:
    def __init__(self, backend: Backend):
        self.backend = backend

    async def list_resources(self) -> List[Dict[str, Any]]:
        await self.backend.connect()
        tables = await self.backend.list_tables()
        resources = [
            {
                "uri": resource_uri(self.backend, t.name),
                "mimeType": MIME_TYPE,
                "name": f'"{t.name}" database table schema',
            }
            for t in tables
            if t.name
        ]
        debug("resources_listed", backend=self.backend.kind, count=len(resources))
        return resources

    async def read_resource(self, uri: str) -> Dict[str, Any]:
        table = parse_resource_uri(uri)
        await self.backend.connect()
        columns = await self.backend.get_table_schema(table)
        return {
            "uri": str(uri),
            "mimeType": MIME_TYPE,
            "text": rows_to_json([c.as_dict() for c in columns]),
        }
