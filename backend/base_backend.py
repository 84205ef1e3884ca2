"""Backend abstraction layer.

Defines the capability interface every database driver implements, plus the
small value types and payload helpers shared by drivers and services.

KISS: only the operations the query server needs are abstracted. Drivers
normalize catalog rows at their boundary, so consumers only ever see one
lowercase field per value.
"""
from __future__ import annotations
import base64, datetime, decimal, json, uuid
from dataclasses import dataclass, asdict
from typing import Protocol, Any, Dict, List, Sequence


@dataclass(frozen=True)
class TableInfo:
    name: str

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    data_type: str

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Backend(Protocol):
    kind: str
    host: str
    port: int

    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> None:
        """Create the connection pool. Calling it again is a no-op."""
        ...

    async def disconnect(self) -> None:
        """Drain and close the pool. No-op when not connected."""
        ...

    async def execute_query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a parameterized statement on one pooled connection; used for introspection."""
        ...

    async def execute_read_only_query(self, sql: str) -> Dict[str, Any]:
        """Run caller SQL inside a transaction that is always rolled back.

        Returns a text payload (see text_payload). Engine errors are raised
        as QueryError after cleanup.
        """
        ...

    async def list_tables(self) -> List[TableInfo]: ...

    async def get_table_schema(self, table_name: str) -> List[ColumnInfo]: ...


def _json_default(value: Any) -> Any:
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(raw).decode("ascii")
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def decode_json_columns(rows: List[Dict[str, Any]], columns: Sequence[str]) -> List[Dict[str, Any]]:
    """Parse JSON column values that the driver returned as text, in place."""
    if not columns:
        return rows
    for row in rows:
        for name in columns:
            value = row.get(name)
            if isinstance(value, (bytes, bytearray)):
                value = value.decode("utf-8")
            if isinstance(value, str):
                try:
                    row[name] = json.loads(value)
                except ValueError:
                    pass  # not JSON after all; keep the text
    return rows


def rows_to_json(rows: Any) -> str:
    """Pretty-print rows (or any catalog data) the way clients receive it."""
    return json.dumps(rows, indent=2, default=_json_default, ensure_ascii=False)


def text_payload(text: str, is_error: bool = False) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": text}], "isError": is_error}
