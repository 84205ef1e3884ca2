"""Lightweight structured logging helper.

Emits one JSON object per line to stderr; stdout is reserved for the MCP
stdio transport, so nothing here may ever print there.
"""
from __future__ import annotations
import os, sys, json, time, threading

_lock = threading.Lock()
LEVEL_ORDER = ["DEBUG", "INFO", "WARN", "ERROR"]
_ALIASES = {"WARNING": "WARN", "CRITICAL": "ERROR"}
REDACTED_KEYS = {"password", "passwd", "pass"}


def _threshold() -> str:
    raw = os.environ.get("LOG_LEVEL", "INFO").upper()
    return _ALIASES.get(raw, raw)


def _should(level: str) -> bool:
    try:
        return LEVEL_ORDER.index(level) >= LEVEL_ORDER.index(_threshold())
    except ValueError:
        return True


def redact(fields: dict) -> dict:
    return {k: ("***" if k.lower() in REDACTED_KEYS and v else v) for k, v in fields.items()}


def log(level: str, event: str, **fields):
    level = _ALIASES.get(level.upper(), level.upper())
    if not _should(level):
        return
    record = {
        "ts": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime()),
        "level": level,
        "event": event,
    }
    record.update(redact(fields))
    line = json.dumps(record, separators=(',', ':'), default=str)
    with _lock:
        sys.stderr.write(line + "\n")
        sys.stderr.flush()


def debug(event: str, **fields): log("DEBUG", event, **fields)
def info(event: str, **fields): log("INFO", event, **fields)
def warn(event: str, **fields): log("WARN", event, **fields)
def error(event: str, **fields): log("ERROR", event, **fields)
