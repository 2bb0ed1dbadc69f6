"""Lightweight structured logging helper.

Avoids external deps; emits JSON lines to stderr. ``LOG_LEVEL`` is read on every
call so tests and operators can change it without re-importing. ``trace`` is the
request/operation/match dump enabled by ``DEBUG_DB=1``.
"""
from __future__ import annotations
import os, sys, json, time, threading

_lock = threading.Lock()
LEVEL_ORDER = ["DEBUG", "INFO", "WARN", "ERROR"]


def _threshold() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").upper()


def _should(level: str) -> bool:
    try:
        return LEVEL_ORDER.index(level) >= LEVEL_ORDER.index(_threshold())
    except ValueError:
        return True


def tracing_enabled() -> bool:
    return os.environ.get("DEBUG_DB", "0") not in ("", "0")


def _emit(record: dict) -> None:
    line = json.dumps(record, separators=(',', ':'), default=str)
    with _lock:
        sys.stderr.write(line + "\n")
        sys.stderr.flush()


def log(level: str, event: str, **fields):
    level = level.upper()
    if not _should(level):
        return
    record = {
        "ts": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime()),
        "level": level,
        "event": event,
    }
    record.update(fields)
    _emit(record)


def trace(event: str, enabled: bool = False, **fields):
    """Dump internal state for debugging; no-op unless ``enabled`` or DEBUG_DB is set."""
    if not (enabled or tracing_enabled()):
        return
    record = {"ts": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime()), "level": "TRACE", "event": event}
    record.update(fields)
    _emit(record)


def debug(event: str, **fields): log("DEBUG", event, **fields)
def info(event: str, **fields): log("INFO", event, **fields)
def warn(event: str, **fields): log("WARN", event, **fields)
def error(event: str, **fields): log("ERROR", event, **fields)
