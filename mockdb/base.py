"""Store abstraction layer.

Defines the minimal interface the query engine and include resolver need from a
document store, so an alternative arena (e.g. a copy-on-write snapshot) can be
plugged in without touching either.

KISS: Only the operations the engines call are abstracted.
"""
from __future__ import annotations
from typing import Protocol, Any, Dict, Iterable, Optional


class StoreLike(Protocol):  # pragma: no cover - structural typing helper
    def documents(self, collection: str) -> Iterable[Dict[str, Any]]:
        """Live documents of ``collection``. Callers MUST NOT mutate them."""
        ...

    def get(self, collection: str, object_id: str) -> Optional[Dict[str, Any]]:
        """Deep copy of one document, or None when absent."""
        ...
