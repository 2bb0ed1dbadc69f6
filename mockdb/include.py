"""Include resolver: replaces pointers in result documents with fetched copies.

``include="brand,store.owner"`` hydrates ``doc["brand"]`` and then walks
``doc["store"]["owner"]``. Paths are caller supplied and finite; no cycle
detection is done, so a pointer cycle is only followed as deep as the path goes.
"""
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional, Union

from .base import StoreLike
from .logging_util import trace
from .types import is_object_like

IncludeSpec = Union[str, Iterable[str], None]


class IncludeResolver:
    def __init__(self, store: StoreLike, debug: bool = False):
        self.store = store
        self.debug = debug

    def expand(self, documents: List[Dict[str, Any]], include: IncludeSpec) -> List[Dict[str, Any]]:
        """Hydrate ``documents`` in place along every include path; returns them."""
        paths = parse_include(include)
        if not paths:
            return documents
        for document in documents:
            for path in paths:
                self._include(document, path)
        return documents

    def fetch(self, pointer: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Fetched copy of the pointed-to document tagged as an Object, or None if dangling."""
        class_name = pointer["className"]
        stored = self.store.get(class_name, pointer["objectId"])
        if stored is None:
            return None
        hydrated = {"__type": "Object", "className": class_name}
        hydrated.update(stored)
        return hydrated

    # --- Internal -------------------------------------------------------------------
    def _include(self, obj: Dict[str, Any], segments: List[str]) -> None:
        trace("include", self.debug, objectId=obj.get("objectId"), path=segments)
        if not segments or not isinstance(obj, dict):
            return
        head, rest = segments[0], segments[1:]
        target = obj.get(head)
        if not target:
            return
        if isinstance(target, list):
            obj[head] = [self._hydrate(item, rest) for item in target]
        else:
            obj[head] = self._hydrate(target, rest)

    def _hydrate(self, value: Any, rest: List[str]) -> Any:
        if not is_object_like(value):
            return value
        fetched = self.fetch(value)
        if fetched is None:
            return value
        self._include(fetched, rest)
        return fetched


def parse_include(include: IncludeSpec) -> List[List[str]]:
    if not include:
        return []
    if isinstance(include, str):
        include = include.split(",")
    return [p.strip().split(".") for p in include if p and p.strip()]
