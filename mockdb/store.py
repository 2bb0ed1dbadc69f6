"""In-memory document store: collection name -> objectId -> document.

Responsibilities:
  - Lazily create collections on first access
  - Hand out deep copies so callers never alias stored state
  - Issue object ids that are unique per collection and never reused
  - Atomic reset and basic statistics
"""
from __future__ import annotations
import copy
import secrets
import string
from typing import Any, Dict, Iterable, Optional, Set

from .logging_util import trace

ID_ALPHABET = string.ascii_letters + string.digits
ID_LENGTH = 10


class DocumentStore:
    """Arena of collections owned by one database instance."""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        # ids survive reset() so they are never handed out twice by this store
        self._issued: Dict[str, Set[str]] = {}

    # --- Public API -----------------------------------------------------------------
    def collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        if name not in self._collections:
            self._collections[name] = {}
        return self._collections[name]

    def documents(self, name: str) -> Iterable[Dict[str, Any]]:
        return list(self.collection(name).values())

    def get(self, name: str, object_id: str) -> Optional[Dict[str, Any]]:
        doc = self.collection(name).get(object_id)
        return copy.deepcopy(doc) if doc is not None else None

    def put(self, name: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """Store a deep copy of ``document`` under its objectId; returns another copy."""
        object_id = document["objectId"]
        stored = copy.deepcopy(document)
        self.collection(name)[object_id] = stored
        self._issued.setdefault(name, set()).add(object_id)
        trace("store_put", self.debug, collection=name, objectId=object_id)
        return copy.deepcopy(stored)

    def remove(self, name: str, object_id: str) -> bool:
        removed = self.collection(name).pop(object_id, None) is not None
        trace("store_remove", self.debug, collection=name, objectId=object_id, removed=removed)
        return removed

    def new_object_id(self, name: str) -> str:
        issued = self._issued.setdefault(name, set())
        while True:
            candidate = "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))
            if candidate not in issued:
                issued.add(candidate)
                return candidate

    def reset(self) -> None:
        self._collections = {}

    def stats(self) -> Dict[str, Any]:
        counts = {name: len(docs) for name, docs in self._collections.items()}
        return {"ok": True, "collections": counts, "documents": sum(counts.values())}
