"""
In-memory stand-in for an object-database REST API, for use in tests.

Provides create / update / delete / get / find over schema-less collections,
atomic update operators, where-clause queries, include expansion, lifecycle
hooks and cloud functions.

Every operation is a coroutine: writes run to COMMITTED or REJECTED (including
any awaited hook) before returning. There is no locking; the store assumes one
request in flight at a time.
"""
from __future__ import annotations
import copy
from typing import Any, Dict, List, Optional, Union

from .config import StoreConfig
from .errors import HookRejectedError, InvalidQueryError, UnknownFunctionError
from .hooks import (HookRegistry, HookStage, HookRequest, FunctionRequest, RequestContext,
                    Err, Handler, invoke, run_before, run_after)
from .include import IncludeResolver, IncludeSpec
from .logging_util import trace, warn
from .operators import extract_ops, apply_ops
from .query import QueryEngine
from .store import DocumentStore
from .types import RESERVED_FIELDS, now_iso


class MockDatabase:
    """Mock object database.

    Added over the plain store:
      - Atomic operators ({"__op": ...}) on create and update
      - Query engine with sub-queries and relation membership
      - include= expansion of pointer fields
      - before/after save and delete hooks, cloud functions (define/run)
    """

    def __init__(self, config: Optional[StoreConfig] = None):
        self.config = config or StoreConfig.from_env()
        self.store = DocumentStore(debug=self.config.debug)
        self.hooks = HookRegistry()
        self.query = QueryEngine(self.store, self.config)
        self.includes = IncludeResolver(self.store, debug=self.config.debug)

    # --- Writes ---------------------------------------------------------------------
    async def create(self, collection: str, payload: Dict[str, Any],
                     context: Optional[RequestContext] = None) -> Dict[str, Any]:
        """Create a document and return a copy of what was committed."""
        context = context or RequestContext()
        trace("request", self.config.debug, method="create", collection=collection, payload=payload)
        draft = self._draft({}, payload)
        request = HookRequest(collection=collection, object=draft, context=context)
        draft = self._settle(draft, await run_before(self.hooks, HookStage.BEFORE_SAVE, request))

        now = now_iso()
        draft["objectId"] = self.store.new_object_id(collection)
        draft["createdAt"] = now
        draft["updatedAt"] = now
        committed = self.store.put(collection, draft)
        trace("db", self.config.debug, stats=self.store.stats())

        await run_after(self.hooks, HookStage.AFTER_SAVE,
                        HookRequest(collection=collection, object=committed, context=context))
        trace("response", self.config.debug, method="create", collection=collection, response=committed)
        return copy.deepcopy(committed)

    async def update(self, collection: str, object_id: str, payload: Dict[str, Any],
                     context: Optional[RequestContext] = None) -> Dict[str, Any]:
        """Merge ``payload`` into the stored document and return the committed copy.

        An absent document is treated as ``{}`` and written under ``object_id``.
        """
        context = context or RequestContext()
        trace("request", self.config.debug, method="update", collection=collection, objectId=object_id, payload=payload)
        prior = self.store.get(collection, object_id)
        if prior is None:
            warn("update_missing_document", collection=collection, objectId=object_id)
            prior = {}
        draft = self._draft(prior, payload)
        request = HookRequest(collection=collection, object=draft, original=copy.deepcopy(prior), context=context)
        draft = self._settle(draft, await run_before(self.hooks, HookStage.BEFORE_SAVE, request))

        now = now_iso()
        draft["objectId"] = object_id
        draft["createdAt"] = prior.get("createdAt", now)
        draft["updatedAt"] = now
        committed = self.store.put(collection, draft)
        trace("db", self.config.debug, stats=self.store.stats())

        await run_after(self.hooks, HookStage.AFTER_SAVE,
                        HookRequest(collection=collection, object=committed, original=prior, context=context))
        trace("response", self.config.debug, method="update", collection=collection, response=committed)
        return copy.deepcopy(committed)

    async def delete(self, collection: str, object_id: str,
                     context: Optional[RequestContext] = None) -> None:
        context = context or RequestContext()
        trace("request", self.config.debug, method="delete", collection=collection, objectId=object_id)
        current = self.store.get(collection, object_id) or {}
        request = HookRequest(collection=collection, object=current, context=context)
        await run_before(self.hooks, HookStage.BEFORE_DELETE, request)
        self.store.remove(collection, object_id)
        await run_after(self.hooks, HookStage.AFTER_DELETE,
                        HookRequest(collection=collection, object=current, context=context))

    # --- Reads ----------------------------------------------------------------------
    async def get(self, collection: str, object_id: str, include: IncludeSpec = None) -> Optional[Dict[str, Any]]:
        doc = self.store.get(collection, object_id)
        if doc is None:
            return None
        return self.includes.expand([doc], include)[0]

    async def find(self, collection: str, where: Optional[Dict[str, Any]] = None,
                   limit: Optional[int] = None, skip: int = 0, count: bool = False,
                   include: IncludeSpec = None) -> Union[List[Dict[str, Any]], Dict[str, int]]:
        """Match, then (unless counting) expand includes, then paginate."""
        trace("request", self.config.debug, method="find", collection=collection, where=where, limit=limit, skip=skip)
        limit, skip = self._page(limit, skip)
        matches = self.query.match(collection, where or {})
        if count:
            return {"count": len(matches)}
        matches = self.includes.expand(matches, include)
        return matches[skip:skip + limit]

    async def count(self, collection: str, where: Optional[Dict[str, Any]] = None) -> int:
        result = await self.find(collection, where, count=True)
        return result["count"]

    # --- Hooks & functions ----------------------------------------------------------
    def register_hook(self, collection: str, stage: Union[HookStage, str], handler: Handler) -> None:
        self.hooks.register(collection, stage, handler)

    def define(self, name: str, handler: Handler) -> None:
        self.hooks.define(name, handler)

    async def run(self, name: str, params: Optional[Dict[str, Any]] = None,
                  context: Optional[RequestContext] = None) -> Any:
        """Run a cloud function; returns the value carried by its Ok."""
        handler = self.hooks.function(name)
        if handler is None:
            raise UnknownFunctionError(name)
        request = FunctionRequest(name=name, params=copy.deepcopy(params or {}),
                                  context=context or RequestContext())
        result = await invoke(handler, request)
        if isinstance(result, Err):
            raise HookRejectedError(result.message)
        return result.document

    # --- Lifecycle ------------------------------------------------------------------
    def reset(self, data_only: bool = False) -> None:
        """Clear every collection, and hooks + functions unless ``data_only``."""
        self.store.reset()
        if not data_only:
            self.hooks.clear()

    def stats(self) -> Dict[str, Any]:
        return self.store.stats()

    # --- Internal -------------------------------------------------------------------
    def _draft(self, prior: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
        """prior + plain fields, with operators applied against prior values."""
        plain, ops = extract_ops(_strip_reserved(payload))
        draft = copy.deepcopy(prior)
        draft.update(plain)
        return apply_ops(draft, ops, self.config.debug)

    def _settle(self, draft: Dict[str, Any], outcome: Dict[str, Any]) -> Dict[str, Any]:
        """Resolve operators a before-hook left in its document against the draft."""
        plain, ops = extract_ops(_strip_reserved(outcome))
        for key in ops:
            if key in draft:
                plain[key] = copy.deepcopy(draft[key])
        return apply_ops(plain, ops, self.config.debug)

    def _page(self, limit: Optional[int], skip: int) -> tuple:
        if limit is None:
            limit = self.config.default_limit
        if limit < 0 or skip < 0:
            raise InvalidQueryError("limit and skip must be non-negative")
        if limit > self.config.hard_limit:
            warn("find_limit_clamped", requested=limit, clamped=self.config.hard_limit)
            limit = self.config.hard_limit
        if skip > self.config.max_skip:
            warn("find_skip_clamped", requested=skip, clamped=self.config.max_skip)
            skip = self.config.max_skip
        return limit, skip


def _strip_reserved(payload: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise TypeError(f"Payload must be a dict, got {type(payload).__name__}")
    return {k: v for k, v in payload.items() if k not in RESERVED_FIELDS}
