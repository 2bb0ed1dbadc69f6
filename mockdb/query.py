"""Query predicate evaluator.

Compiles a where-clause into a predicate over stored documents::

    {"price": {"$gt": 20}, "brand": pointer}            AND of field constraints
    {"$or": [{"price": 20}, {"price": 50}]}             union of sub-clauses
    {"objectId": "abc", "$relatedTo": {...}}            identity lookup
    {"$relatedTo": {"object": pointer, "key": "items"}} relation membership

Sub-query operators ($select, $inQuery) re-enter ``match`` against the whole
store. Nesting depth is bounded by ``StoreConfig.max_query_depth``; a cyclic
chain therefore fails with InvalidQueryError rather than exhausting the stack.
"""
from __future__ import annotations
import copy
import re
from datetime import datetime
from numbers import Number
from typing import Any, Callable, Dict, List, Optional

from .base import StoreLike
from .config import StoreConfig
from .equality import objects_equal
from .errors import InvalidQueryError
from .logging_util import trace
from .types import MISSING, is_pointer, is_date, is_relation, deserialize

Predicate = Callable[[Dict[str, Any]], bool]

QUOTE_RE = re.compile(r"\\Q|\\E")
REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}


class QueryEngine:
    """Evaluates where-clauses against one store."""

    def __init__(self, store: StoreLike, config: Optional[StoreConfig] = None):
        self.store = store
        self.config = config or StoreConfig()
        self._depth = 0

    # --- Public API -----------------------------------------------------------------
    def match(self, collection: str, where: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Deep copies of every document in ``collection`` satisfying ``where``."""
        trace("match", self.config.debug, collection=collection, where=where)
        if self._depth >= self.config.max_query_depth:
            raise InvalidQueryError(
                f"Query nesting exceeds {self.config.max_query_depth} levels (cyclic $inQuery/$select?)")
        self._depth += 1
        try:
            predicate = self.compile(where or {})
            matches = [doc for doc in self.store.documents(collection) if predicate(doc)]
        finally:
            self._depth -= 1
        trace("matches", self.config.debug, collection=collection, count=len(matches))
        return copy.deepcopy(matches)

    def compile(self, where: Dict[str, Any]) -> Predicate:
        if not isinstance(where, dict):
            raise InvalidQueryError(f"Where clause must be an object, got {type(where).__name__}")

        if "$or" in where:
            clauses = where["$or"]
            if not isinstance(clauses, list) or not all(isinstance(c, dict) for c in clauses):
                raise InvalidQueryError("$or requires a list of where clauses")
            predicates = [self.compile(clause) for clause in clauses]
            return lambda doc: any([p(doc) for p in predicates])

        object_id = where.get("objectId", MISSING)
        if object_id is not MISSING and not isinstance(object_id, dict):
            related = where.get("$relatedTo", MISSING)

            def by_id(doc: Dict[str, Any]) -> bool:
                if doc.get("objectId") != object_id:
                    return False
                if related is not MISSING:
                    return self._related_to(doc.get("objectId"), related)
                return True
            return by_id

        for key in where:
            if key.startswith("$") and key != "$relatedTo":
                raise InvalidQueryError(f"Unsupported top-level operator: {key}")

        def conjunction(doc: Dict[str, Any]) -> bool:
            return all(self.evaluate(doc, constraint, key) for key, constraint in where.items())
        return conjunction

    def evaluate(self, document: Dict[str, Any], constraint: Any, key: str) -> bool:
        """Match one (key, constraint) pair of a where-clause against ``document``."""
        if not isinstance(constraint, dict):
            return objects_equal(document.get(key, MISSING), constraint)

        # objects that actually represent scalar values
        if is_pointer(constraint) or is_date(constraint):
            return objects_equal(deserialize(document.get(key, MISSING), key), _operand(constraint))

        if key == "$relatedTo":
            return self._related_to(document.get("objectId"), constraint)

        left = deserialize(document.get(key, MISSING), key)
        for name, operand in constraint.items():
            value = _operand(operand)
            if name.startswith("$"):
                if not self._apply(name, left, value, constraint):
                    return False
            # shorthand equality on a property of the field: {"size": {"width": 3}}
            elif not objects_equal(_attr(left, name), value):
                return False
        return True

    # --- Operators ------------------------------------------------------------------
    def _apply(self, name: str, left: Any, value: Any, constraint: Dict[str, Any]) -> bool:
        if name == "$exists":
            present = left is not MISSING and left is not None
            return present == bool(value)
        elif name == "$in":
            return any(objects_equal(left, v) for v in _as_list(name, value))
        elif name == "$nin":
            return all(not objects_equal(left, v) for v in _as_list(name, value))
        elif name == "$eq":
            return objects_equal(left, value)
        elif name == "$ne":
            return not objects_equal(left, value)
        elif name == "$lt":
            return _comparable(left, value) and left < value
        elif name == "$lte":
            return _comparable(left, value) and left <= value
        elif name == "$gt":
            return _comparable(left, value) and left > value
        elif name == "$gte":
            return _comparable(left, value) and left >= value
        elif name == "$regex":
            return _regex(left, value, constraint.get("$options", ""))
        elif name == "$options":
            # consumed by $regex
            if "$regex" not in constraint:
                raise InvalidQueryError("$options is only valid alongside $regex")
            return True
        elif name == "$select":
            return self._select(left, value) > 0
        elif name == "$inQuery":
            return self._in_query(left, value)
        elif name == "$all":
            if not isinstance(left, list):
                return False
            return all(any(objects_equal(want, have) for have in left) for want in _as_list(name, value))
        elif name == "$relatedTo":
            return self._related_to(left, value)
        raise InvalidQueryError(f"Unsupported query operator: {name}")

    def _select(self, left: Any, value: Any) -> int:
        """Count sub-query matches whose ``key`` field equals this value."""
        if not isinstance(value, dict) or not isinstance(value.get("query"), dict) or "key" not in value:
            raise InvalidQueryError("$select requires {query: {className, where}, key}")
        query, foreign_key = value["query"], value["key"]
        matches = self.match(_class_name("$select", query), query.get("where") or {})
        return len([m for m in matches if objects_equal(m.get(foreign_key, MISSING), left)])

    def _in_query(self, left: Any, value: Any) -> bool:
        if not isinstance(value, dict):
            raise InvalidQueryError("$inQuery requires {className, where}")
        matches = self.match(_class_name("$inQuery", value), value.get("where") or {})
        if not left:
            return False
        if is_relation(left):
            ids = left.get("ids") or []
            return any(m.get("objectId") in ids for m in matches)
        target = _attr(left, "objectId")
        return target is not MISSING and any(m.get("objectId") == target for m in matches)

    def _related_to(self, object_id: Any, value: Any) -> bool:
        """True if ``object_id`` is a member of ``value.object[value.key]``."""
        if not isinstance(value, dict) or not is_pointer(value.get("object")) or "key" not in value:
            raise InvalidQueryError("$relatedTo requires {object: Pointer, key}")
        pointer = value["object"]
        owner = self.store.get(pointer["className"], pointer["objectId"])
        if owner is None:
            return False
        relation = owner.get(value["key"])
        if not isinstance(relation, dict):
            return False
        return object_id in (relation.get("ids") or [])


# --- Helpers ------------------------------------------------------------------------
def _attr(value: Any, name: str) -> Any:
    if isinstance(value, dict):
        return value.get(name, MISSING)
    return MISSING


def _operand(value: Any) -> Any:
    """Resolve a Date-tagged query operand; a malformed one is a query error."""
    if not is_date(value):
        return value
    resolved = deserialize(value)
    if resolved is value:
        raise InvalidQueryError(f"Invalid Date: {value.get('iso')!r}")
    return resolved


def _as_list(name: str, value: Any) -> list:
    if not isinstance(value, list):
        raise InvalidQueryError(f"{name} requires an array operand")
    return value


def _class_name(name: str, query: Dict[str, Any]) -> str:
    class_name = query.get("className")
    if not isinstance(class_name, str) or not class_name:
        raise InvalidQueryError(f"{name} sub-query needs a className")
    return class_name


def _comparable(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return False
    if isinstance(left, Number) and isinstance(right, Number):
        return True
    if isinstance(left, str) and isinstance(right, str):
        return True
    return isinstance(left, datetime) and isinstance(right, datetime)


def _regex(left: Any, pattern: Any, options: Any) -> bool:
    if not isinstance(pattern, str):
        raise InvalidQueryError("$regex requires a string pattern")
    if not isinstance(left, str):
        return False
    flags = 0
    for opt in options or "":
        if opt not in REGEX_FLAGS:
            raise InvalidQueryError(f"Unsupported $options flag: {opt!r}")
        flags |= REGEX_FLAGS[opt]
    try:
        compiled = re.compile(QUOTE_RE.sub("", pattern), flags)
    except re.error as e:
        raise InvalidQueryError(f"Invalid $regex: {e}") from e
    return compiled.search(left) is not None
