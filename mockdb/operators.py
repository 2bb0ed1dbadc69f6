"""Atomic update operators.

A write payload may carry ``{"__op": Tag, ...}`` in place of a plain value. Such
fields are split out by ``extract_ops`` and applied by ``apply_ops`` against the
result document being assembled, which already holds the prior stored values.

Supported tags: Increment, Add, AddUnique, Remove, Delete, AddRelation,
RemoveRelation, Batch. Anything else raises ``UnknownOperatorError``.
"""
from __future__ import annotations
import copy
from numbers import Number
from typing import Any, Dict, Iterable, List, Tuple

from .equality import objects_equal
from .errors import UnknownOperatorError, NotAnArrayError, TypeMismatchError
from .logging_util import trace
from .types import MISSING, is_op, is_relation

ARRAY_OPS = ("Add", "AddUnique", "Remove")
RELATION_OPS = ("AddRelation", "RemoveRelation")


def extract_ops(payload: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Dict[str, Any]]]:
    """Split ``payload`` into (plain assignments, operations). Input is not modified."""
    plain: Dict[str, Any] = {}
    ops: Dict[str, Dict[str, Any]] = {}
    for key, value in payload.items():
        if is_op(value):
            ops[key] = copy.deepcopy(value)
        else:
            plain[key] = copy.deepcopy(value)
    return plain, ops


def apply_ops(result: Dict[str, Any], ops: Dict[str, Dict[str, Any]], debug: bool = False) -> Dict[str, Any]:
    """Apply every operation in payload order. Mutates and returns ``result``."""
    if ops:
        trace("ops", debug, ops=ops)
    for key, op in ops.items():
        apply_operation(result, key, op)
    return result


def apply_operation(result: Dict[str, Any], key: str, op: Dict[str, Any]) -> None:
    tag = op.get("__op")
    if tag == "Increment":
        _increment(result, key, op)
    elif tag == "Add":
        array = _ensure_array(result, key, tag)
        array.extend(_objects(op, key))
    elif tag == "AddUnique":
        array = _ensure_array(result, key, tag)
        for obj in _objects(op, key):
            if not any(objects_equal(existing, obj) for existing in array):
                array.append(obj)
    elif tag == "Remove":
        array = _ensure_array(result, key, tag)
        doomed = _objects(op, key)
        result[key] = [item for item in array if not any(objects_equal(item, obj) for obj in doomed)]
    elif tag == "Delete":
        result.pop(key, None)
    elif tag == "AddRelation":
        _add_relation(result, key, op)
    elif tag == "RemoveRelation":
        _remove_relation(result, key, op)
    elif tag == "Batch":
        _batch(result, key, op)
    else:
        raise UnknownOperatorError(key, tag)


# --- Internal -----------------------------------------------------------------------
def _objects(op: Dict[str, Any], key: str) -> List[Any]:
    objects = op.get("objects", [])
    if not isinstance(objects, list):
        raise TypeMismatchError(f"{op.get('__op')} on {key!r} expects a list of objects")
    return objects


def _is_numeric(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _increment(result: Dict[str, Any], key: str, op: Dict[str, Any]) -> None:
    amount = op.get("amount", 1)
    if not _is_numeric(amount):
        raise TypeMismatchError(f"Increment on {key!r} needs a numeric amount, got {amount!r}")
    current = result.get(key, MISSING)
    if current is MISSING or current is None:
        current = 0
    if not _is_numeric(current):
        raise TypeMismatchError(f"Cannot increment non-numeric field {key!r}")
    result[key] = current + amount


def _ensure_array(result: Dict[str, Any], key: str, tag: str) -> List[Any]:
    """Absent (or null) field becomes []; a present non-array is an error."""
    current = result.get(key)
    if current is None:
        result[key] = []
    elif not isinstance(current, list):
        raise NotAnArrayError(key, tag)
    return result[key]


def _ensure_relation(result: Dict[str, Any], key: str, objects: Iterable[Any]) -> Dict[str, Any]:
    current = result.get(key)
    class_name = next((o.get("className") for o in objects if isinstance(o, dict)), None)
    if is_relation(current):
        current.setdefault("ids", [])
        if current.get("className") is None:
            current["className"] = class_name
        return current
    if current is not None:
        raise TypeMismatchError(f"Field {key!r} holds a non-relation value")
    result[key] = {"__type": "Relation", "className": class_name, "ids": []}
    return result[key]


def _member_ids(objects: Iterable[Any], key: str) -> List[str]:
    ids = []
    for obj in objects:
        if isinstance(obj, dict) and obj.get("objectId") is not None:
            ids.append(obj["objectId"])
        elif isinstance(obj, str):
            ids.append(obj)
        else:
            raise TypeMismatchError(f"Relation member for {key!r} has no objectId: {obj!r}")
    return ids


def _add_relation(result: Dict[str, Any], key: str, op: Dict[str, Any]) -> None:
    objects = _objects(op, key)
    relation = _ensure_relation(result, key, objects)
    relation["ids"] = sorted(set(relation["ids"]) | set(_member_ids(objects, key)))


def _remove_relation(result: Dict[str, Any], key: str, op: Dict[str, Any]) -> None:
    objects = _objects(op, key)
    relation = _ensure_relation(result, key, objects)
    relation["ids"] = sorted(set(relation["ids"]) - set(_member_ids(objects, key)))


def _batch(result: Dict[str, Any], key: str, op: Dict[str, Any]) -> None:
    """Add members first, then remove others, against the same relation field."""
    entries = op.get("ops", [])
    if not isinstance(entries, list):
        raise TypeMismatchError(f"Batch on {key!r} expects a list of ops")
    add = remove = None
    for entry in entries:
        tag = entry.get("__op") if isinstance(entry, dict) else None
        if tag == "AddRelation":
            add = add or entry
        elif tag == "RemoveRelation":
            remove = remove or entry
        else:
            raise UnknownOperatorError(key, tag)
    if add is not None:
        _add_relation(result, key, add)
    if remove is not None:
        _remove_relation(result, key, remove)
