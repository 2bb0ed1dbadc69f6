"""Representation-independent value equality.

Pointers, raw ids, hydrated objects and relations may all stand for the same
record, so equality is a cascade of checks rather than one canonical form. The
order of the checks matters and is asymmetric: a Relation on the left matches a
member on the right, not the other way round.
"""
from __future__ import annotations
from datetime import datetime
from typing import Any

from .types import MISSING, is_date, is_relation, deserialize


def _attr(value: Any, name: str) -> Any:
    if isinstance(value, dict):
        return value.get(name, MISSING)
    return MISSING


def _defined(value: Any) -> bool:
    return value is not MISSING and value is not None


def objects_equal(a: Any, b: Any) -> bool:
    if a is MISSING or b is MISSING:
        return False

    # scalars, and deep structural equality for lists / dicts
    if _loose_eq(a, b):
        return True

    a_id, b_id = _attr(a, "id"), _attr(b, "id")
    if _defined(a_id) and a_id == b_id:
        return True

    if is_relation(a) and isinstance(a.get("ids"), list):
        member = b_id if _defined(b_id) else _attr(b, "objectId")
        if _defined(member) and member in a["ids"]:
            return True

    a_oid, b_oid = _attr(a, "objectId"), _attr(b, "objectId")
    if _defined(a_oid) and a_oid == b_oid:
        return True

    if is_date(a) and is_date(b):
        return deserialize(a) == deserialize(b)

    if _defined(a_id) and a_id == b_oid:
        return True
    if _defined(b_id) and b_id == a_oid:
        return True
    return False


def _loose_eq(a: Any, b: Any) -> bool:
    # a stored Date-tagged value against an already resolved datetime
    if isinstance(a, datetime) and is_date(b):
        return a == deserialize(b)
    if isinstance(b, datetime) and is_date(a):
        return deserialize(a) == b
    return a == b
