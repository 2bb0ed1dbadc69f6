"""Tagged wire values (Pointer, Date, Relation, Operation) and their helpers."""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

RESERVED_FIELDS = ("objectId", "createdAt", "updatedAt")
TIMESTAMP_FIELDS = ("createdAt", "updatedAt")


class _Missing:
    """Marker for a field that is not present at all (distinct from None)."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __deepcopy__(self, memo):
        return self


MISSING = _Missing()


def is_op(value: Any) -> bool:
    return isinstance(value, dict) and "__op" in value


def is_pointer(value: Any) -> bool:
    return isinstance(value, dict) and value.get("__type") == "Pointer"


def is_date(value: Any) -> bool:
    return isinstance(value, dict) and value.get("__type") == "Date"


def is_relation(value: Any) -> bool:
    return isinstance(value, dict) and value.get("__type") == "Relation"


def is_object_like(value: Any) -> bool:
    """Pointer or hydrated object: anything carrying className + objectId."""
    return isinstance(value, dict) and "className" in value and "objectId" in value


def make_pointer(class_name: str, object_id: str) -> Dict[str, Any]:
    return {"__type": "Pointer", "className": class_name, "objectId": object_id}


def make_relation(class_name: Optional[str], ids: Iterable[str] = ()) -> Dict[str, Any]:
    return {"__type": "Relation", "className": class_name, "ids": sorted(set(ids))}


def format_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_iso(raw: str) -> datetime:
    if not isinstance(raw, str):
        raise ValueError(f"Invalid isoformat value: {raw!r}")
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    moment = datetime.fromisoformat(raw)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def make_date(moment: datetime) -> Dict[str, Any]:
    return {"__type": "Date", "iso": format_iso(moment)}


def now_iso() -> str:
    return format_iso(datetime.now(timezone.utc))


def deserialize(value: Any, key: Optional[str] = None) -> Any:
    """Resolve Date-tagged values (and stored timestamps) to ``datetime``.

    Unparseable values come back unchanged; stored documents are schema-less.
    """
    if is_date(value):
        raw = value.get("iso")
    elif key in TIMESTAMP_FIELDS and isinstance(value, str):
        raw = value
    else:
        return value
    try:
        return parse_iso(raw)
    except ValueError:
        return value
