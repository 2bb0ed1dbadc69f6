"""Error taxonomy.

Every error raised by the store carries a Parse-style numeric ``code`` and a
human readable ``message`` so callers can tell kinds apart without string
matching. Nothing here is retried or swallowed by the store.
"""
from __future__ import annotations
from typing import Any, Dict, Optional

# Codes follow the REST API the store emulates where one exists.
INTERNAL_SERVER_ERROR = 1
INVALID_QUERY = 102
INCORRECT_TYPE = 111
INVALID_NESTED_KEY = 121
SCRIPT_FAILED = 141


class MockDBError(Exception):
    """Base class for mockdb errors."""
    code: int = INTERNAL_SERVER_ERROR

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "error": type(self).__name__, "message": self.message}


class UnknownOperatorError(MockDBError):
    """Raised when a write carries an unrecognized ``__op`` tag."""
    code = INVALID_NESTED_KEY

    def __init__(self, field: str, op: Any = None):
        super().__init__(f"Unknown update operator: {op!r} on field {field!r}")
        self.field = field
        self.op = op


class NotAnArrayError(MockDBError):
    """Raised when an array-only operator targets a present non-array field."""
    code = INCORRECT_TYPE

    def __init__(self, field: str, op: str):
        super().__init__(f"Can't perform {op} on non-array field {field!r}")
        self.field = field
        self.op = op


class TypeMismatchError(MockDBError):
    """Raised when an operand is incompatible with the stored value."""
    code = INCORRECT_TYPE


class HookRejectedError(MockDBError):
    """Raised when a before-hook or cloud function reports an error.

    ``message`` is the hook's message verbatim.
    """
    code = SCRIPT_FAILED


class InvalidQueryError(MockDBError):
    """Raised when a where-clause has an invalid shape."""
    code = INVALID_QUERY


class UnknownFunctionError(MockDBError):
    """Raised when running a cloud function nobody defined."""
    code = SCRIPT_FAILED

    def __init__(self, name: str):
        super().__init__(f"Invalid function: {name!r}")
        self.name = name
