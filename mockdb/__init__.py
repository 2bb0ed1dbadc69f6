"""mockdb package initialization.

Single source of truth for the package version and the public surface so that
code, tests, and scripts import from one place.
"""

PACKAGE_VERSION = "0.4.0"  # Keep in sync with pyproject version.

from .errors import (  # noqa: E402
    MockDBError,
    UnknownOperatorError,
    NotAnArrayError,
    TypeMismatchError,
    HookRejectedError,
    InvalidQueryError,
    UnknownFunctionError,
)
from .config import StoreConfig  # noqa: E402
from .hooks import HookStage, RequestContext, HookRequest, Ok, Err  # noqa: E402
from .types import make_pointer, make_date, make_relation  # noqa: E402
from .database import MockDatabase  # noqa: E402

__all__ = [
    "PACKAGE_VERSION",
    "MockDatabase",
    "StoreConfig",
    "HookStage", "RequestContext", "HookRequest", "Ok", "Err",
    "make_pointer", "make_date", "make_relation",
    "MockDBError", "UnknownOperatorError", "NotAnArrayError", "TypeMismatchError",
    "HookRejectedError", "InvalidQueryError", "UnknownFunctionError",
]
