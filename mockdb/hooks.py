"""Lifecycle hooks and cloud functions.

Hook rule set:
  - No hook registered for (collection, stage): the write auto-commits
  - before* hooks run on a draft and may veto (Err) or replace the draft (Ok(document))
  - after* hooks see the committed document; their outcome never undoes the commit
  - Handlers may be plain callables or coroutine functions; the pipeline awaits either
"""
from __future__ import annotations
import copy
import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

from .errors import HookRejectedError
from .logging_util import debug, warn


class HookStage(str, Enum):
    BEFORE_SAVE = "beforeSave"
    AFTER_SAVE = "afterSave"
    BEFORE_DELETE = "beforeDelete"
    AFTER_DELETE = "afterDelete"


@dataclass
class RequestContext:
    user: Optional[Dict[str, Any]] = None
    master: bool = False


@dataclass
class HookRequest:
    collection: str
    object: Dict[str, Any]
    original: Optional[Dict[str, Any]] = None
    context: RequestContext = field(default_factory=RequestContext)

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self.context.user

    @property
    def master(self) -> bool:
        return self.context.master


@dataclass
class FunctionRequest:
    name: str
    params: Dict[str, Any] = field(default_factory=dict)
    context: RequestContext = field(default_factory=RequestContext)

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self.context.user

    @property
    def master(self) -> bool:
        return self.context.master


@dataclass
class Ok:
    document: Any = None


@dataclass
class Err:
    message: str


HookResult = Union[Ok, Err]
Handler = Callable[[Union[HookRequest, FunctionRequest]], Union[HookResult, None, Awaitable[Union[HookResult, None]]]]


class HookRegistry:
    """Per-database store of lifecycle hooks and cloud functions."""

    def __init__(self):
        self._hooks: Dict[Tuple[str, HookStage], Handler] = {}
        self._functions: Dict[str, Handler] = {}

    def register(self, collection: str, stage: Union[HookStage, str], handler: Handler) -> None:
        stage = HookStage(stage)
        self._hooks[(collection, stage)] = handler
        debug("hook_registered", collection=collection, stage=stage.value)

    def get(self, collection: str, stage: Union[HookStage, str]) -> Optional[Handler]:
        return self._hooks.get((collection, HookStage(stage)))

    def define(self, name: str, handler: Handler) -> None:
        self._functions[name] = handler
        debug("function_defined", name=name)

    def function(self, name: str) -> Optional[Handler]:
        return self._functions.get(name)

    def clear(self) -> None:
        self._hooks = {}
        self._functions = {}


async def invoke(handler: Handler, request: Union[HookRequest, FunctionRequest]) -> HookResult:
    """Call ``handler`` and wait for its Ok/Err; ``None`` counts as Ok()."""
    outcome = handler(request)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    if outcome is None:
        return Ok()
    if not isinstance(outcome, (Ok, Err)):
        raise TypeError(f"Hook must return Ok, Err or None, got {type(outcome).__name__}")
    return outcome


async def run_before(registry: HookRegistry, stage: HookStage, request: HookRequest) -> Dict[str, Any]:
    """Run a before-hook if one is registered and return the document to commit.

    That is the Ok(document) override when given, otherwise request.object,
    which the hook may have edited in place.
    Raises HookRejectedError carrying the hook's message verbatim on Err.
    """
    handler = registry.get(request.collection, stage)
    if handler is None:
        return request.object
    request.object = copy.deepcopy(request.object)
    result = await invoke(handler, request)
    if isinstance(result, Err):
        debug("hook_rejected", collection=request.collection, stage=stage.value, message=result.message)
        raise HookRejectedError(result.message)
    if result.document is not None:
        if not isinstance(result.document, dict):
            raise TypeError("Ok(document) override must be a dict")
        return result.document
    return request.object


async def run_after(registry: HookRegistry, stage: HookStage, request: HookRequest) -> None:
    handler = registry.get(request.collection, stage)
    if handler is None:
        return
    request.object = copy.deepcopy(request.object)
    result = await invoke(handler, request)
    if isinstance(result, Err):
        warn("after_hook_error_ignored", collection=request.collection, stage=stage.value, message=result.message)
