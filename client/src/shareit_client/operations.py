"""Bridge between backend calls and store transitions.

Every operation dispatches pending, then exactly one of fulfilled or
rejected. Backend errors never escape: they become a rejected transition with
a readable reason.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Mapping, TypeVar

from .actions import Operation, OperationMeta, fulfilled, pending, rejected
from .errors import describe_error
from .store import Store

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    operation: Operation
    request_id: str
    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_operation(
    store: Store,
    operation: Operation,
    call: Callable[[], Awaitable[T]],
    arg: Mapping[str, Any] | None = None,
) -> OperationResult[T]:
    """Run `call` and report its lifecycle to the store."""
    meta = OperationMeta(operation=operation, arg=dict(arg or {}))
    store.dispatch(pending(meta))
    try:
        value = await call()
    except Exception as e:
        reason = describe_error(e)
        logger.warning("%s failed: %s", operation, e, exc_info=True)
        store.dispatch(rejected(meta, reason))
        return OperationResult(operation, meta.request_id, error=reason)

    store.dispatch(fulfilled(meta, value))
    return OperationResult(operation, meta.request_id, value=value)


async def in_thread(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking SDK call without stalling the event loop."""
    return await asyncio.to_thread(func, *args, **kwargs)
