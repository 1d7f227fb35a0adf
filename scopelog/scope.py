"""Task-local storage for the fields of the active logging scope.

The current scope lives in a ``ContextVar``. asyncio runs every task in a copy
of the context that was current when the task was created, so a scope bound
inside one request handler is visible across its awaits and in tasks it spawns,
but never in a concurrently running sibling task.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Generator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import Any, TypeVar


T = TypeVar("T")

ScopeContext = Mapping[str, Any]

_current_scope: ContextVar[ScopeContext | None] = ContextVar("scopelog_scope", default=None)


def get_current() -> ScopeContext | None:
    """Return the scope bound to the running task, or ``None``."""

    return _current_scope.get()


@contextmanager
def bound_scope(context: Mapping[str, Any]) -> Generator[ScopeContext, None, None]:
    """Bind ``context`` as the current scope until the block exits.

    The stored mapping is a read-only snapshot; later changes to ``context``
    are not seen by code running inside the block.
    """

    snapshot: ScopeContext = MappingProxyType(dict(context))
    token = _current_scope.set(snapshot)
    try:
        yield snapshot
    finally:
        _current_scope.reset(token)


async def run_with_scope(context: Mapping[str, Any], unit_of_work: Callable[[], Awaitable[T]]) -> T:
    """Await ``unit_of_work()`` with ``context`` as the current scope.

    The previous scope is restored once the unit returns or raises.
    """

    with bound_scope(context):
        return await unit_of_work()
