"""Context stack adapter: the only engine code that touches the ambient store.

The engine never reads or writes a ``ContextVar`` itself.  It asks this
façade for the current context at capture points and hands a captured
context back when a deferred callback finally runs.

::

    ContextStack(store)
      ├── .current()                  ─ active context, EMPTY_CONTEXT if none
      ├── .run_with(ctx, fn, *a, **k) ─ scoped enter/exit, restored on raise
      └── .bind_callback(ctx, fn)     ─ plain bound callable (no marking)

    contexts_equal(a, b)              ─ None and EMPTY_CONTEXT compare equal

Any object with an ``active`` attribute and a ``run_with`` method satisfies
:class:`ContextStore`; :class:`~promise_cls.context.namespace.Namespace` is
the bundled implementation.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

from promise_cls.context.namespace import EMPTY_CONTEXT, AmbientContext

T = TypeVar("T")


@runtime_checkable
class ContextStore(Protocol):
    """Ambient store contract consumed by the engine."""

    name: str

    @property
    def active(self) -> AmbientContext: ...

    def run_with(self, context: AmbientContext | None, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> T: ...

    def set(self, key: str, value: Any) -> Any: ...


class ContextStack:
    """Façade over one ambient context store."""

    def __init__(self, store: ContextStore):
        self.store = store

    @property
    def name(self) -> str:
        return self.store.name

    def current(self) -> AmbientContext:
        active = self.store.active
        return EMPTY_CONTEXT if active is None else active

    def run_with(self, context: AmbientContext, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
        return self.store.run_with(context, fn, *args, **kwargs)

    def bind_callback(self, context: AmbientContext, fn: Callable[..., T]) -> Callable[..., T]:
        def bound(*args: Any, **kwargs: Any) -> T:
            return self.store.run_with(context, fn, *args, **kwargs)

        return bound

    def __repr__(self) -> str:
        return f"ContextStack({self.name!r})"


def contexts_equal(actual: AmbientContext | None, expected: AmbientContext | None) -> bool:
    """Compare contexts by identity, treating ``None`` as the empty context."""
    if actual is None:
        actual = EMPTY_CONTEXT
    if expected is None:
        expected = EMPTY_CONTEXT
    return actual is expected
