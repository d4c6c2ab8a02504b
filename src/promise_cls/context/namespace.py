"""Ambient context store: named namespaces of request-scoped state.

Manifesto:
    Request-scoped state (a request id, the authenticated user) should be
    readable anywhere in the logical thread of execution without being
    passed through every function.  A :class:`Namespace` holds one such
    logical thread per :class:`AmbientContext`; ``contextvars`` keeps the
    active context per task and per thread.

ARCHITECTURE
────────────
::

    Namespace("request")
      ├── .active                 ─ current AmbientContext (EMPTY_CONTEXT if none)
      ├── .run(fn)                ─ fn(ctx) inside a fresh child context
      ├── .scope()                ─ same, as a context manager
      ├── .run_with(ctx, fn, ...) ─ fn(...) with ctx active, always restored
      ├── .bind(fn, ctx=None)     ─ fn' that runs inside ctx
      ├── .set(key, value)        ─ write into the active context
      └── .get(key)               ─ read through the parent chain

    Module registry:
      create_namespace(name) / get_namespace(name) / destroy_namespace(name)
      reset_namespaces()  ─ clear for testing

A child context sees every key of its parent; writes stay local to the child,
so nested scopes compose like a stack.

Example::

    ns = create_namespace("request")

    def handle(ctx):
        ns.set("request_id", "abc-123")
        return ns.get("request_id")

    ns.run(handle)   # "abc-123"
    ns.get("request_id")   # None, no context active

Tags:
    promise-cls, context, contextvars, namespace, ambient-state

Doc-Types:
    api-reference
"""

from __future__ import annotations

import functools
import itertools
from collections.abc import Callable, Generator, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, TypeVar

from promise_cls.core.errors import ContextError
from promise_cls.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_context_ids = itertools.count(1)


class AmbientContext:
    """One logical thread of ambient key/value state.

    Contexts are compared by identity. Lookups fall back to the parent
    chain; ``set`` only ever writes to this context.
    """

    def __init__(self, parent: AmbientContext | None = None, *, frozen: bool = False):
        self._parent = parent
        self._values: dict[str, Any] = {}
        self._frozen = frozen
        self.id = 0 if frozen else next(_context_ids)

    @property
    def parent(self) -> AmbientContext | None:
        return self._parent

    @property
    def is_empty(self) -> bool:
        """True only for the "no context active" sentinel."""
        return self._frozen

    def get(self, key: str, default: Any = None) -> Any:
        context: AmbientContext | None = self
        while context is not None:
            if key in context._values:
                return context._values[key]
            context = context._parent
        return default

    def set(self, key: str, value: Any) -> Any:
        if self._frozen:
            raise ContextError(f"Cannot set '{key}' on the empty context")
        self._values[key] = value
        return value

    def __contains__(self, key: object) -> bool:
        context: AmbientContext | None = self
        while context is not None:
            if key in context._values:
                return True
            context = context._parent
        return False

    def __getitem__(self, key: str) -> Any:
        if key not in self:
            raise KeyError(key)
        return self.get(key)

    def to_dict(self) -> dict[str, Any]:
        """Flatten the parent chain, nearest values winning."""
        chain = []
        context: AmbientContext | None = self
        while context is not None:
            chain.append(context._values)
            context = context._parent
        merged: dict[str, Any] = {}
        for values in reversed(chain):
            merged.update(values)
        return merged

    def __repr__(self) -> str:
        if self._frozen:
            return "AmbientContext(<empty>)"
        return f"AmbientContext(id={self.id}, values={self.to_dict()!r})"


#: The stable "no context active" sentinel shared by every namespace.
EMPTY_CONTEXT = AmbientContext(frozen=True)


class Namespace:
    """A named ambient context store.

    Example:
        >>> ns = Namespace("request")
        >>> with ns.scope():
        ...     ns.set("user", "alice")
        ...     ns.get("user")
        'alice'
        >>> ns.active is EMPTY_CONTEXT
        True
    """

    def __init__(self, name: str):
        self.name = name
        self._active: ContextVar[AmbientContext] = ContextVar(
            f"promise_cls.namespace.{name}", default=EMPTY_CONTEXT
        )

    @property
    def active(self) -> AmbientContext:
        """The context active in the calling turn, ``EMPTY_CONTEXT`` if none."""
        return self._active.get()

    def create_context(self) -> AmbientContext:
        """Create a child of the active context without entering it."""
        parent = self.active
        return AmbientContext(None if parent.is_empty else parent)

    def run_with(self, context: AmbientContext | None, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
        """Call ``fn`` with ``context`` active, restoring the previous one on return or raise."""
        token = self._active.set(EMPTY_CONTEXT if context is None else context)
        try:
            return fn(*args, **kwargs)
        finally:
            self._active.reset(token)

    def run(self, fn: Callable[[AmbientContext], T]) -> T:
        """Run ``fn(context)`` inside a fresh child context and return its result."""
        context = self.create_context()
        return self.run_with(context, fn, context)

    @contextmanager
    def scope(self) -> Generator[AmbientContext, None, None]:
        """Context manager form of :meth:`run`."""
        context = self.create_context()
        token = self._active.set(context)
        try:
            yield context
        finally:
            self._active.reset(token)

    def bind(self, fn: Callable[..., T], context: AmbientContext | None = None) -> Callable[..., T]:
        """Return a function that always runs ``fn`` inside ``context`` (default: active)."""
        target = self.active if context is None else context

        @functools.wraps(fn)
        def bound(*args: Any, **kwargs: Any) -> T:
            return self.run_with(target, fn, *args, **kwargs)

        return bound

    def set(self, key: str, value: Any) -> Any:
        """Write ``key`` into the active context."""
        active = self.active
        if active.is_empty:
            raise ContextError(
                "No context available. Namespace.run() or Namespace.scope() must be used first."
            ).with_context(namespace=self.name, key=key)
        return active.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        """Read ``key`` from the active context."""
        return self.active.get(key, default)

    def __repr__(self) -> str:
        return f"Namespace({self.name!r})"


# ── Registry ─────────────────────────────────────────────────────────────

_namespaces: dict[str, Namespace] = {}


def create_namespace(name: str | None = None) -> Namespace:
    """Create (or return the existing) namespace called ``name``."""
    if name is None:
        from promise_cls.core.settings import get_settings

        name = get_settings().default_namespace

    existing = _namespaces.get(name)
    if existing is not None:
        return existing

    namespace = Namespace(name)
    _namespaces[name] = namespace
    logger.debug("namespace_created", namespace=name)
    return namespace


def get_namespace(name: str | None = None) -> Namespace | None:
    """Look up a namespace; ``None`` if it was never created."""
    if name is None:
        from promise_cls.core.settings import get_settings

        name = get_settings().default_namespace
    return _namespaces.get(name)


def destroy_namespace(name: str) -> None:
    """Forget a namespace. Callbacks already bound to its contexts keep working."""
    if _namespaces.pop(name, None) is not None:
        logger.debug("namespace_destroyed", namespace=name)


def iter_namespaces() -> Iterator[Namespace]:
    return iter(list(_namespaces.values()))


def reset_namespaces() -> None:
    """Clear the registry (for testing)."""
    _namespaces.clear()
