"""Callback wrapper: runs a user callback inside the context captured for it.

::

    bound = wrap(handler, context, stack)
    bound(value)
      ├── first call only: guard.mark(handler, context)
      └── stack.run_with(context, handler, value)   ─ result / error unchanged

Non-callables (``None`` passed for an absent handler) pass through
untouched.  Wrapping
an existing wrapper is a guard violation; :func:`bind` is the checked entry
point the patcher uses and passes wrappers through instead.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any

from promise_cls.context.namespace import AmbientContext
from promise_cls.context.stack import ContextStack
from promise_cls.core.errors import GuardViolationError
from promise_cls.core.logging import get_logger
from promise_cls.engine import guard

logger = get_logger(__name__)


def wrap(
    raw: Any,
    context: AmbientContext,
    stack: ContextStack,
    *,
    role: str = "callback",
    trace: bool = False,
) -> Any:
    """Return ``raw`` bound to ``context``; non-callables are returned as is."""
    if not callable(raw):
        return raw
    if guard.is_wrapper(raw):
        raise GuardViolationError(
            "Callback is already bound to a capture point"
        ).with_context(namespace=stack.name, role=role)

    marked = False

    @functools.wraps(raw, updated=())
    def bound(*args: Any, **kwargs: Any) -> Any:
        nonlocal marked
        if not marked:
            marked = True
            record = guard.mark(raw, context)
            if record is None:
                guard.mark(bound, context)
            else:
                guard.attach(bound, record)
            if trace:
                logger.debug(
                    "callback_bound",
                    namespace=stack.name,
                    role=role,
                    callback=getattr(raw, "__qualname__", repr(raw)),
                    context_id=context.id,
                )
        return stack.run_with(context, raw, *args, **kwargs)

    setattr(bound, guard.WRAPPER_ATTR, raw)
    setattr(bound, guard.CAPTURE_ATTR, context)
    return bound


def bind(
    value: Any,
    context: AmbientContext,
    stack: ContextStack,
    *,
    role: str = "callback",
    trace: bool = False,
) -> Any:
    """Like :func:`wrap`, but an existing wrapper keeps its own capture point."""
    if not callable(value) or guard.is_wrapper(value):
        return value
    return wrap(value, context, stack, role=role, trace=trace)


def bind_each(
    values: Any,
    context: AmbientContext,
    stack: ContextStack,
    *,
    role: str = "callback",
    trace: bool = False,
) -> Any:
    """Bind every element of a list or tuple to the one captured context."""
    if isinstance(values, (list, tuple)):
        return type(values)(bind(value, context, stack, role=role, trace=trace) for value in values)
    return bind(values, context, stack, role=role, trace=trace)


def binder(context: AmbientContext, stack: ContextStack, *, trace: bool = False) -> Callable[..., Any]:
    """Shorthand used by the patcher: ``binder(ctx, stack)(value, role=..., array=...)``."""

    def bind_value(value: Any, *, role: str = "callback", array: bool = False) -> Any:
        if array:
            return bind_each(value, context, stack, role=role, trace=trace)
        return bind(value, context, stack, role=role, trace=trace)

    return bind_value
