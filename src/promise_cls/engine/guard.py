"""Binding guard: records which contexts a callback has been bound to.

The record lives on the callback itself (as an attribute) rather than in a
registry keyed by identity, so it travels with the function and is collected
with it.  Callables that cannot hold attributes (bound methods, builtins, classes,
objects with ``__slots__``) are simply not marked; the wrapper carries the
record for them.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any

from promise_cls.context.namespace import AmbientContext

BOUND_ATTR = "_cls_bound"
WRAPPER_ATTR = "__cls_wrapped__"
CAPTURE_ATTR = "__cls_context__"


@dataclass
class BindingRecord:
    """Contexts a callback was bound to, in bind order."""

    contexts: list[AmbientContext] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.contexts)

    def add(self, context: AmbientContext) -> None:
        self.contexts.append(context)


def _attrs(fn: Any) -> dict[str, Any] | None:
    # A bound method forwards attribute access to its function, which is
    # shared by every instance; never mark through it.
    if inspect.ismethod(fn):
        return None
    try:
        attrs = vars(fn)
    except TypeError:
        return None
    # Classes expose a read-only mappingproxy.
    return attrs if isinstance(attrs, dict) else None


def record_of(fn: Any) -> BindingRecord | None:
    attrs = _attrs(fn)
    if attrs is None:
        return None
    return attrs.get(BOUND_ATTR)


def can_mark(fn: Any) -> bool:
    return _attrs(fn) is not None


def mark(fn: Any, context: AmbientContext, record: BindingRecord | None = None) -> BindingRecord | None:
    """Record that ``fn`` was bound to ``context``.

    Passing ``record`` attaches that record to ``fn`` first when ``fn`` has
    none, which is how a wrapper shares the record of the callback it wraps.
    Returns the record, or ``None`` when ``fn`` cannot hold attributes.
    """
    attrs = _attrs(fn)
    if attrs is None:
        return None

    existing = attrs.get(BOUND_ATTR)
    if existing is None:
        existing = record if record is not None else BindingRecord()
        attrs[BOUND_ATTR] = existing
    existing.add(context)
    return existing


def attach(fn: Any, record: BindingRecord) -> None:
    """Share ``record`` with ``fn`` without adding a binding."""
    attrs = _attrs(fn)
    if attrs is not None:
        attrs[BOUND_ATTR] = record


def is_bound(fn: Any) -> list[AmbientContext]:
    """Contexts ``fn`` has been bound to, empty when never bound."""
    record = record_of(fn)
    return list(record.contexts) if record is not None else []


def binding_count(fn: Any) -> int:
    record = record_of(fn)
    return record.count if record is not None else 0


def is_wrapper(fn: Any) -> bool:
    """True for callables produced by the callback wrapper."""
    attrs = _attrs(fn)
    return attrs is not None and WRAPPER_ATTR in attrs


def unwrap(fn: Any) -> Any:
    """The raw callback behind a wrapper, or ``fn`` itself."""
    while is_wrapper(fn):
        fn = vars(fn)[WRAPPER_ATTR]
    return fn


def captured_context(fn: Any) -> AmbientContext | None:
    """The context a wrapper was created for, ``None`` for anything else."""
    attrs = _attrs(fn)
    if attrs is None:
        return None
    return attrs.get(CAPTURE_ATTR)
