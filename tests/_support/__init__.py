"""
Test support utilities for promise-cls tests.

Helpers that don't fit as pytest fixtures: the binding checks every
context-fidelity test runs inside its final handler, promise factories for
the resolution matrix, and small recording callables.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from promise_cls.context import EMPTY_CONTEXT, AmbientContext, Namespace, contexts_equal
from promise_cls.engine.guard import is_bound

_ids = itertools.count(1)


def check_context(ns: Namespace, fn: Any, expected: AmbientContext | None, sync: bool) -> None:
    """
    Assert that ``fn`` was bound to, and is running in, ``expected``.

    Call from inside ``fn`` itself. A callback running in the same turn it
    was registered must not have been bound; one running on a later turn
    must have been bound exactly once, to ``expected``.
    """
    bound = is_bound(fn)

    if sync:
        assert not bound, "Callback was unnecessarily bound as was called synchronously"
    else:
        assert bound, "Callback was not bound"
        assert len(bound) == 1, f"Callback was bound {len(bound)} times"
        assert contexts_equal(bound[0], expected), "Callback was bound to wrong context"

    assert contexts_equal(ns.active, expected), f"Context lost: expected {expected!r}, got {ns.active!r}"


def run_in_context(ns: Namespace, fn: Callable[[AmbientContext], Any]) -> Any:
    """Run ``fn(context)`` in a fresh context tagged with a unique ``_id``."""

    def tagged(context: AmbientContext) -> Any:
        ns.set("_id", next(_ids))
        return fn(context)

    return ns.run(tagged)


def attach_then_resolve(ns: Namespace, promise: Any, expected_value: Any, expected: AmbientContext | None) -> Any:
    """Attach a final ``then`` expecting fulfilment with ``expected_value``."""
    state = {"sync": True}

    def on_fulfilled(value: Any) -> Any:
        assert value == expected_value
        check_context(ns, on_fulfilled, expected, state["sync"])
        return value

    def on_rejected(error: BaseException) -> Any:
        raise AssertionError(f"Should have been fulfilled, got {error!r}")

    chained = promise.then(on_fulfilled, on_rejected)
    state["sync"] = False
    return chained


def attach_then_reject(ns: Namespace, promise: Any, expected_error: BaseException, expected: AmbientContext | None) -> Any:
    """Attach a final ``then`` expecting rejection with ``expected_error``."""
    state = {"sync": True}

    def on_fulfilled(value: Any) -> Any:
        raise AssertionError(f"Should have been rejected, got {value!r}")

    def on_rejected(error: BaseException) -> Any:
        if error is not expected_error:
            raise error
        check_context(ns, on_rejected, expected, state["sync"])
        return "handled"

    chained = promise.then(on_fulfilled, on_rejected)
    state["sync"] = False
    return chained


@dataclass
class Probe:
    """
    Recording callback.

    Each call stores the active context, the bindings visible at that
    moment and the arguments, then returns ``result(*args)`` (or the first
    argument when no result function is given).
    """

    ns: Namespace
    result: Callable[..., Any] | None = None
    calls: list[dict[str, Any]] = field(default_factory=list)

    def __call__(self, *args: Any) -> Any:
        self.calls.append({"context": self.ns.active, "bound": is_bound(self), "args": args})
        if self.result is not None:
            return self.result(*args)
        return args[0] if args else None

    @property
    def contexts(self) -> list[AmbientContext]:
        return [call["context"] for call in self.calls]

    @property
    def call_count(self) -> int:
        return len(self.calls)


# =============================================================================
# Promise factories for the resolution matrix
# =============================================================================


def make_resolved(library: type, value: Any, *, asynchronous: bool) -> Any:
    if not asynchronous:
        return library.resolve(value)
    loop = asyncio.get_running_loop()
    return library(lambda resolve, _reject: loop.call_soon(resolve, value))


def make_rejected(library: type, error: BaseException, *, asynchronous: bool) -> Any:
    if not asynchronous:
        return library.reject(error)
    loop = asyncio.get_running_loop()
    return library(lambda _resolve, reject: loop.call_soon(reject, error))


def make_future(value: Any = None, error: BaseException | None = None, *, asynchronous: bool) -> asyncio.Future:
    loop = asyncio.get_running_loop()
    future = loop.create_future()
    settle = (lambda: future.set_exception(error)) if error is not None else (lambda: future.set_result(value))
    if asynchronous:
        loop.call_soon(settle)
    else:
        settle()
    return future


async def next_turns(count: int = 3) -> None:
    """Let queued reactions run."""
    for _ in range(count):
        await asyncio.sleep(0)


__all__ = [
    "EMPTY_CONTEXT",
    "check_context",
    "run_in_context",
    "attach_then_resolve",
    "attach_then_reject",
    "Probe",
    "make_resolved",
    "make_rejected",
    "make_future",
    "next_turns",
]
