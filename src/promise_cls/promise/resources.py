"""Disposer / using resource management.

::

    conn = pool.acquire().disposer(lambda c: c.close())
    Promise.using(conn, lambda c: c.query("select 1"))

``using`` waits for every acquisition to settle.  When all succeed the
handler runs and, once its outcome settles, every release callback is called
with its resource, in order.  When any acquisition fails the handler is
skipped, the resources that were acquired are still released, and the
result rejects with the acquisition error.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from promise_cls.promise.promise import Promise


class Disposer:
    """A pending resource paired with the callback that releases it."""

    def __init__(self, promise: Promise, release: Callable[[Any], Any]):
        if not callable(release):
            raise TypeError(f"disposer() expects a callable, got {release!r}")
        self.promise = promise
        self.release = release

    def __repr__(self) -> str:
        return f"Disposer({self.promise!r})"


def _raiser(error: BaseException) -> Callable[[Any], Any]:
    def rethrow(_: Any) -> Any:
        raise error

    return rethrow


def _release_all(cls: type[Promise], inputs: list[Any], outcomes: list[tuple[bool, Any]]) -> Promise:
    chain = cls.resolve(None)
    for source, (acquired, resource) in zip(inputs, outcomes):
        if isinstance(source, Disposer) and acquired:
            chain = chain._chain(lambda _, source=source, resource=resource: source.release(resource))
    return chain


def run_using(cls: type[Promise], inputs: list[Any], handler: Callable[..., Any], *, spread: bool) -> Promise:
    if not inputs:
        raise TypeError("using() requires at least one resource")

    def reflect(source: Any) -> Promise:
        acquisition = source.promise if isinstance(source, Disposer) else source
        return cls.resolve(acquisition)._chain(lambda value: (True, value), lambda error: (False, error))

    def on_acquired(outcomes: list[tuple[bool, Any]]) -> Any:
        failure = next((value for acquired, value in outcomes if not acquired), None)
        if failure is not None:
            return _release_all(cls, inputs, outcomes)._chain(_raiser(failure))

        resources = [value for _, value in outcomes]
        result = cls.try_(handler, *resources) if spread else cls.try_(handler, resources)

        def on_fulfilled(value: Any) -> Any:
            return _release_all(cls, inputs, outcomes)._chain(lambda _: value)

        def on_rejected(error: BaseException) -> Any:
            return _release_all(cls, inputs, outcomes)._chain(_raiser(error))

        return result._chain(on_fulfilled, on_rejected)

    return cls.all([reflect(source) for source in inputs])._chain(on_acquired)
