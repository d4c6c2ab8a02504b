"""Collection helpers behind ``Promise.all`` / ``map`` / ``each`` / ``filter`` / ``reduce``.

Each helper receives the promise class and an already-settled list of items
and returns either a plain value or a promise of that class.  They only use
the private ``_chain`` / ``_add_reaction`` plumbing, so patching the public
methods never re-enters them.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from promise_cls.promise.promise import Promise


def settle_all(cls: type[Promise], items: Any) -> Any:
    """Promise of a list holding the fulfilled value of every item, in order."""
    items = list(items)
    if not items:
        return []

    def executor(resolve: Callable[..., None], reject: Callable[[BaseException], None]) -> None:
        results: list[Any] = [None] * len(items)
        remaining = [len(items)]

        for index, item in enumerate(items):

            def on_fulfilled(value: Any, index: int = index) -> None:
                results[index] = value
                remaining[0] -= 1
                if remaining[0] == 0:
                    resolve(results)

            cls.resolve(item)._add_reaction(on_fulfilled, reject)

    return cls(executor)


def map_items(cls: type[Promise], items: list[Any], fn: Callable[[Any], Any]) -> Any:
    return settle_all(cls, [fn(item) for item in items])


def each_items(cls: type[Promise], items: list[Any], fn: Callable[[Any], Any]) -> Any:
    """Call ``fn`` on each item in turn, waiting for any promise it returns."""
    chain = cls.resolve(None)
    for item in items:
        chain = chain._chain(lambda _, item=item: fn(item))
    return chain._chain(lambda _: items)


def filter_items(cls: type[Promise], items: list[Any], fn: Callable[[Any], Any]) -> Any:
    flags = settle_all(cls, [fn(item) for item in items])
    if isinstance(flags, list):
        return []
    return flags._chain(lambda keep: [item for item, flag in zip(items, keep) if flag])


def reduce_items(
    cls: type[Promise],
    items: list[Any],
    fn: Callable[[Any, Any], Any],
    initial: Any,
    *,
    missing: Any,
) -> Any:
    if initial is missing:
        if not items:
            raise TypeError("reduce() of empty sequence with no initial value")
        initial, items = items[0], items[1:]

    chain = cls.resolve(initial)
    for item in items:
        chain = chain._chain(lambda total, item=item: fn(total, item))
    return chain
