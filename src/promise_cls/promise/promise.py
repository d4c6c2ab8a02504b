"""Bluebird-style promises on top of asyncio.

Manifesto:
    The patching engine needs a promise library with the same surface as
    the one it was built for: constructor + ``then``, filtered ``catch``,
    collection combinators callable on the class and on instances, terminal
    observers, and the disposer/using resource pattern.  Callbacks never run
    synchronously: they go through :class:`~promise_cls.promise.scheduler.AsyncQueue`.

ARCHITECTURE
────────────
::

    Promise(executor)
      ├── continuations  then / catch / error / finally_ / lastly / tap / spread / then_all
      ├── terminal       done / as_callback / nodeify
      ├── value intake   resolve / reject / delay
      ├── sync intake    try_ / attempt            (callback runs immediately)
      ├── collections    all / map / each / filter / reduce   (class or instance)
      ├── resources      disposer / using
      └── plumbing       _chain / _add_reaction     (never patched)

    Promise.new_library_copy()  ─ fresh subclass, patched independently

Every public continuation is written in terms of other public methods or of
the private ``_chain``; e.g. ``catch(handler)`` delegates to ``then``, and
``error`` delegates to ``catch``.

Example::

    async def main():
        p = Promise.resolve(2).then(lambda v: v * 21)
        assert await p == 42

Tags:
    promise-cls, promise, asyncio, bluebird, continuations

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Iterable
from types import MappingProxyType
from typing import Any

from promise_cls.promise import combinators, resources
from promise_cls.promise.scheduler import AsyncQueue

PENDING = "pending"
FULFILLED = "fulfilled"
REJECTED = "rejected"

_MISSING = object()

Reaction = tuple[Callable[[Any], Any] | None, Callable[[Any], Any] | None, "Promise | None"]


class OperationalError(Exception):
    """An expected, recoverable failure; the only kind ``.error()`` handles."""


class hybridmethod:
    """Method callable on the class (``Promise.map(values, fn)``) and on instances (``p.map(fn)``)."""

    def __init__(self, fclass: Callable[..., Any], finstance: Callable[..., Any] | None = None):
        self.fclass = fclass
        self.finstance = finstance
        self.__doc__ = fclass.__doc__
        self.__name__ = getattr(fclass, "__name__", None)

    def instancemethod(self, finstance: Callable[..., Any]) -> hybridmethod:
        return type(self)(self.fclass, finstance)

    def __get__(self, obj: Any, objtype: type | None = None) -> Callable[..., Any]:
        if obj is None or self.finstance is None:
            owner = objtype if objtype is not None else type(obj)
            return self.fclass.__get__(owner, owner)
        return self.finstance.__get__(obj, objtype)


def _callable_or_none(fn: Any) -> Callable[..., Any] | None:
    return fn if callable(fn) else None


def _is_error_class(value: Any) -> bool:
    return isinstance(value, type) and issubclass(value, BaseException)


class Promise:
    """A bluebird-style promise whose callbacks always run asynchronously."""

    _library_root = True
    _queue = AsyncQueue()
    version = (3, 5)

    def __init__(self, executor: Callable[[Callable[..., None], Callable[[BaseException], None]], Any] | None = None):
        self._state = PENDING
        self._result: Any = None
        self._reactions: list[Reaction] = []

        if executor is not None:
            resolve, reject = self._resolving_functions()
            try:
                executor(resolve, reject)
            except Exception as exc:
                reject(exc)

    # ── State ────────────────────────────────────────────────────

    def is_pending(self) -> bool:
        return self._state == PENDING

    def is_fulfilled(self) -> bool:
        return self._state == FULFILLED

    def is_rejected(self) -> bool:
        return self._state == REJECTED

    def value(self) -> Any:
        if self._state != FULFILLED:
            raise RuntimeError(f"Promise is {self._state}, not fulfilled")
        return self._result

    def reason(self) -> BaseException:
        if self._state != REJECTED:
            raise RuntimeError(f"Promise is {self._state}, not rejected")
        return self._result

    def __repr__(self) -> str:
        if self._state == PENDING:
            return f"<{type(self).__name__} pending>"
        return f"<{type(self).__name__} {self._state}: {self._result!r}>"

    # ── Resolution plumbing ──────────────────────────────────────

    def _resolving_functions(self) -> tuple[Callable[..., None], Callable[[BaseException], None]]:
        settled = False

        def resolve(value: Any = None) -> None:
            nonlocal settled
            if settled:
                return
            settled = True
            self._resolve(value)

        def reject(reason: BaseException) -> None:
            nonlocal settled
            if settled:
                return
            settled = True
            self._reject(reason)

        return resolve, reject

    def _resolve(self, value: Any) -> None:
        if value is self:
            self._reject(TypeError("A promise cannot be resolved with itself"))
            return

        if isinstance(value, Promise):
            value._add_reaction(self._fulfill, self._reject)
            return

        if asyncio.isfuture(value):
            value.add_done_callback(self._settle_from_future)
            return

        then = getattr(value, "then", None)
        if callable(then):
            resolve, reject = self._resolving_functions()
            try:
                then(resolve, reject)
            except Exception as exc:
                reject(exc)
            return

        self._fulfill(value)

    def _settle_from_future(self, future: asyncio.Future) -> None:
        if future.cancelled():
            self._reject(asyncio.CancelledError())
            return
        error = future.exception()
        if error is not None:
            self._reject(error)
        else:
            self._resolve(future.result())

    def _fulfill(self, value: Any) -> None:
        if self._state != PENDING:
            return
        self._state = FULFILLED
        self._result = value
        self._flush()

    def _reject(self, reason: BaseException) -> None:
        if self._state != PENDING:
            return
        self._state = REJECTED
        self._result = reason
        self._flush()

    def _flush(self) -> None:
        reactions, self._reactions = self._reactions, []
        for reaction in reactions:
            self._queue.invoke(self._run_reaction, reaction)

    def _add_reaction(
        self,
        on_fulfilled: Callable[[Any], Any] | None,
        on_rejected: Callable[[Any], Any] | None,
        child: Promise | None = None,
    ) -> None:
        reaction = (on_fulfilled, on_rejected, child)
        if self._state == PENDING:
            self._reactions.append(reaction)
        else:
            self._queue.invoke(self._run_reaction, reaction)

    def _run_reaction(self, reaction: Reaction) -> None:
        on_fulfilled, on_rejected, child = reaction
        handler = on_fulfilled if self._state == FULFILLED else on_rejected

        if child is None:
            # Observer reactions (await, done, adoption) have nothing to settle.
            if handler is not None:
                try:
                    handler(self._result)
                except Exception as exc:
                    self._queue.report(exc, self)
            return

        if handler is None:
            if self._state == FULFILLED:
                child._fulfill(self._result)
            else:
                child._reject(self._result)
            return

        try:
            result = handler(self._result)
        except Exception as exc:
            child._reject(exc)
        else:
            child._resolve(result)

    def _chain(
        self,
        on_fulfilled: Callable[[Any], Any] | None,
        on_rejected: Callable[[Any], Any] | None = None,
    ) -> Promise:
        """Unpatched ``then`` for library internals."""
        child = type(self)()
        self._add_reaction(on_fulfilled, on_rejected, child)
        return child

    def __await__(self):
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def on_fulfilled(value: Any) -> None:
            if not future.done():
                future.set_result(value)

        def on_rejected(reason: Any) -> None:
            if future.done():
                return
            if not isinstance(reason, BaseException):
                reason = OperationalError(repr(reason))
            future.set_exception(reason)

        self._add_reaction(on_fulfilled, on_rejected)
        return future.__await__()

    # ── Continuations ────────────────────────────────────────────

    def then(self, on_fulfilled: Callable[[Any], Any] | None = None, on_rejected: Callable[[Any], Any] | None = None) -> Promise:
        child = type(self)()
        self._add_reaction(_callable_or_none(on_fulfilled), _callable_or_none(on_rejected), child)
        return child

    def catch(self, *args: Any) -> Promise:
        """``catch(handler)`` or ``catch(ErrorType, ..., handler)``."""
        if not args:
            raise TypeError("catch() requires a handler")
        *error_types, handler = args
        if _is_error_class(inspect.unwrap(handler)):
            raise TypeError("catch() requires a handler after the exception classes")
        if not error_types:
            return self.then(None, handler)

        for error_type in error_types:
            if not _is_error_class(error_type):
                raise TypeError(f"catch() filter must be an exception class, got {error_type!r}")
        filters = tuple(error_types)

        def filtered(reason: BaseException) -> Any:
            if isinstance(reason, filters):
                return handler(reason)
            raise reason

        return self._chain(None, filtered)

    def error(self, handler: Callable[[OperationalError], Any]) -> Promise:
        return self.catch(OperationalError, handler)

    def finally_(self, handler: Callable[[], Any]) -> Promise:
        cls = type(self)

        def on_fulfilled(value: Any) -> Any:
            return cls.resolve(handler())._chain(lambda _: value)

        def on_rejected(reason: BaseException) -> Any:
            def rethrow(_: Any) -> Any:
                raise reason

            return cls.resolve(handler())._chain(rethrow)

        return self._chain(on_fulfilled, on_rejected)

    def lastly(self, handler: Callable[[], Any]) -> Promise:
        return self.finally_(handler)

    def tap(self, handler: Callable[[Any], Any]) -> Promise:
        cls = type(self)

        def on_fulfilled(value: Any) -> Any:
            return cls.resolve(handler(value))._chain(lambda _: value)

        return self._chain(on_fulfilled)

    def spread(self, fn: Callable[..., Any]) -> Promise:
        cls = type(self)
        return self._chain(lambda values: cls.all(values)._chain(lambda items: fn(*items)))

    def then_all(self, handlers: Iterable[Callable[[Any], Any]] | None = None) -> list[Promise]:
        return [self.then(handler) for handler in handlers or ()]

    # ── Terminal observers ───────────────────────────────────────

    def done(self, on_fulfilled: Callable[[Any], Any] | None = None, on_rejected: Callable[[Any], Any] | None = None) -> None:
        """Observe the outcome; an unhandled rejection goes to the loop exception handler."""
        queue = self._queue

        def fulfilled(value: Any) -> None:
            if on_fulfilled is not None:
                on_fulfilled(value)

        def rejected(reason: BaseException) -> None:
            if on_rejected is None:
                queue.report(reason, self)
            else:
                on_rejected(reason)

        self._add_reaction(fulfilled, rejected)

    def as_callback(self, callback: Callable[[BaseException | None, Any], Any] | None) -> Promise:
        """Node-style observer: ``callback(error, value)``. Returns this promise."""
        if callable(callback):
            self._add_reaction(lambda value: callback(None, value), lambda reason: callback(reason, None))
        return self

    def nodeify(self, callback: Callable[[BaseException | None, Any], Any] | None) -> Promise:
        return self.as_callback(callback)

    # ── Value intake ─────────────────────────────────────────────

    @classmethod
    def resolve(cls, value: Any = None) -> Promise:
        if type(value) is cls:
            return value
        return cls(lambda resolve, _reject: resolve(value))

    @classmethod
    def reject(cls, reason: BaseException) -> Promise:
        return cls(lambda _resolve, reject: reject(reason))

    @hybridmethod
    def delay(cls, seconds: float, value: Any = None) -> Promise:
        loop = asyncio.get_running_loop()
        return cls(lambda resolve, _reject: loop.call_later(seconds, resolve, value))

    @delay.instancemethod
    def delay(self, seconds: float) -> Promise:
        cls = type(self)
        return self._chain(lambda value: cls.delay(seconds, value))

    # ── Synchronous intake ───────────────────────────────────────

    @classmethod
    def try_(cls, fn: Callable[..., Any], *args: Any) -> Promise:
        """Call ``fn(*args)`` right now and wrap its outcome in a promise."""
        return cls(lambda resolve, _reject: resolve(fn(*args)))

    @classmethod
    def attempt(cls, fn: Callable[..., Any], *args: Any) -> Promise:
        return cls.try_(fn, *args)

    # ── Collections ──────────────────────────────────────────────

    @hybridmethod
    def all(cls, values: Any) -> Promise:
        return cls.resolve(values)._chain(lambda items: combinators.settle_all(cls, items))

    @all.instancemethod
    def all(self) -> Promise:
        return type(self).all(self)

    @hybridmethod
    def map(cls, values: Any, fn: Callable[[Any], Any]) -> Promise:
        return cls.all(values)._chain(lambda items: combinators.map_items(cls, items, fn))

    @map.instancemethod
    def map(self, fn: Callable[[Any], Any]) -> Promise:
        return type(self).map(self, fn)

    @hybridmethod
    def each(cls, values: Any, fn: Callable[[Any], Any]) -> Promise:
        return cls.all(values)._chain(lambda items: combinators.each_items(cls, items, fn))

    @each.instancemethod
    def each(self, fn: Callable[[Any], Any]) -> Promise:
        return type(self).each(self, fn)

    @hybridmethod
    def filter(cls, values: Any, fn: Callable[[Any], Any]) -> Promise:
        return cls.all(values)._chain(lambda items: combinators.filter_items(cls, items, fn))

    @filter.instancemethod
    def filter(self, fn: Callable[[Any], Any]) -> Promise:
        return type(self).filter(self, fn)

    @hybridmethod
    def reduce(cls, values: Any, fn: Callable[[Any, Any], Any], initial: Any = _MISSING) -> Promise:
        return cls.all(values)._chain(
            lambda items: combinators.reduce_items(cls, items, fn, initial, missing=_MISSING)
        )

    @reduce.instancemethod
    def reduce(self, fn: Callable[[Any, Any], Any], initial: Any = _MISSING) -> Promise:
        return type(self).reduce(self, fn, initial)

    # ── Resources ────────────────────────────────────────────────

    def disposer(self, release: Callable[[Any], Any]) -> resources.Disposer:
        return resources.Disposer(self, release)

    @classmethod
    def using(cls, *args: Any) -> Promise:
        """``using(d1, d2, ..., handler)`` or ``using([d1, d2], handler)``."""
        if len(args) < 2:
            raise TypeError("using() requires at least one resource and a handler")
        *inputs, handler = args
        spread = True
        if len(inputs) == 1 and isinstance(inputs[0], (list, tuple)):
            inputs = list(inputs[0])
            spread = False
        return resources.run_using(cls, inputs, handler, spread=spread)

    # ── Library copies ───────────────────────────────────────────

    @classmethod
    def new_library_copy(cls) -> type[Promise]:
        """Return a fresh, unpatched copy of the library.

        The copy carries the members the root class was defined with, so
        patching the root itself does not leak into later copies.
        """
        root = next(klass for klass in cls.__mro__ if klass.__dict__.get("_library_root"))
        members = dict(root._pristine_members)
        members.update(__module__=root.__module__, __qualname__=root.__qualname__)
        return type(root.__name__, (root,), members)


def _copied(name: str, member: Any) -> bool:
    if name == "_library_root":
        return False
    if name.startswith("__") and name.endswith("__"):
        # Only dunder methods; type() fills in the rest for the copy.
        return inspect.isfunction(member)
    return True


def _snapshot_members(klass: type) -> MappingProxyType:
    """Methods and class attributes as defined, before any patching."""
    return MappingProxyType({name: member for name, member in vars(klass).items() if _copied(name, member)})


Promise._pristine_members = _snapshot_members(Promise)
