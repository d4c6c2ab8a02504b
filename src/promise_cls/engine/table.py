"""Method patch table: which promise-library methods carry user callbacks.

Manifesto:
    Supporting a new method should mean adding one row, not new control
    flow.  Each :class:`PatchEntry` states where the callbacks sit in the
    method's arguments, whether a slot holds a list of callbacks, whether
    the library calls them later (bind) or immediately (never bind), and
    which library versions have the method at all.

ARCHITECTURE
────────────
::

    PatchEntry(name, owner, shape, slots, mode, mandatory, applies)
      owner  ─ Owner.CTOR  class-level method (classmethod, staticmethod,
                           class side of a hybrid method)
               Owner.PROTO instance method (or instance side of a hybrid)
      slots  ─ CallbackSlot(position, keyword, array, role)
               position counts from the end when negative
      mode   ─ BindMode.DEFERRED bind at call time
               BindMode.NEVER    library calls it synchronously, leave alone
      shape  ─ documentation of the method family (Shape enum)

    DEFAULT_TABLE  ─ bluebird 3 surface of promise_cls.promise.Promise

Entries whose method does not exist on the target are skipped unless they
are ``mandatory``; entries whose ``applies`` predicate is false for the
target are skipped without looking for the method.

Tags:
    promise-cls, engine, patch-table, declarative

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Owner(str, Enum):
    """Where a patched method lives."""

    CTOR = "ctor"
    PROTO = "proto"


class BindMode(str, Enum):
    DEFERRED = "deferred"
    NEVER = "never"


class Shape(str, Enum):
    """Method families of the promise surface."""

    CONTINUATION = "continuation"
    VALUE_INTAKE = "value_intake"
    SYNC_INTAKE = "sync_intake"
    COLLECTION = "collection"
    RESOURCE = "resource"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class CallbackSlot:
    """One argument position (or keyword) that may hold a user callback."""

    position: int
    keyword: str | None = None
    array: bool = False
    role: str = "callback"


@dataclass(frozen=True)
class PatchEntry:
    name: str
    owner: Owner
    shape: Shape
    slots: tuple[CallbackSlot, ...] = ()
    mode: BindMode = BindMode.DEFERRED
    mandatory: bool = False
    applies: Callable[[Any], bool] | None = None

    @property
    def key(self) -> str:
        return f"{self.owner.value}.{self.name}"

    @property
    def binds(self) -> bool:
        """Whether applying this entry wraps anything."""
        return self.mode is BindMode.DEFERRED and bool(self.slots)

    def applies_to(self, library: Any) -> bool:
        return self.applies is None or bool(self.applies(library))


def library_version(library: Any) -> tuple[int, ...]:
    version = getattr(library, "version", None)
    if isinstance(version, str):
        return tuple(int(part) for part in version.split(".") if part.isdigit())
    if isinstance(version, tuple):
        return version
    return ()


def since(*version: int) -> Callable[[Any], bool]:
    """Applicability predicate: library version is at least ``version``."""
    return lambda library: library_version(library) >= version


def before(*version: int) -> Callable[[Any], bool]:
    """Applicability predicate: library version is lower than ``version``."""
    return lambda library: library_version(library) < version


def _one(name: str, position: int = 0, role: str = "handler") -> tuple[CallbackSlot, ...]:
    return (CallbackSlot(position, name, role=role),)


_ON_SETTLED = (
    CallbackSlot(0, "on_fulfilled", role="on_fulfilled"),
    CallbackSlot(1, "on_rejected", role="on_rejected"),
)

DEFAULT_TABLE: tuple[PatchEntry, ...] = (
    # Continuations
    PatchEntry("then", Owner.PROTO, Shape.CONTINUATION, _ON_SETTLED, mandatory=True),
    PatchEntry("catch", Owner.PROTO, Shape.CONTINUATION, (CallbackSlot(-1, role="handler"),)),
    PatchEntry("error", Owner.PROTO, Shape.CONTINUATION, _one("handler")),
    PatchEntry("finally_", Owner.PROTO, Shape.CONTINUATION, _one("handler")),
    PatchEntry("lastly", Owner.PROTO, Shape.CONTINUATION, _one("handler")),
    PatchEntry("tap", Owner.PROTO, Shape.CONTINUATION, _one("handler")),
    PatchEntry("spread", Owner.PROTO, Shape.CONTINUATION, _one("fn")),
    PatchEntry("progressed", Owner.PROTO, Shape.CONTINUATION, _one("handler"), applies=before(3)),
    PatchEntry(
        "then_all",
        Owner.PROTO,
        Shape.COLLECTION,
        (CallbackSlot(0, "handlers", array=True, role="handler"),),
    ),
    # Terminal observers
    PatchEntry("done", Owner.PROTO, Shape.TERMINAL, _ON_SETTLED),
    PatchEntry("as_callback", Owner.PROTO, Shape.TERMINAL, _one("callback")),
    PatchEntry("nodeify", Owner.PROTO, Shape.TERMINAL, _one("callback")),
    # Static value intake
    PatchEntry("resolve", Owner.CTOR, Shape.VALUE_INTAKE),
    PatchEntry("reject", Owner.CTOR, Shape.VALUE_INTAKE),
    PatchEntry("delay", Owner.CTOR, Shape.VALUE_INTAKE),
    # Synchronous intake: the library calls these before returning
    PatchEntry("try_", Owner.CTOR, Shape.SYNC_INTAKE, _one("fn"), mode=BindMode.NEVER),
    PatchEntry("attempt", Owner.CTOR, Shape.SYNC_INTAKE, _one("fn"), mode=BindMode.NEVER),
    # Collections
    PatchEntry("all", Owner.CTOR, Shape.COLLECTION),
    PatchEntry("all", Owner.PROTO, Shape.COLLECTION),
    PatchEntry("map", Owner.CTOR, Shape.COLLECTION, _one("fn", 1)),
    PatchEntry("map", Owner.PROTO, Shape.COLLECTION, _one("fn")),
    PatchEntry("each", Owner.CTOR, Shape.COLLECTION, _one("fn", 1)),
    PatchEntry("each", Owner.PROTO, Shape.COLLECTION, _one("fn")),
    PatchEntry("filter", Owner.CTOR, Shape.COLLECTION, _one("fn", 1)),
    PatchEntry("filter", Owner.PROTO, Shape.COLLECTION, _one("fn")),
    PatchEntry("reduce", Owner.CTOR, Shape.COLLECTION, _one("fn", 1)),
    PatchEntry("reduce", Owner.PROTO, Shape.COLLECTION, _one("fn")),
    # Resources: the use callback and the release callback have separate capture points
    PatchEntry("using", Owner.CTOR, Shape.RESOURCE, (CallbackSlot(-1, role="use"),)),
    PatchEntry("disposer", Owner.PROTO, Shape.RESOURCE, _one("release", role="release")),
)


def entries_for(table: tuple[PatchEntry, ...], library: Any) -> list[PatchEntry]:
    """Entries of ``table`` that apply to ``library``."""
    return [entry for entry in table if entry.applies_to(library)]
