"""Patcher: applies the method patch table to a promise library.

Manifesto:
    A callback must observe the context that was active when the call that
    registered it was made.  The patcher replaces every callback-bearing
    method of the target library with a version that reads the active
    context first, before the original method does any work of its own,
    binds the callback arguments to it, and delegates.

ARCHITECTURE
────────────
::

    patch(namespace, Promise)
        └── Patcher(namespace).apply(Promise)
              1. already patched?   same store → no-op, other store → PatchConfigError
              2. validate           every applicable entry resolved up front;
                                    missing mandatory / wrong owner → PatchConfigError
              3. constructor        intercept_constructor()
              4. entries            for each entry that binds:
                                      capture = stack.current()   ← call time
                                      args[slot] = bind(args[slot], capture)
                                      return original(*args)
              5. marker             __cls_patched__ = PatchState(store, report)

    Member kinds handled: plain function (proto), classmethod / staticmethod
    (ctor), and hybrid methods exposing ``fclass`` / ``finstance`` (either
    side, patched independently).

Example::

    ns = create_namespace("request")
    Patched = new_patched_copy(ns)

    with ns.scope():
        ns.set("user", "alice")
        p = Patched.resolve(1).then(lambda v: ns.get("user"))

Tags:
    promise-cls, engine, patcher, monkey-patching, context-propagation

Doc-Types:
    api-reference
"""

from __future__ import annotations

import functools
import inspect
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from promise_cls.context.stack import ContextStack, ContextStore
from promise_cls.core.errors import PatchConfigError
from promise_cls.core.logging import get_logger
from promise_cls.core.settings import PromiseClsSettings, get_settings
from promise_cls.engine.constructor import intercept_constructor
from promise_cls.engine.table import DEFAULT_TABLE, Owner, PatchEntry
from promise_cls.engine.wrapper import binder

logger = get_logger(__name__)

PATCH_MARKER = "__cls_patched__"


@dataclass
class PatchReport:
    """What one ``apply`` did to a library."""

    library: str
    namespace: str
    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    passthrough: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "library": self.library,
            "namespace": self.namespace,
            "applied": list(self.applied),
            "skipped": list(self.skipped),
            "passthrough": list(self.passthrough),
        }


@dataclass(frozen=True)
class PatchState:
    store: Any
    report: PatchReport


def _is_hybrid(member: Any) -> bool:
    return hasattr(member, "fclass") and hasattr(member, "finstance")


def _member_kind(member: Any) -> str:
    if isinstance(member, classmethod):
        return "classmethod"
    if isinstance(member, staticmethod):
        return "staticmethod"
    if _is_hybrid(member):
        return "hybrid"
    if inspect.isfunction(member):
        return "function"
    return type(member).__name__


def _owner_matches(entry: PatchEntry, member: Any) -> bool:
    kind = _member_kind(member)
    if entry.owner is Owner.CTOR:
        return kind in ("classmethod", "staticmethod", "hybrid")
    if kind == "hybrid":
        return member.finstance is not None
    return kind == "function"


class Patcher:
    """Binds the callbacks of one promise library to one context store."""

    def __init__(
        self,
        store: ContextStore | ContextStack,
        table: Iterable[PatchEntry] | None = None,
        settings: PromiseClsSettings | None = None,
    ):
        if isinstance(store, ContextStack):
            self.stack = store
        elif isinstance(store, ContextStore):
            self.stack = ContextStack(store)
        else:
            raise PatchConfigError(f"{store!r} is not a context store")
        self.table = DEFAULT_TABLE if table is None else tuple(table)
        self.settings = settings or get_settings()

    @property
    def store(self) -> Any:
        return self.stack.store

    def apply(self, library: type) -> PatchReport:
        """Patch ``library`` in place. Safe to call again for the same store."""
        if not isinstance(library, type):
            raise PatchConfigError(f"Cannot patch {library!r}: expected a promise class")

        state = library.__dict__.get(PATCH_MARKER)
        if state is not None:
            if state.store is self.store:
                logger.debug("library_already_patched", library=library.__name__, namespace=self.stack.name)
                return state.report
            raise PatchConfigError(
                f"{library.__name__} is already patched for namespace '{state.report.namespace}'"
            ).with_context(library=library.__name__, namespace=self.stack.name)

        report = PatchReport(library=library.__name__, namespace=self.stack.name)
        entries = self._resolve_entries(library, report)

        intercept_constructor(library, self.stack)
        report.applied.append("ctor.__init__")

        for entry in entries:
            if not entry.binds:
                report.passthrough.append(entry.key)
                continue
            # Re-read: a hybrid method's other side may already be patched.
            member = inspect.getattr_static(library, entry.name)
            setattr(library, entry.name, self._patch_member(entry, member))
            report.applied.append(entry.key)
            logger.debug(
                "patch_entry_applied",
                library=library.__name__,
                entry=entry.key,
                shape=entry.shape.value,
            )

        setattr(library, PATCH_MARKER, PatchState(self.store, report))
        logger.info(
            "library_patched",
            library=library.__name__,
            namespace=self.stack.name,
            applied=len(report.applied),
            skipped=len(report.skipped),
            passthrough=len(report.passthrough),
        )
        return report

    def _resolve_entries(self, library: type, report: PatchReport) -> list[PatchEntry]:
        """Validate the table against ``library`` before touching it."""
        found = []
        for entry in self.table:
            if not entry.applies_to(library):
                report.skipped.append(entry.key)
                logger.debug("patch_entry_skipped", library=library.__name__, entry=entry.key, reason="not_applicable")
                continue

            member = inspect.getattr_static(library, entry.name, None)
            if member is None:
                self._missing(library, entry, report)
                continue

            if not _owner_matches(entry, member):
                raise PatchConfigError(
                    f"{library.__name__}.{entry.name} is a {_member_kind(member)}, "
                    f"expected a {entry.owner.value} method"
                ).with_context(library=library.__name__, method=entry.name, owner=entry.owner.value)

            found.append(entry)
        return found

    def _missing(self, library: type, entry: PatchEntry, report: PatchReport) -> None:
        report.skipped.append(entry.key)
        if not entry.mandatory:
            logger.debug("patch_entry_skipped", library=library.__name__, entry=entry.key, reason="missing")
            return

        error = PatchConfigError(
            f"{library.__name__} has no '{entry.name}' method"
        ).with_context(library=library.__name__, method=entry.name, owner=entry.owner.value)
        if self.settings.strict_patching:
            raise error
        logger.warning("patch_entry_missing", **error.to_dict())

    def _patch_member(self, entry: PatchEntry, member: Any) -> Any:
        kind = _member_kind(member)
        if kind == "classmethod":
            return classmethod(self._wrap_function(entry, member.__func__, offset=1))
        if kind == "staticmethod":
            return staticmethod(self._wrap_function(entry, member.__func__, offset=0))
        if kind == "hybrid":
            if entry.owner is Owner.CTOR:
                return type(member)(self._wrap_function(entry, member.fclass, offset=1), member.finstance)
            return type(member)(member.fclass, self._wrap_function(entry, member.finstance, offset=1))
        return self._wrap_function(entry, member, offset=1)

    def _wrap_function(self, entry: PatchEntry, fn: Callable[..., Any], *, offset: int) -> Callable[..., Any]:
        stack = self.stack
        slots = entry.slots
        trace = self.settings.trace_bindings

        @functools.wraps(fn)
        def patched(*args: Any, **kwargs: Any) -> Any:
            # Capture before the original method runs any code of its own.
            bind_value = binder(stack.current(), stack, trace=trace)

            head, rest = args[:offset], list(args[offset:])
            for slot in slots:
                if slot.keyword is not None and slot.keyword in kwargs:
                    kwargs[slot.keyword] = bind_value(kwargs[slot.keyword], role=slot.role, array=slot.array)
                    continue
                index = slot.position if slot.position >= 0 else len(rest) + slot.position
                if 0 <= index < len(rest):
                    rest[index] = bind_value(rest[index], role=slot.role, array=slot.array)

            return fn(*head, *rest, **kwargs)

        return patched


# ── Public entry points ──────────────────────────────────────────────────


def patch(store: ContextStore, library: type) -> None:
    """Bind every callback registered through ``library`` to ``store``'s context.

    Idempotent: patching the same library for the same store again does
    nothing.
    """
    Patcher(store).apply(library)


def is_patched(library: type) -> bool:
    return isinstance(library, type) and PATCH_MARKER in library.__dict__


def patch_report(library: type) -> PatchReport | None:
    if not is_patched(library):
        return None
    return library.__dict__[PATCH_MARKER].report


def new_patched_copy(store: ContextStore, library: type | None = None) -> type:
    """Patch a fresh copy of ``library`` (default: the bundled ``Promise``) and return it."""
    if library is None:
        from promise_cls.promise import Promise

        library = Promise
    copy = library.new_library_copy()
    Patcher(store).apply(copy)
    return copy
