"""
Error types raised by promise-cls itself.

The engine raises these for setup problems (a library it cannot patch) and
for misuse of the ambient store. An exception raised inside a user callback
is a different matter: it reaches the caller exactly as it was raised and is
never turned into one of the types below.

Manifesto:
    - **Categorized:** callers branch on ``category`` or on the class, never
      on message text
    - **Located:** each error names the library, method and namespace it
      concerns, when known
    - **Chained:** an underlying exception is kept as ``__cause__``

Hierarchy::

    PromiseClsError                 category defaults to INTERNAL
      ├── ConfigError               CONFIG
      │     └── PatchConfigError    library shape does not fit the patch table
      ├── ContextError              CONTEXT: write with no active context
      └── GuardViolationError       INTERNAL: callback wrapped twice

Examples:
    >>> error = PatchConfigError("Promise.then is missing")
    >>> error.category
    <ErrorCategory.CONFIG: 'CONFIG'>
    >>> error.with_context(library="Promise", method="then").context.method
    'then'

Tags:
    error-handling, exception-hierarchy, promise-cls

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Coarse classification carried by every promise-cls error."""

    CONFIG = "CONFIG"
    CONTEXT = "CONTEXT"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


_LOCATION_FIELDS = ("library", "method", "owner", "namespace")


@dataclass
class ErrorContext:
    """
    Where an error happened.

    ``owner`` is ``"ctor"`` or ``"proto"``, matching the patch table.
    Anything that is not one of the named fields lands in ``metadata``.
    """

    library: str | None = None
    method: str | None = None
    owner: str | None = None
    namespace: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Named fields that are set, then metadata, as one flat dict."""
        data = {name: getattr(self, name) for name in _LOCATION_FIELDS if getattr(self, name) is not None}
        data.update(self.metadata)
        return data


class PromiseClsError(Exception):
    """
    Root of the promise-cls error hierarchy.

    Subclasses only override ``default_category``.

    Examples:
        >>> PromiseClsError("broken").category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> PromiseClsError("broken").to_dict()["error_type"]
        'PromiseClsError'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category if category is not None else self.default_category
        self.context = context if context is not None else ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> PromiseClsError:
        """
        Fill in location fields and return ``self`` so it can be raised inline::

            raise PatchConfigError("no then").with_context(library="Promise", method="then")

        Unknown keys go to ``context.metadata``.
        """
        for key, value in kwargs.items():
            if key in _LOCATION_FIELDS:
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serializable form for structured log events."""
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
        }
        location = self.context.to_dict()
        if location:
            data["context"] = location
        if self.cause is not None:
            data["cause"] = str(self.cause)
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


class ConfigError(PromiseClsError):
    """Invalid engine configuration."""

    default_category = ErrorCategory.CONFIG


class PatchConfigError(ConfigError):
    """
    The target library cannot be patched.

    Raised for a missing mandatory method (the constructor or ``then``), a
    method whose owner differs from the table, or a library that is already
    patched for another namespace. Nothing is modified when it is raised.
    """


class ContextError(PromiseClsError):
    """Ambient store written to while no context is active."""

    default_category = ErrorCategory.CONTEXT


class GuardViolationError(PromiseClsError):
    """The engine tried to bind a callback that is already bound."""

    default_category = ErrorCategory.INTERNAL


def categorize_error(error: Exception) -> ErrorCategory:
    """Category of ``error``; UNKNOWN for anything promise-cls did not raise."""
    if isinstance(error, PromiseClsError):
        return error.category
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "PromiseClsError",
    "ConfigError",
    "PatchConfigError",
    "ContextError",
    "GuardViolationError",
    "categorize_error",
]
