"""Core primitives shared by the context store, the engine and the promise library."""

from promise_cls.core.errors import (
    ConfigError,
    ContextError,
    ErrorCategory,
    ErrorContext,
    GuardViolationError,
    PatchConfigError,
    PromiseClsError,
    categorize_error,
)
from promise_cls.core.logging import configure_logging, get_logger
from promise_cls.core.settings import PromiseClsSettings, clear_settings_cache, get_settings

__all__ = [
    # Errors
    "ErrorCategory",
    "ErrorContext",
    "PromiseClsError",
    "ConfigError",
    "PatchConfigError",
    "ContextError",
    "GuardViolationError",
    "categorize_error",
    # Logging
    "configure_logging",
    "get_logger",
    # Settings
    "PromiseClsSettings",
    "get_settings",
    "clear_settings_cache",
]
