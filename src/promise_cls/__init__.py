"""
promise-cls - ambient context propagation through promise chains.

- promise_cls.context: Namespaces of request-scoped state (contextvars)
- promise_cls.promise: Bluebird-style promise library on asyncio
- promise_cls.engine: Patches a promise library so every callback runs in
  the context active when it was registered
"""

__version__ = "0.4.0"

from promise_cls.context import (
    EMPTY_CONTEXT,
    AmbientContext,
    ContextStack,
    Namespace,
    create_namespace,
    destroy_namespace,
    get_namespace,
    reset_namespaces,
)
from promise_cls.core import configure_logging, get_logger, get_settings
from promise_cls.engine import Patcher, is_patched, new_patched_copy, patch
from promise_cls.promise import Disposer, OperationalError, Promise

__all__ = [
    "__version__",
    "patch",
    "Patcher",
    "is_patched",
    "new_patched_copy",
    "Namespace",
    "AmbientContext",
    "EMPTY_CONTEXT",
    "ContextStack",
    "create_namespace",
    "get_namespace",
    "destroy_namespace",
    "reset_namespaces",
    "Promise",
    "Disposer",
    "OperationalError",
    "configure_logging",
    "get_logger",
    "get_settings",
]
