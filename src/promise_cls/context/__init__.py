"""Ambient context store and the adapter the engine reads it through."""

from promise_cls.context.namespace import (
    EMPTY_CONTEXT,
    AmbientContext,
    Namespace,
    create_namespace,
    destroy_namespace,
    get_namespace,
    iter_namespaces,
    reset_namespaces,
)
from promise_cls.context.stack import ContextStack, ContextStore, contexts_equal

__all__ = [
    "EMPTY_CONTEXT",
    "AmbientContext",
    "Namespace",
    "create_namespace",
    "get_namespace",
    "destroy_namespace",
    "iter_namespaces",
    "reset_namespaces",
    "ContextStack",
    "ContextStore",
    "contexts_equal",
]
