"""Interception-and-rebinding engine."""

from promise_cls.engine.constructor import intercept_constructor
from promise_cls.engine.guard import BindingRecord, binding_count, is_bound, is_wrapper, mark, unwrap
from promise_cls.engine.patcher import (
    PATCH_MARKER,
    Patcher,
    PatchReport,
    is_patched,
    new_patched_copy,
    patch,
    patch_report,
)
from promise_cls.engine.table import DEFAULT_TABLE, BindMode, CallbackSlot, Owner, PatchEntry, Shape
from promise_cls.engine.wrapper import bind, wrap

__all__ = [
    "patch",
    "Patcher",
    "PatchReport",
    "PATCH_MARKER",
    "is_patched",
    "patch_report",
    "new_patched_copy",
    "intercept_constructor",
    "DEFAULT_TABLE",
    "PatchEntry",
    "CallbackSlot",
    "Owner",
    "BindMode",
    "Shape",
    "wrap",
    "bind",
    "BindingRecord",
    "mark",
    "is_bound",
    "binding_count",
    "is_wrapper",
    "unwrap",
]
