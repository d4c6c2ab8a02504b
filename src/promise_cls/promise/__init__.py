"""Bluebird-style promise library on asyncio, the default patch target."""

from promise_cls.promise.promise import (
    FULFILLED,
    PENDING,
    REJECTED,
    OperationalError,
    Promise,
    hybridmethod,
)
from promise_cls.promise.resources import Disposer
from promise_cls.promise.scheduler import AsyncQueue

__all__ = [
    "Promise",
    "Disposer",
    "OperationalError",
    "hybridmethod",
    "AsyncQueue",
    "PENDING",
    "FULFILLED",
    "REJECTED",
]
