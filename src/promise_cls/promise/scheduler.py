"""Trampoline that runs promise reactions on a later turn of the event loop.

Reactions queued during one turn are drained together by a single
``loop.call_soon`` callback.  ``call_soon`` captures the ``contextvars``
context of whoever scheduled the drain, so every reaction in that drain runs
inside the first scheduler's context, not the one its callback was
registered in.  That is the context loss the patching engine repairs.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable
from typing import Any


class AsyncQueue:
    """Per-event-loop FIFO of pending reactions."""

    def __init__(self) -> None:
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: deque[tuple[Callable[..., Any], tuple[Any, ...]]] = deque()
        self._scheduled = False

    def invoke(self, fn: Callable[..., Any], *args: Any) -> None:
        """Queue ``fn(*args)`` for the next drain; never runs it synchronously."""
        loop = asyncio.get_running_loop()
        if loop is not self._loop:
            # A new loop (e.g. a new test): anything queued for the old one is gone.
            self._loop = loop
            self._queue = deque()
            self._scheduled = False

        self._queue.append((fn, args))
        if not self._scheduled:
            self._scheduled = True
            loop.call_soon(self._drain)

    def _drain(self) -> None:
        try:
            while self._queue:
                fn, args = self._queue.popleft()
                fn(*args)
        finally:
            self._scheduled = False

    def report(self, error: BaseException, promise: Any = None) -> None:
        """Hand an unhandled error to the loop's exception handler."""
        loop = self._loop or asyncio.get_running_loop()
        loop.call_exception_handler(
            {
                "message": "Unhandled promise rejection",
                "exception": error,
                "promise": promise,
            }
        )

    def __len__(self) -> int:
        return len(self._queue)
