"""Tests for promise_cls.promise.scheduler: the reaction trampoline."""

import asyncio
import contextvars

import pytest

from promise_cls.promise.scheduler import AsyncQueue


class TestAsyncQueue:
    @pytest.mark.asyncio
    async def test_invoke_is_deferred(self):
        queue = AsyncQueue()
        calls = []
        queue.invoke(calls.append, 1)
        assert calls == []
        assert len(queue) == 1
        await asyncio.sleep(0)
        assert calls == [1]
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_single_drain_per_batch(self, monkeypatch):
        queue = AsyncQueue()
        loop = asyncio.get_running_loop()
        scheduled = []
        original = loop.call_soon

        def counting_call_soon(callback, *args, **kwargs):
            if callback == queue._drain:
                scheduled.append(callback)
            return original(callback, *args, **kwargs)

        monkeypatch.setattr(loop, "call_soon", counting_call_soon)
        calls = []
        for value in range(5):
            queue.invoke(calls.append, value)
        await asyncio.sleep(0)
        assert calls == [0, 1, 2, 3, 4]
        assert len(scheduled) == 1

    @pytest.mark.asyncio
    async def test_reactions_queued_during_drain_run_in_same_drain(self):
        queue = AsyncQueue()
        calls = []

        def first():
            calls.append("first")
            queue.invoke(calls.append, "nested")

        queue.invoke(first)
        await asyncio.sleep(0)
        assert calls == ["first", "nested"]

    @pytest.mark.asyncio
    async def test_drain_runs_in_scheduling_context(self):
        """Every reaction of one drain sees the contextvars of whoever scheduled it."""
        var = contextvars.ContextVar("who", default=None)
        queue = AsyncQueue()
        seen = []

        token = var.set("first")
        queue.invoke(lambda: seen.append(var.get()))
        var.reset(token)
        token = var.set("second")
        queue.invoke(lambda: seen.append(var.get()))
        var.reset(token)

        await asyncio.sleep(0)
        assert seen == ["first", "first"]

    @pytest.mark.asyncio
    async def test_report_uses_exception_handler(self):
        loop = asyncio.get_running_loop()
        reported = []
        loop.set_exception_handler(lambda loop, context: reported.append(context))
        try:
            error = ValueError("x")
            AsyncQueue().report(error, promise="p")
        finally:
            loop.set_exception_handler(None)
        assert reported == [{"message": "Unhandled promise rejection", "exception": error, "promise": "p"}]

    def test_invoke_requires_running_loop(self):
        with pytest.raises(RuntimeError):
            AsyncQueue().invoke(print)
