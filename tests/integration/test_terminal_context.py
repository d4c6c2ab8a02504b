"""Terminal observers (done, as_callback, nodeify) run in their call-site context."""

import asyncio

import pytest

from promise_cls.engine import guard
from tests._support import Probe, make_rejected, make_resolved, next_turns, run_in_context


class TestDone:
    @pytest.mark.asyncio
    async def test_done_fulfilled(self, ns, Patched):
        handler = Probe(ns)
        source = run_in_context(ns, lambda ctx: make_resolved(Patched, 1, asynchronous=True))

        def attach(ctx):
            return ctx, source.done(handler)

        ctx, returned = run_in_context(ns, attach)
        assert returned is None
        await source
        await next_turns()
        assert handler.contexts == [ctx]
        assert guard.is_bound(handler) == [ctx]

    @pytest.mark.asyncio
    async def test_done_rejected(self, ns, Patched):
        on_rejected = Probe(ns, result=lambda error: None)
        error = ValueError("x")
        source = run_in_context(ns, lambda ctx: make_rejected(Patched, error, asynchronous=True))

        ctx = run_in_context(ns, lambda ctx: (source.done(None, on_rejected), ctx)[1])
        await next_turns(5)
        assert on_rejected.contexts == [ctx]
        assert on_rejected.calls[0]["args"] == (error,)

    @pytest.mark.asyncio
    async def test_done_error_goes_to_loop_handler(self, ns, Patched):
        loop = asyncio.get_running_loop()
        reported = []
        loop.set_exception_handler(lambda loop, context: reported.append(context))
        error = RuntimeError("inside done")

        def fail(value):
            raise error

        try:
            run_in_context(ns, lambda ctx: Patched.resolve(1).done(fail))
            await next_turns()
        finally:
            loop.set_exception_handler(None)
        assert [context["exception"] for context in reported] == [error]


class TestAsCallback:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["as_callback", "nodeify"])
    async def test_callback_context_on_fulfilled(self, ns, Patched, method):
        callback = Probe(ns, result=lambda err, value: None)
        source = run_in_context(ns, lambda ctx: make_resolved(Patched, "v", asynchronous=True))

        def attach(ctx):
            return ctx, getattr(source, method)(callback)

        ctx, returned = run_in_context(ns, attach)
        assert returned is source
        await source
        await next_turns()
        assert callback.calls[0]["args"] == (None, "v")
        assert callback.contexts == [ctx]
        assert guard.is_bound(callback) == [ctx]

    @pytest.mark.asyncio
    async def test_callback_context_on_rejected(self, ns, Patched):
        callback = Probe(ns, result=lambda err, value: None)
        error = KeyError("k")
        source = run_in_context(ns, lambda ctx: make_rejected(Patched, error, asynchronous=False))
        ctx = run_in_context(ns, lambda ctx: (source.as_callback(callback), ctx)[1])
        await next_turns()
        assert callback.calls[0]["args"] == (error, None)
        assert callback.contexts == [ctx]

    @pytest.mark.asyncio
    async def test_missing_callback_is_ignored(self, ns, Patched):
        source = Patched.resolve(1)
        assert source.as_callback(None) is source
        assert await source == 1
