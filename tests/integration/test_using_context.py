"""
Resource lifecycle: the ``using`` handler and each ``disposer`` release
callback keep their own, independent capture points.
"""

import pytest

from promise_cls.context import contexts_equal
from promise_cls.engine import guard
from tests._support import Probe, make_rejected, make_resolved, run_in_context


def resource_in_context(ns, Patched, name, *, asynchronous=True):
    """Create a disposer inside a fresh context; return (context, disposer, release probe)."""
    release = Probe(ns, result=lambda resource: None)

    def create(ctx):
        return ctx, make_resolved(Patched, name, asynchronous=asynchronous).disposer(release), release

    return run_in_context(ns, create)


class TestUsingContext:
    @pytest.mark.asyncio
    async def test_three_disposers_release_in_own_contexts(self, ns, Patched):
        resources = [resource_in_context(ns, Patched, name) for name in ("a", "b", "c")]
        handler = Probe(ns, result=lambda a, b, c: f"{a}{b}{c}")

        def use(ctx):
            return ctx, Patched.using(*(disposer for _, disposer, _ in resources), handler)

        use_ctx, promise = run_in_context(ns, use)
        assert await promise == "abc"

        assert handler.contexts == [use_ctx]
        assert guard.is_bound(handler) == [use_ctx]
        for ctx, _, release in resources:
            assert release.call_count == 1
            assert contexts_equal(release.contexts[0], ctx)
            assert guard.is_bound(release) == [ctx]
            assert not contexts_equal(release.contexts[0], use_ctx)

    @pytest.mark.asyncio
    async def test_array_form(self, ns, Patched):
        resources = [resource_in_context(ns, Patched, name, asynchronous=False) for name in ("a", "b")]
        handler = Probe(ns, result=lambda values: "+".join(values))

        def use(ctx):
            return ctx, Patched.using([disposer for _, disposer, _ in resources], handler)

        use_ctx, promise = run_in_context(ns, use)
        assert await promise == "a+b"
        assert handler.contexts == [use_ctx]
        for ctx, _, release in resources:
            assert release.contexts == [ctx]

    @pytest.mark.asyncio
    async def test_release_context_when_handler_fails(self, ns, Patched):
        ctx, disposer, release = resource_in_context(ns, Patched, "a")
        error = ValueError("handler failed")

        def fail(resource):
            raise error

        def use(use_ctx):
            return Patched.using(disposer, fail)

        with pytest.raises(ValueError):
            await run_in_context(ns, use)
        assert release.contexts == [ctx]
        assert guard.is_bound(release) == [ctx]

    @pytest.mark.asyncio
    async def test_release_context_when_other_acquisition_fails(self, ns, Patched):
        ctx, disposer, release = resource_in_context(ns, Patched, "a")
        failing = run_in_context(
            ns, lambda _: make_rejected(Patched, ConnectionError("down"), asynchronous=True).disposer(lambda r: None)
        )
        handler = Probe(ns)

        with pytest.raises(ConnectionError):
            await run_in_context(ns, lambda _: Patched.using(disposer, failing, handler))
        assert handler.call_count == 0
        assert release.contexts == [ctx]

    @pytest.mark.asyncio
    async def test_handler_and_release_never_share_binding(self, ns, Patched):
        """The same function used as handler and as release gets two independent bindings."""
        seen = []

        def both(*args):
            seen.append(ns.active)

        def create(ctx):
            return ctx, Patched.resolve("r").disposer(both)

        release_ctx, disposer = run_in_context(ns, create)
        use_ctx, promise = run_in_context(ns, lambda ctx: (ctx, Patched.using(disposer, both)))
        await promise
        assert seen == [use_ctx, release_ctx]
        assert guard.is_bound(both) == [use_ctx, release_ctx]
