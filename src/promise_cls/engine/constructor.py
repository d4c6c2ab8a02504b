"""Constructor interceptor.

Replaces ``__init__`` on the target library so the executor runs inside the
context active when the promise was constructed.  The executor is called
synchronously by the constructor, so it is run under that context but never
wrapped or marked; ``resolve`` / ``reject`` are handed to it untouched.
"""

from __future__ import annotations

import functools
import inspect
from typing import Any

from promise_cls.context.stack import ContextStack
from promise_cls.core.errors import PatchConfigError


def intercept_constructor(library: type, stack: ContextStack) -> None:
    original = inspect.getattr_static(library, "__init__", None)
    if original is None or original is object.__init__ or not inspect.isfunction(original):
        raise PatchConfigError(
            f"{library.__name__} has no promise constructor to intercept"
        ).with_context(library=library.__name__, method="__init__", owner="ctor", namespace=stack.name)

    @functools.wraps(original)
    def __init__(self: Any, executor: Any = None, *args: Any, **kwargs: Any) -> None:
        context = stack.current()
        if not callable(executor):
            original(self, executor, *args, **kwargs)
            return

        def run_executor(resolve: Any, reject: Any) -> Any:
            return stack.run_with(context, executor, resolve, reject)

        original(self, run_executor, *args, **kwargs)

    library.__init__ = __init__
