"""
Shared pytest fixtures and configuration for promise-cls tests.

This module provides:
- Namespace registry and settings cleanup for test isolation
- A fresh namespace per test
- Fresh patched and unpatched copies of the promise library

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments:

    @pytest.mark.asyncio
    async def test_something(ns, Patched):
        ...
"""

from collections.abc import Generator
from pathlib import Path

import pytest

from promise_cls.context import Namespace, create_namespace, reset_namespaces
from promise_cls.core.settings import clear_settings_cache
from promise_cls.engine import new_patched_copy
from promise_cls.promise import Promise


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_state_fixture() -> Generator[None, None, None]:
    """
    Clear the namespace registry and the settings cache around each test.

    No test can leak a namespace or a cached environment into another.
    """
    reset_namespaces()
    clear_settings_cache()
    yield
    reset_namespaces()
    clear_settings_cache()


# =============================================================================
# Library Fixtures
# =============================================================================


@pytest.fixture
def ns() -> Namespace:
    """Fresh namespace for the test."""
    return create_namespace("test")


@pytest.fixture
def Patched(ns: Namespace) -> type[Promise]:
    """Fresh copy of the promise library, patched for ``ns``."""
    return new_patched_copy(ns)


@pytest.fixture
def Unpatched() -> type[Promise]:
    """Fresh copy of the promise library, never patched."""
    return Promise.new_library_copy()
