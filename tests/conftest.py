"""
Shared pytest fixtures and configuration for opkit tests.

This module provides:
- A fresh hooks registry for every test
- Modules, an operation registry and a dispatcher wired with sample operations
- Users and sessions attached to request contexts

Usage:
    Fixtures are auto-discovered by pytest. Simply use them as function
    arguments (pytest injects them automatically).

    def test_something(dispatcher, hooks):
        ...
"""

import sys
from pathlib import Path
from typing import Generator

import pytest

# Ensure opkit package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from opkit.dispatcher import OperationDispatcher
from opkit.hooks import EventHooks, set_hooks
from opkit.modules import Module, ModuleRegistry
from opkit.ping import PingOperation
from opkit.registry import OperationRegistry
from opkit.settings import OperationSettings
from tests._support.sample import (
    ErrorOperation,
    ExceptionOperation,
    ExpiredOperation,
    LocationOperation,
    MessageOperation,
    NullOperation,
    PostOperation,
    RecordOperation,
    SampleRecord,
    SampleSession,
    SampleUser,
    SuccessOperation,
)


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        if "test_app" in str(item.fspath) or "test_middleware" in str(item.fspath):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Hooks Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def hooks() -> Generator[EventHooks, None, None]:
    """
    Fresh process-wide hooks registry for each test.

    This ensures test isolation - no test can affect another by leaving
    hooks attached.
    """
    registry = EventHooks()
    set_hooks(registry)
    yield registry
    set_hooks(None)


# =============================================================================
# Dispatcher Fixtures
# =============================================================================


@pytest.fixture
def settings() -> OperationSettings:
    """Default settings, ignoring any ``.env`` file."""
    return OperationSettings(_env_file=None)


@pytest.fixture
def records() -> dict[str, SampleRecord]:
    return {
        "12": SampleRecord(nid=12, uid=1, title="Mine"),
        "13": SampleRecord(nid=13, uid=2, title="Someone else's"),
    }


@pytest.fixture
def modules(records: dict[str, SampleRecord]) -> ModuleRegistry:
    """
    Module hierarchy::

        core
        nodes ─── articles
        sample
    """
    nodes = Module("nodes", model=records)
    return ModuleRegistry(
        [
            Module("core"),
            nodes,
            Module("articles", parent=nodes, model=records),
            Module("sample"),
        ]
    )


@pytest.fixture
def registry() -> OperationRegistry:
    """Operation registry with the sample operations."""
    registry = OperationRegistry()
    registry.register("core", "ping", PingOperation)
    registry.register("nodes", "record", RecordOperation)
    registry.register("nodes", "patch", SuccessOperation)
    registry.register("articles", "message", MessageOperation)
    registry.register("sample", "success", SuccessOperation)
    registry.register("sample", "error", ErrorOperation)
    registry.register("sample", "exception", ExceptionOperation)
    registry.register("sample", "null", NullOperation)
    registry.register("sample", "location", LocationOperation)
    registry.register("sample", "expired", ExpiredOperation)
    registry.register("sample", "post", PostOperation)
    return registry


@pytest.fixture
def dispatcher(
    modules: ModuleRegistry,
    registry: OperationRegistry,
    hooks: EventHooks,
    settings: OperationSettings,
) -> OperationDispatcher:
    return OperationDispatcher(modules, registry=registry, hooks=hooks, settings=settings)


# =============================================================================
# Context Fixtures
# =============================================================================


@pytest.fixture
def user() -> SampleUser:
    return SampleUser(uid=1, permissions={"administer nodes"})


@pytest.fixture
def guest() -> SampleUser:
    return SampleUser(uid=0, is_guest=True)


@pytest.fixture
def session() -> SampleSession:
    return SampleSession(token="s3cr3t")
