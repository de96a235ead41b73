"""
Pytest configuration and fixtures for the poolkit test suite.

This module provides fake handles, a factory with failure injection and a
validator with scripted verdicts, shared across the test modules.
"""

import asyncio
import itertools
from typing import Dict, List, Optional, Set

import pytest

from poolkit import ConnectionParams, CreationFailed, Factory, PoolConfig, Validator
from poolkit.utils.logging import clear_context


class FakeHandle:
    """Stand-in for a live connection."""

    _ids = itertools.count(1)

    def __init__(self, params: ConnectionParams):
        self.id = next(self._ids)
        self.params = params
        self.closed = False

    def __eq__(self, other):
        # Equal to every other handle so the pool has to rely on identity
        return isinstance(other, FakeHandle)

    __hash__ = None

    def __repr__(self):
        return f"FakeHandle({self.id})"


class FakeFactory(Factory[FakeHandle]):
    """Factory that records every handle it creates and closes."""

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.created: List[FakeHandle] = []
        self.closed: List[FakeHandle] = []
        self.fail_after: Optional[int] = None
        self.fail_close = False
        self.create_error: Exception = ConnectionRefusedError("connection refused")

    async def create(self, params: ConnectionParams) -> FakeHandle:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_after is not None and len(self.created) >= self.fail_after:
            raise self.create_error
        handle = FakeHandle(params)
        self.created.append(handle)
        return handle

    async def close(self, handle: FakeHandle) -> None:
        if self.fail_close:
            raise OSError(f"cannot close {handle!r}")
        handle.closed = True
        self.closed.append(handle)


class FakeValidator(Validator[FakeHandle]):
    """Validator whose verdicts are scripted per handle."""

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.invalid: Set[int] = set()
        self.broken = False
        self.checked: List[FakeHandle] = []
        self.budgets: List[float] = []

    def invalidate(self, *handles: FakeHandle) -> None:
        self.invalid.update(h.id for h in handles)

    async def is_valid(self, handle: FakeHandle, timeout: float) -> bool:
        self.checked.append(handle)
        self.budgets.append(timeout)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.broken:
            raise RuntimeError("validator malfunction")
        return not handle.closed and handle.id not in self.invalid


def make_config(**overrides) -> PoolConfig:
    """Build a pool config with test-friendly defaults."""
    values: Dict[str, object] = {
        "name": "test-pool",
        "endpoint": "db.local:3306/app",
        "principal": "app",
        "credential": "s3cret",
        "min_size": 0,
        "max_size": 3,
        "acquire_timeout": 0.2,
        "validation_timeout": 0.5,
    }
    values.update(overrides)
    return PoolConfig(**values)


@pytest.fixture(autouse=True)
def reset_log_context():
    """Keep logging context from leaking between tests."""
    clear_context()
    yield
    clear_context()


@pytest.fixture
def factory():
    """Create a fake factory for testing."""
    return FakeFactory()


@pytest.fixture
def validator():
    """Create a fake validator for testing."""
    return FakeValidator()


@pytest.fixture
def config():
    """Create a pool config for testing."""
    return make_config()
