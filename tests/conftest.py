"""Shared fixtures: the anyio backend, a scripted executor and a fake clock."""

from __future__ import annotations

import pytest

from tests.support import FakeClock, FakeExecutor


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
