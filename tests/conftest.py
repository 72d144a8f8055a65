"""Pytest fixtures for mosquitto-dynsec tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import pytest_asyncio

from mosquitto_dynsec.client import MosquittoDynsec
from mosquitto_dynsec.engine import CorrelationEngine
from mosquitto_dynsec.memory import InMemoryTransport

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

# Short enough to keep timeout tests fast, long enough for loop scheduling.
TEST_TIMEOUT = 0.1


@pytest.fixture
def timeout_seconds() -> float:
    return TEST_TIMEOUT


@pytest.fixture
def transport() -> InMemoryTransport:
    return InMemoryTransport()


@pytest_asyncio.fixture
async def engine(
    transport: InMemoryTransport, timeout_seconds: float
) -> AsyncIterator[CorrelationEngine]:
    engine = CorrelationEngine(timeout_seconds=timeout_seconds)
    await engine.connect(transport)
    yield engine
    await engine.disconnect()


@pytest_asyncio.fixture
async def dynsec(
    transport: InMemoryTransport, timeout_seconds: float
) -> AsyncIterator[MosquittoDynsec]:
    client = MosquittoDynsec(timeout_seconds=timeout_seconds)
    await client.connect_transport(transport)
    yield client
    await client.disconnect()
