"""
Shared fixtures.

Every test gets a fresh cache, orchestrator and store stub, so no state
leaks between tests.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from loguru import logger

from yardpass.datastore.base import StoreResult
from yardpass.services.cache import ResponseCache
from yardpass.services.deduplicator import RequestDeduplicator
from yardpass.services.orchestrator import RequestOrchestrator
from yardpass.services.performance import PerformanceMonitor


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResponseCache(ttl=timedelta(minutes=5), clock=clock)


@pytest.fixture
def store():
    """RemoteStore stub; tests set return values / side effects per call."""
    stub = AsyncMock()
    stub.select = AsyncMock(return_value=StoreResult(data=[]))
    stub.update = AsyncMock(return_value=StoreResult(data={}))
    stub.insert = AsyncMock(return_value=StoreResult(data={}))
    stub.delete = AsyncMock(return_value=StoreResult(data=[]))
    stub.ping = AsyncMock(return_value=None)
    return stub


@pytest.fixture
def orchestrator(cache, store, clock):
    return RequestOrchestrator(
        cache=cache,
        monitor=PerformanceMonitor(clock=clock, slow_alerts=False),
        deduplicator=RequestDeduplicator(),
        store=store,
        slow_operation_threshold=timedelta(milliseconds=1000),
        clock=clock,
    )


@pytest.fixture
def log_messages():
    """Collect loguru records at WARNING and above."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="WARNING")
    yield messages
    logger.remove(handler_id)
