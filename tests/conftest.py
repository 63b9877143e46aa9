"""
Pytest configuration for hyperlease tests.

Async tests are marked explicitly with @pytest.mark.asyncio.
"""

import pytest

from hyperlease.leases import LeaseCoordinator
from hyperlease.logging import LoggingConfig
from hyperlease.stores import MemoryKVStore


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


@pytest.fixture(autouse=True)
def configure_log_level():
    config = LoggingConfig()
    config.update(log_level="error")
    yield
    config.update(log_level="error")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock: FakeClock) -> MemoryKVStore:
    return MemoryKVStore(clock=clock)


@pytest.fixture
def coordinator(memory_store: MemoryKVStore, clock: FakeClock) -> LeaseCoordinator:
    return LeaseCoordinator(
        memory_store,
        default_ttl=120.0,
        clock=clock,
    )
