"""Global pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from applytrack.cache import DataCache
from applytrack.documents import InMemoryDocumentStore


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> DataCache:
    """Create a fresh cache driven by the fake clock."""
    return DataCache(clock=clock)


@pytest.fixture
def doc_store() -> InMemoryDocumentStore:
    """Create an empty in-memory document store."""
    return InMemoryDocumentStore()
