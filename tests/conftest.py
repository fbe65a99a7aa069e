"""Shared test fixtures."""

from unittest.mock import AsyncMock

import pytest

from src.pm_cache.infrastructure.memory_cache import InMemoryKeyValueCache


@pytest.fixture
def memory_cache() -> InMemoryKeyValueCache:
    return InMemoryKeyValueCache()


@pytest.fixture
def db() -> AsyncMock:
    """Stand-in AsyncSession: commit/rollback are awaited, nothing else is used."""
    return AsyncMock()
