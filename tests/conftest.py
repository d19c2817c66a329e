"""Shared fixtures."""

import pytest

from clinic.services.persistence import InMemoryStorage, PersistenceAdapter
from clinic.services.record_store import RecordStore


@pytest.fixture
def storage() -> InMemoryStorage:
    """Fresh in-memory storage."""
    return InMemoryStorage()


@pytest.fixture
def adapter(storage: InMemoryStorage) -> PersistenceAdapter:
    """Adapter over the in-memory storage."""
    return PersistenceAdapter(storage)


@pytest.fixture
def store(adapter: PersistenceAdapter) -> RecordStore:
    """Empty, initialized and hydrated store."""
    record_store = RecordStore(adapter, seed=None)
    record_store.initialize()
    record_store.hydrate()
    return record_store
