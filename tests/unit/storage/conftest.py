"""Shared fixtures for tracking store tests."""

import pytest
from doc_change_tracker.storage import InMemoryTrackingStore, SqlTrackingStore


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Create each tracking store implementation."""
    if request.param == "memory":
        yield InMemoryTrackingStore()
        return

    sql_store = SqlTrackingStore("sqlite://")
    sql_store.initialize()
    yield sql_store
    sql_store.close()
