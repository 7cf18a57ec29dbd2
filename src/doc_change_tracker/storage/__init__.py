"""Storage backends for tracked documents and the change audit trail."""

from .memory_store import InMemoryTrackingStore
from .scope import require_tenant
from .sql_store import SqlTrackingStore, create_store_engine

__all__ = [
    "InMemoryTrackingStore",
    "SqlTrackingStore",
    "create_store_engine",
    "require_tenant",
]
