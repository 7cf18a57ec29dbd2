"""
In-memory TTL cache for document metadata.

Entries are stamped on insertion and evicted lazily on read; there is no
background sweeper, stale entries only matter if they are read again.
"""

import logging
import time
from collections.abc import Callable

from doc_change_tracker.models import DocumentMetadata

logger = logging.getLogger(__name__)


class MetadataCache:
    """Read-through cache keyed by document token."""

    def __init__(self, ttl_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[DocumentMetadata, float]] = {}

    def get(self, doc_id: str) -> DocumentMetadata | None:
        entry = self._entries.get(doc_id)
        if entry is None:
            return None

        metadata, stored_at = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[doc_id]
            logger.debug("Cache entry expired for %s", doc_id)
            return None

        return metadata

    def set(self, doc_id: str, metadata: DocumentMetadata) -> None:
        self._entries[doc_id] = (metadata, self._clock())

    def invalidate(self, doc_id: str) -> None:
        self._entries.pop(doc_id, None)

    def clear(self) -> None:
        self._entries.clear()
        logger.debug("Metadata cache cleared")

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, float]:
        """Cache statistics for monitoring."""
        return {"size": len(self._entries), "ttl_seconds": self.ttl_seconds}
