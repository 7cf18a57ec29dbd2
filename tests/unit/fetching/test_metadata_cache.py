"""Unit tests for the metadata TTL cache."""

from doc_change_tracker.fetching import MetadataCache
from doc_change_tracker.models import DocumentMetadata


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestMetadataCache:
    """Test cases for MetadataCache."""

    def setup_method(self):
        self.clock = FakeClock()
        self.cache = MetadataCache(ttl_seconds=30, clock=self.clock)
        self.metadata = DocumentMetadata(doc_id="doxcnABCDEFGHIJ", title="Plan")

    def test_miss(self):
        """Test reading an unknown document."""
        assert self.cache.get("doxcnABCDEFGHIJ") is None

    def test_hit_within_ttl(self):
        """Test entries are served until the TTL elapses."""
        self.cache.set("doxcnABCDEFGHIJ", self.metadata)
        self.clock.now = 30

        assert self.cache.get("doxcnABCDEFGHIJ") == self.metadata

    def test_expired_entry_evicted(self):
        """Test expired entries are dropped on read."""
        self.cache.set("doxcnABCDEFGHIJ", self.metadata)
        self.clock.now = 30.5

        assert self.cache.get("doxcnABCDEFGHIJ") is None
        assert len(self.cache) == 0

    def test_invalidate_and_clear(self):
        """Test explicit eviction."""
        self.cache.set("doxcnABCDEFGHIJ", self.metadata)
        self.cache.set("shtcnABCDEFGHIJ", self.metadata)

        self.cache.invalidate("doxcnABCDEFGHIJ")
        self.cache.invalidate("missingdoc123")
        assert len(self.cache) == 1

        self.cache.clear()
        assert len(self.cache) == 0

    def test_stats(self):
        """Test cache statistics."""
        self.cache.set("doxcnABCDEFGHIJ", self.metadata)
        assert self.cache.stats() == {"size": 1, "ttl_seconds": 30}
