"""Unit tests for component wiring."""

from doc_change_tracker.config import TrackerConfig
from doc_change_tracker.factory import create_document_poller
from doc_change_tracker.fetching import DocsApiMetadataProvider
from doc_change_tracker.monitoring import DocumentPoller
from doc_change_tracker.notifications import WebhookNotifier
from doc_change_tracker.storage import InMemoryTrackingStore, SqlTrackingStore


class TestCreateDocumentPoller:
    """Test cases for create_document_poller."""

    def test_default_components(self):
        """Test the poller is wired from configuration."""
        config = TrackerConfig(
            _env_file=None,
            database_url="sqlite://",
            provider_base_url="https://docs.example.com",
            provider_token="t-1",
            retry_attempts=2,
            cache_ttl_seconds=15,
            notifier_url="https://chat.example.com/messages",
        )

        poller = create_document_poller(config)

        assert isinstance(poller, DocumentPoller)
        assert poller.config is config
        assert isinstance(poller.store, SqlTrackingStore)
        assert isinstance(poller.notifier, WebhookNotifier)
        assert poller.notifier.url == "https://chat.example.com/messages"

        fetcher = poller.fetcher
        assert isinstance(fetcher.provider, DocsApiMetadataProvider)
        assert fetcher.provider.base_url == "https://docs.example.com"
        assert fetcher.provider.token == "t-1"
        assert fetcher.max_attempts == 2
        assert fetcher.retry_delays == [0.1]
        assert fetcher.cache.ttl_seconds == 15
        poller.store.close()

    def test_injected_store(self):
        """Test an injected store is used instead of the SQL store."""
        store = InMemoryTrackingStore()
        poller = create_document_poller(TrackerConfig(_env_file=None), store=store)
        assert poller.store is store
