"""Wiring of the concrete tracker components."""

import logging

from doc_change_tracker.config import TrackerConfig, get_config
from doc_change_tracker.core.interfaces import INotifier, ITrackingStore
from doc_change_tracker.fetching import DocsApiMetadataProvider, MetadataCache, MetadataFetcher
from doc_change_tracker.monitoring import DocumentPoller
from doc_change_tracker.notifications import WebhookNotifier
from doc_change_tracker.storage import SqlTrackingStore

logger = logging.getLogger(__name__)


def create_document_poller(
    config: TrackerConfig | None = None,
    store: ITrackingStore | None = None,
    notifier: INotifier | None = None,
) -> DocumentPoller:
    """
    Create a document poller with the default provider, store and notifier.

    Args:
        config: Tracker configuration (uses the global config if not provided)
        store: Optional tracking store (creates and initializes a SQL store if not provided)
        notifier: Optional notifier (creates a webhook notifier if not provided)

    Returns:
        Configured, not yet started, document poller
    """
    config = config or get_config()

    provider = DocsApiMetadataProvider(
        base_url=config.provider_base_url,
        token=config.provider_token,
        timeout=config.fetch_timeout_seconds,
    )
    fetcher = MetadataFetcher(
        provider,
        cache=MetadataCache(ttl_seconds=config.cache_ttl_seconds),
        max_attempts=config.retry_attempts,
        retry_delays=config.get_retry_delays(),
        attempt_timeout_seconds=config.fetch_timeout_seconds,
    )

    if store is None:
        store = SqlTrackingStore(config.database_url, echo=config.database_echo)
        store.initialize()

    notifier = notifier or WebhookNotifier(
        url=config.notifier_url,
        token=config.notifier_token,
        timeout=config.notifier_timeout_seconds,
    )

    logger.debug("Created document poller with %s and %s", type(store).__name__, type(notifier).__name__)
    return DocumentPoller(config, fetcher, store, notifier)
