"""
Fetching package for document metadata.

Provides the provider client, the TTL cache and the retrying fetcher that
together produce DocumentMetadata snapshots for the poller.
"""

from .http_provider import DocsApiMetadataProvider
from .metadata_cache import MetadataCache
from .metadata_fetcher import MetadataFetcher, parse_metadata_response, validate_document_ref

__all__ = [
    "DocsApiMetadataProvider",
    "MetadataCache",
    "MetadataFetcher",
    "parse_metadata_response",
    "validate_document_ref",
]
