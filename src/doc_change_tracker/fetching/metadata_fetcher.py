"""
Metadata fetcher with validation, caching and bounded retry.

Wraps an IMetadataProvider: validates the document reference, serves recent
snapshots from the cache, and retries transient provider failures with
increasing delays. Each attempt carries its own timeout so a hung upstream
call cannot stall a poll cycle.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from doc_change_tracker.core.interfaces import IMetadataProvider
from doc_change_tracker.fetching.metadata_cache import MetadataCache
from doc_change_tracker.models import (
    DocType,
    DocumentMetadata,
    FetchError,
    TransientFetchError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DOC_ID_PATTERN = re.compile(r"^[A-Za-z0-9]{10,}$")

DEFAULT_RETRY_DELAYS = (0.1, 0.5, 2.0)


def validate_document_ref(doc_id: str, doc_type: DocType | str) -> DocType:
    """
    Validate a document token and type.

    Args:
        doc_id: Provider document token
        doc_type: Document type, as enum member or raw value

    Returns:
        The document type as a DocType member

    Raises:
        ValidationError: If the token shape or the type is invalid
    """
    if not isinstance(doc_id, str) or not DOC_ID_PATTERN.match(doc_id):
        raise ValidationError(
            f"Invalid document token: {doc_id!r}",
            field_name="doc_id",
            expected_value="10+ alphanumeric characters",
            actual_value=doc_id,
            validation_rule=DOC_ID_PATTERN.pattern,
        )

    try:
        return DocType(doc_type)
    except ValueError:
        raise ValidationError(
            f"Unsupported document type: {doc_type!r}",
            field_name="doc_type",
            expected_value=", ".join(t.value for t in DocType),
            actual_value=doc_type,
        ) from None


def parse_metadata_response(raw: Any, doc_id: str, doc_type: DocType) -> DocumentMetadata:
    """
    Map a raw provider response into DocumentMetadata.

    Raises:
        FetchError: If the provider reported an error, returned no metadata or a body of the wrong shape
    """
    if not isinstance(raw, dict):
        raise FetchError(f"Unexpected response body: {type(raw).__name__}", doc_id=doc_id)

    code = raw.get("code")
    if code not in (0, None):
        raise FetchError(f"Provider error {code}: {raw.get('msg') or 'unknown error'}", doc_id=doc_id)

    data = raw.get("data") or {}
    if not isinstance(data, dict):
        raise FetchError(f"Unexpected response data: {type(data).__name__}", doc_id=doc_id)

    metas = data.get("docs_metas") or []
    if not isinstance(metas, list):
        raise FetchError(f"Unexpected docs_metas: {type(metas).__name__}", doc_id=doc_id)
    if not metas:
        raise FetchError("No metadata in response (document may not exist)", doc_id=doc_id)

    meta = metas[0]
    if not isinstance(meta, dict):
        raise FetchError(f"Unexpected metadata entry: {type(meta).__name__}", doc_id=doc_id)

    try:
        resolved_type = DocType(meta.get("docs_type") or doc_type)
    except ValueError:
        resolved_type = doc_type

    try:
        return DocumentMetadata(
            doc_id=meta.get("docs_token") or doc_id,
            title=meta.get("title") or "Unknown",
            owner_id=meta.get("owner_id") or "unknown",
            created_at=meta.get("create_time") or 0,
            last_modified_by=meta.get("latest_modify_user") or "unknown",
            last_modified_at=meta.get("latest_modify_time") or 0,
            doc_type=resolved_type,
        )
    except PydanticValidationError as e:
        raise FetchError(f"Malformed metadata in response: {e}", doc_id=doc_id, underlying_error=e) from e


class MetadataFetcher:
    """
    Read-through cache over the provider metadata API.

    Performs no persistence writes.
    """

    def __init__(
        self,
        provider: IMetadataProvider,
        cache: MetadataCache | None = None,
        max_attempts: int = 3,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        attempt_timeout_seconds: float = 10.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the fetcher.

        Args:
            provider: Provider metadata API
            cache: Metadata cache (a 30 second cache is created if not provided)
            max_attempts: Total attempts per fetch, including the first
            retry_delays: Delays slept before attempts 2..max_attempts
            attempt_timeout_seconds: Timeout applied to every single attempt
            sleep: Coroutine used for backoff delays
        """
        self.provider = provider
        self.cache = cache if cache is not None else MetadataCache()
        self._sleep = sleep
        self.configure(max_attempts, retry_delays, attempt_timeout_seconds)

        # Provider calls made, read by the poller for API-call metrics
        self.api_calls = 0

    def configure(self, max_attempts: int, retry_delays: Sequence[float], attempt_timeout_seconds: float) -> None:
        """
        Replace the retry policy used by later fetches.

        Raises:
            ValueError: If retry_delays has fewer entries than retries
        """
        if len(retry_delays) < max_attempts - 1:
            raise ValueError("retry_delays needs an entry for every retry")

        self.max_attempts = max_attempts
        self.retry_delays = list(retry_delays)
        self.attempt_timeout_seconds = attempt_timeout_seconds

    async def fetch(self, doc_id: str, doc_type: DocType | str, use_cache: bool = True) -> DocumentMetadata:
        """
        Fetch the metadata snapshot of a document.

        Args:
            doc_id: Provider document token
            doc_type: Provider document type
            use_cache: Whether a cached snapshot within the TTL may be returned

        Returns:
            Current document metadata

        Raises:
            ValidationError: If the document reference is invalid (no retry, no cache access)
            FetchError: If all attempts failed or the provider reported a permanent error
        """
        resolved_type = validate_document_ref(doc_id, doc_type)

        if use_cache:
            cached = self.cache.get(doc_id)
            if cached is not None:
                logger.debug("Cache hit for %s", doc_id)
                return cached

        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                delay = self.retry_delays[attempt - 2]
                logger.info(
                    "Retry attempt %d/%d for %s after %.2fs", attempt, self.max_attempts, doc_id, delay
                )
                await self._sleep(delay)

            try:
                metadata = await self._fetch_once(doc_id, resolved_type)
            except TransientFetchError as e:
                last_error = e
            except FetchError as e:
                logger.error("Failed to fetch metadata for %s: %s", doc_id, e)
                raise
            else:
                self.cache.set(doc_id, metadata)
                logger.debug("Retrieved metadata for %s: %r", doc_id, metadata.title)
                return metadata

            if attempt < self.max_attempts:
                logger.warning("Attempt %d failed for %s: %s", attempt, doc_id, last_error)

        logger.error(
            "Failed to get metadata for %s after %d attempts: %s", doc_id, self.max_attempts, last_error
        )
        raise FetchError(
            f"Failed to fetch metadata for {doc_id} after {self.max_attempts} attempts: {last_error}",
            doc_id=doc_id,
            attempts=self.max_attempts,
            underlying_error=last_error,
        ) from last_error

    async def _fetch_once(self, doc_id: str, doc_type: DocType) -> DocumentMetadata:
        """Run a single provider call under the attempt timeout."""
        self.api_calls += 1
        try:
            raw = await asyncio.wait_for(
                self.provider.fetch_remote_metadata(doc_id, doc_type),
                timeout=self.attempt_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise TransientFetchError(
                f"Provider call timed out after {self.attempt_timeout_seconds}s",
                doc_id=doc_id,
                underlying_error=e,
            ) from e
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(f"Unexpected provider failure: {e}", doc_id=doc_id, underlying_error=e) from e

        return parse_metadata_response(raw, doc_id, doc_type)
