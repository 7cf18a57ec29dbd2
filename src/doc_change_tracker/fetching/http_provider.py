"""
HTTP implementation of the provider metadata API.

Calls the docs-api ``meta`` endpoint with one document per request and maps
HTTP failures onto the fetch error taxonomy: rate limiting and server or
transport failures are transient, other client errors are not.
"""

import logging
from typing import Any

import httpx

from doc_change_tracker.core.interfaces import IMetadataProvider
from doc_change_tracker.models import DocType, FetchError, RateLimitError, TransientFetchError

logger = logging.getLogger(__name__)

META_ENDPOINT = "/open-apis/suite/docs-api/meta"

# Provider-level error code returned with HTTP 200 when the app is throttled
PROVIDER_RATE_LIMIT_CODE = 99991400


class DocsApiMetadataProvider(IMetadataProvider):
    """Provider metadata client over httpx, one AsyncClient per call."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the provider client.

        Args:
            base_url: Provider API base URL
            token: Optional bearer token
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json; charset=utf-8"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def fetch_remote_metadata(self, doc_id: str, doc_type: DocType) -> dict[str, Any]:
        payload = {"request_docs": [{"docs_token": doc_id, "docs_type": DocType(doc_type).value}]}
        logger.debug("Fetching metadata for %s: %s", doc_type, doc_id)

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(META_ENDPOINT, json=payload, headers=self._headers())
        except httpx.RequestError as e:
            raise TransientFetchError(
                f"Request to provider failed: {e}", doc_id=doc_id, underlying_error=e
            ) from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "Provider rate limit exceeded",
                doc_id=doc_id,
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )

        if response.status_code >= 500:
            raise TransientFetchError(f"Provider returned HTTP {response.status_code}", doc_id=doc_id)

        if response.status_code >= 400:
            raise FetchError(f"Provider rejected request with HTTP {response.status_code}", doc_id=doc_id)

        try:
            body = response.json()
        except ValueError as e:
            raise TransientFetchError("Provider returned a non-JSON body", doc_id=doc_id, underlying_error=e) from e

        if body.get("code") == PROVIDER_RATE_LIMIT_CODE:
            raise RateLimitError(body.get("msg") or "Provider rate limit exceeded", doc_id=doc_id)

        return body
