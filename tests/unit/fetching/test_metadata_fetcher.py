"""Unit tests for the metadata fetcher."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from doc_change_tracker.core import IMetadataProvider
from doc_change_tracker.fetching import MetadataCache, MetadataFetcher, parse_metadata_response, validate_document_ref
from doc_change_tracker.models import DocType, FetchError, RateLimitError, TransientFetchError, ValidationError

DOC_ID = "doxcnABCDEFGHIJ"


def meta_response(modifier="ou_alice", modified_at=1700000000, docs_type="docx"):
    return {
        "code": 0,
        "data": {
            "docs_metas": [
                {
                    "docs_token": DOC_ID,
                    "docs_type": docs_type,
                    "title": "Quarterly plan",
                    "owner_id": "ou_owner",
                    "create_time": 1600000000,
                    "latest_modify_user": modifier,
                    "latest_modify_time": modified_at,
                }
            ]
        },
    }


class TestValidateDocumentRef:
    """Test cases for validate_document_ref."""

    def test_valid(self):
        """Test valid references resolve to a DocType."""
        assert validate_document_ref(DOC_ID, "docx") == DocType.DOCX
        assert validate_document_ref("0123456789", DocType.BITABLE) == DocType.BITABLE

    @pytest.mark.parametrize("doc_id", ["short", "doxcn-ABCDEFGHIJ", "", "doxcn ABCDEFGHIJ"])
    def test_invalid_token(self, doc_id):
        """Test malformed tokens are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validate_document_ref(doc_id, "doc")
        assert exc_info.value.context["field_name"] == "doc_id"

    def test_invalid_type(self):
        """Test unsupported document types are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validate_document_ref(DOC_ID, "slides")
        assert exc_info.value.context["field_name"] == "doc_type"


class TestParseMetadataResponse:
    """Test cases for parse_metadata_response."""

    def test_parse(self):
        """Test mapping provider fields onto DocumentMetadata."""
        metadata = parse_metadata_response(meta_response(), DOC_ID, DocType.DOCX)

        assert metadata.doc_id == DOC_ID
        assert metadata.title == "Quarterly plan"
        assert metadata.owner_id == "ou_owner"
        assert metadata.created_at == 1600000000
        assert metadata.last_modified_by == "ou_alice"
        assert metadata.last_modified_at == 1700000000
        assert metadata.doc_type == DocType.DOCX

    def test_missing_fields_fall_back(self):
        """Test defaults for missing fields and an unknown doc type."""
        raw = {"code": 0, "data": {"docs_metas": [{"docs_type": "mindnote"}]}}
        metadata = parse_metadata_response(raw, DOC_ID, DocType.SHEET)

        assert metadata.doc_id == DOC_ID
        assert metadata.title == "Unknown"
        assert metadata.last_modified_by == "unknown"
        assert metadata.last_modified_at == 0
        assert metadata.doc_type == DocType.SHEET

    def test_provider_error_code(self):
        """Test a non-zero provider code raises FetchError."""
        with pytest.raises(FetchError, match="Provider error 91402"):
            parse_metadata_response({"code": 91402, "msg": "NOTEXIST"}, DOC_ID, DocType.DOC)

    def test_empty_metas(self):
        """Test a response without metadata raises FetchError."""
        with pytest.raises(FetchError, match="No metadata"):
            parse_metadata_response({"code": 0, "data": {"docs_metas": []}}, DOC_ID, DocType.DOC)

    def test_malformed_metas(self):
        """Test malformed field values raise FetchError."""
        raw = {"code": 0, "data": {"docs_metas": [{"latest_modify_time": "yesterday"}]}}
        with pytest.raises(FetchError, match="Malformed"):
            parse_metadata_response(raw, DOC_ID, DocType.DOC)

    @pytest.mark.parametrize(
        "raw",
        [
            ["oops"],
            {"code": 0, "data": ["oops"]},
            {"code": 0, "data": {"docs_metas": {"title": "x"}}},
            {"data": {"docs_metas": ["oops"]}},
        ],
    )
    def test_unexpected_shape(self, raw):
        """Test a response of the wrong shape raises FetchError."""
        with pytest.raises(FetchError, match="Unexpected"):
            parse_metadata_response(raw, DOC_ID, DocType.DOC)


class TestMetadataFetcher:
    """Test cases for MetadataFetcher."""

    @pytest.fixture
    def provider(self):
        """Create a mock metadata provider."""
        provider = Mock(spec=IMetadataProvider)
        provider.fetch_remote_metadata = AsyncMock(return_value=meta_response())
        return provider

    @pytest.fixture
    def sleep(self):
        """Create a sleep replacement that records delays."""
        return AsyncMock()

    @pytest.fixture
    def fetcher(self, provider, sleep):
        """Create a fetcher with an empty cache."""
        return MetadataFetcher(provider, cache=MetadataCache(), retry_delays=(0.1, 0.5, 2.0), sleep=sleep)

    def test_too_few_delays(self, provider):
        """Test the fetcher requires a delay for every retry."""
        with pytest.raises(ValueError):
            MetadataFetcher(provider, max_attempts=3, retry_delays=(0.1,))

    def test_configure(self, fetcher):
        """Test configure replaces the retry policy and validates it."""
        fetcher.configure(max_attempts=2, retry_delays=(1.0,), attempt_timeout_seconds=5.0)

        assert fetcher.max_attempts == 2
        assert fetcher.retry_delays == [1.0]
        assert fetcher.attempt_timeout_seconds == 5.0

        with pytest.raises(ValueError):
            fetcher.configure(max_attempts=4, retry_delays=(1.0,), attempt_timeout_seconds=5.0)

    def test_empty_cache_is_kept(self, provider):
        """Test an injected empty cache is used as-is."""
        cache = MetadataCache(ttl_seconds=5)
        assert MetadataFetcher(provider, cache=cache).cache is cache

    @pytest.mark.asyncio
    async def test_fetch_success(self, fetcher, provider, sleep):
        """Test a successful first attempt."""
        metadata = await fetcher.fetch(DOC_ID, "docx")

        assert metadata.last_modified_by == "ou_alice"
        provider.fetch_remote_metadata.assert_awaited_once_with(DOC_ID, DocType.DOCX)
        sleep.assert_not_awaited()
        assert fetcher.api_calls == 1

    @pytest.mark.asyncio
    async def test_fetch_uses_cache(self, fetcher, provider):
        """Test the second fetch within the TTL is served from cache."""
        first = await fetcher.fetch(DOC_ID, "docx")
        second = await fetcher.fetch(DOC_ID, "docx")

        assert first == second
        assert provider.fetch_remote_metadata.await_count == 1

    @pytest.mark.asyncio
    async def test_fetch_bypasses_cache(self, fetcher, provider):
        """Test use_cache=False always calls the provider."""
        await fetcher.fetch(DOC_ID, "docx")
        await fetcher.fetch(DOC_ID, "docx", use_cache=False)

        assert provider.fetch_remote_metadata.await_count == 2

    @pytest.mark.asyncio
    async def test_invalid_reference_not_retried(self, fetcher, provider):
        """Test validation errors fail before any provider call."""
        with pytest.raises(ValidationError):
            await fetcher.fetch("bad", "docx")

        provider.fetch_remote_metadata.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_shape_not_retried(self, fetcher, provider, sleep):
        """Test a response of the wrong shape fails with FetchError on the first attempt."""
        provider.fetch_remote_metadata.return_value = {"code": 0, "data": ["oops"]}

        with pytest.raises(FetchError, match="Unexpected response data"):
            await fetcher.fetch(DOC_ID, "docx")

        assert provider.fetch_remote_metadata.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retry_then_success(self, fetcher, provider, sleep):
        """Test transient failures are retried with the configured delays."""
        provider.fetch_remote_metadata.side_effect = [
            TransientFetchError("503"),
            RateLimitError("slow down"),
            meta_response(modifier="ou_bob"),
        ]

        metadata = await fetcher.fetch(DOC_ID, "docx")

        assert metadata.last_modified_by == "ou_bob"
        assert [c.args[0] for c in sleep.await_args_list] == [0.1, 0.5]
        assert fetcher.api_calls == 3

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, fetcher, provider, sleep):
        """Test exhausted retries raise FetchError caused by the last failure."""
        last = TransientFetchError("still down")
        provider.fetch_remote_metadata.side_effect = [TransientFetchError("down"), TransientFetchError("down"), last]

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(DOC_ID, "docx")

        assert not isinstance(exc_info.value, TransientFetchError)
        assert exc_info.value.cause is last
        assert exc_info.value.context["attempts"] == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self, fetcher, provider, sleep):
        """Test non-transient provider errors fail immediately."""
        provider.fetch_remote_metadata.return_value = {"code": 91402, "msg": "NOTEXIST"}

        with pytest.raises(FetchError):
            await fetcher.fetch(DOC_ID, "docx")

        assert provider.fetch_remote_metadata.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_wrapped(self, fetcher, provider):
        """Test unexpected provider exceptions surface as FetchError."""
        provider.fetch_remote_metadata.side_effect = RuntimeError("boom")

        with pytest.raises(FetchError, match="Unexpected provider failure") as exc_info:
            await fetcher.fetch(DOC_ID, "docx")

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert provider.fetch_remote_metadata.await_count == 1

    @pytest.mark.asyncio
    async def test_attempt_timeout_is_transient(self, provider, sleep):
        """Test a hung attempt times out and is retried."""

        calls = []

        async def hang_once(doc_id, doc_type):
            calls.append(doc_id)
            if len(calls) == 1:
                await asyncio.sleep(10)
            return meta_response()

        provider.fetch_remote_metadata.side_effect = hang_once
        fetcher = MetadataFetcher(
            provider, cache=MetadataCache(), retry_delays=(0, 0), attempt_timeout_seconds=0.01, sleep=sleep
        )

        metadata = await fetcher.fetch(DOC_ID, "doc")

        assert metadata.title == "Quarterly plan"
        assert fetcher.api_calls == 2

    @pytest.mark.asyncio
    async def test_failed_fetch_not_cached(self, fetcher, provider):
        """Test failures leave the cache untouched."""
        provider.fetch_remote_metadata.return_value = {"code": 0, "data": {"docs_metas": []}}

        with pytest.raises(FetchError):
            await fetcher.fetch(DOC_ID, "docx")

        assert len(fetcher.cache) == 0
