"""Unit tests for the webhook notifier."""

import json

import httpx
import pytest
from doc_change_tracker.models import NotifierError
from doc_change_tracker.notifications import WebhookNotifier

URL = "https://chat.example.com/open-apis/im/v1/messages?receive_id_type=chat_id"


def make_notifier(handler, token="t-abc"):
    return WebhookNotifier(URL, token=token, transport=httpx.MockTransport(handler))


class TestWebhookNotifier:
    """Test cases for WebhookNotifier."""

    @pytest.mark.asyncio
    async def test_notify_success(self):
        """Test the payload and the returned message id."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"code": 0, "data": {"message_id": "om_42"}})

        ref = await make_notifier(handler).notify("oc_chat_1", "📝 **Plan** changed")

        assert ref == "om_42"
        assert seen["url"] == URL
        assert seen["auth"] == "Bearer t-abc"
        assert seen["body"]["receive_id"] == "oc_chat_1"
        assert seen["body"]["msg_type"] == "text"
        assert json.loads(seen["body"]["content"]) == {"text": "📝 **Plan** changed"}

    @pytest.mark.asyncio
    async def test_http_error(self):
        """Test HTTP errors raise NotifierError with the status code."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        with pytest.raises(NotifierError) as exc_info:
            await make_notifier(handler).notify("oc_chat_1", "hello")

        assert exc_info.value.context == {"destination": "oc_chat_1", "status_code": 500}

    @pytest.mark.asyncio
    async def test_rejected_by_api(self):
        """Test a non-zero API code raises NotifierError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"code": 230002, "msg": "bot not in chat"})

        with pytest.raises(NotifierError, match="bot not in chat"):
            await make_notifier(handler).notify("oc_chat_1", "hello")

    @pytest.mark.asyncio
    async def test_missing_message_id(self):
        """Test a success response without a message id is a failure."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"code": 0, "data": {}})

        with pytest.raises(NotifierError):
            await make_notifier(handler).notify("oc_chat_1", "hello")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        """Test connection failures raise NotifierError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(NotifierError) as exc_info:
            await make_notifier(handler).notify("oc_chat_1", "hello")

        assert isinstance(exc_info.value.cause, httpx.ConnectTimeout)
