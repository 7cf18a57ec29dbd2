"""
Webhook notifier for change messages.

Posts a text message to the chat messages API and returns the message id
assigned by the provider.
"""

import json
import logging

import httpx

from doc_change_tracker.core.interfaces import INotifier
from doc_change_tracker.models import NotifierError

logger = logging.getLogger(__name__)


class WebhookNotifier(INotifier):
    """Chat message notifier over httpx, one AsyncClient per call."""

    def __init__(
        self,
        url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json; charset=utf-8"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def notify(self, destination: str, message: str) -> str:
        payload = {
            "receive_id": destination,
            "msg_type": "text",
            "content": json.dumps({"text": message}, ensure_ascii=False),
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload, headers=self._headers())
        except httpx.RequestError as e:
            raise NotifierError(
                f"Failed to reach notification endpoint: {e}", destination=destination, underlying_error=e
            ) from e

        if response.status_code >= 400:
            raise NotifierError(
                f"Notification endpoint returned HTTP {response.status_code}",
                destination=destination,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise NotifierError(
                "Notification endpoint returned a non-JSON body", destination=destination, underlying_error=e
            ) from e

        message_id = (body.get("data") or {}).get("message_id")
        if body.get("code") not in (0, None) or not message_id:
            raise NotifierError(
                f"Notification rejected: {body.get('msg') or body}",
                destination=destination,
                status_code=response.status_code,
            )

        logger.debug("Sent notification %s to %s", message_id, destination)
        return message_id
