"""Change notification delivery."""

from .http_notifier import WebhookNotifier
from .messages import render_change_message

__all__ = [
    "WebhookNotifier",
    "render_change_message",
]
