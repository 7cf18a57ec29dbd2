"""Polling scheduler, metrics and health."""

from .document_poller import DocumentPoller
from .metrics import MetricsCollector, derive_health

__all__ = [
    "DocumentPoller",
    "MetricsCollector",
    "derive_health",
]
