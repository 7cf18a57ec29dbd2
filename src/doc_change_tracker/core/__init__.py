"""Core contracts of the document change tracker."""

from doc_change_tracker.core.interfaces import IMetadataProvider, INotifier, ITrackingStore

__all__ = [
    "IMetadataProvider",
    "INotifier",
    "ITrackingStore",
]
