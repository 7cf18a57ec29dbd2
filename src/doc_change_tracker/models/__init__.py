"""Data models and schemas for the document change tracker."""

from doc_change_tracker.models.change import (
    ChangeAuditRecord,
    ChangeDetectionResult,
    ChangePatternSummary,
    ChangeStats,
    ChangeType,
)
from doc_change_tracker.models.document import DocType, DocumentMetadata, TrackedDocument
from doc_change_tracker.models.exceptions import (
    BaseError,
    ConfigurationError,
    FetchError,
    NotifierError,
    PersistenceError,
    PollingError,
    RateLimitError,
    TenantScopeError,
    TransientFetchError,
    ValidationError,
)
from doc_change_tracker.models.metrics import CycleReport, HealthReport, HealthStatus, PollingMetrics

__all__ = [
    "DocType",
    "DocumentMetadata",
    "TrackedDocument",
    "ChangeType",
    "ChangeDetectionResult",
    "ChangeAuditRecord",
    "ChangeStats",
    "ChangePatternSummary",
    "PollingMetrics",
    "HealthStatus",
    "HealthReport",
    "CycleReport",
    "BaseError",
    "ConfigurationError",
    "ValidationError",
    "FetchError",
    "TransientFetchError",
    "RateLimitError",
    "PersistenceError",
    "TenantScopeError",
    "NotifierError",
    "PollingError",
]
