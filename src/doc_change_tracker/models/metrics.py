"""
Models for polling metrics, cycle reports and health status.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field

from doc_change_tracker.models.change import ChangeDetectionResult


class HealthStatus(str, Enum):
    """Health status derived from polling metrics."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class PollingMetrics(BaseModel):
    """Process-lifetime snapshot of poller activity. Resets on restart."""

    docs_tracked: int = Field(default=0, ge=0, description="Active documents seen in the last cycle")
    last_poll_at: datetime | None = Field(None, description="When the last cycle finished")
    last_poll_duration_ms: int = Field(default=0, ge=0, description="Duration of the last cycle")
    success_rate: float = Field(default=1.0, ge=0.0, le=1.0, description="Successful docs / docs in last cycle")
    errors_in_last_hour: int = Field(default=0, ge=0)
    notifications_in_last_hour: int = Field(default=0, ge=0)
    api_calls_in_last_hour: int = Field(default=0, ge=0)
    polls_in_last_hour: int = Field(default=0, ge=0, description="Per-document poll attempts in the window")
    rate_limit_errors_in_last_hour: int = Field(default=0, ge=0)
    failed_notifications: int = Field(default=0, ge=0)
    total_cycles: int = Field(default=0, ge=0)
    changes_detected: int = Field(default=0, ge=0)

    @computed_field
    @property
    def error_rate(self) -> float:
        """Errors per document poll over the rolling window."""
        if self.polls_in_last_hour == 0:
            return 0.0
        return min(1.0, self.errors_in_last_hour / self.polls_in_last_hour)


class HealthReport(BaseModel):
    """Derived health status with the metrics it was computed from."""

    status: HealthStatus
    reason: str
    metrics: PollingMetrics


class CycleReport(BaseModel):
    """Summary of one poll cycle."""

    tenants: int = 0
    docs_polled: int = 0
    successful: int = 0
    failed: int = 0
    changes_detected: int = 0
    notifications_sent: int = 0
    debounced: int = 0
    duration_ms: int = 0
    detections: list[ChangeDetectionResult] = Field(default_factory=list)
