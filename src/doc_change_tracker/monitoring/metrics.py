"""
Polling metrics and health derivation.

Event counts are kept as timestamps in rolling windows so the "last hour"
figures age out on their own. Metrics live in process memory and reset on
restart.
"""

import time
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime

from doc_change_tracker.models import CycleReport, HealthReport, HealthStatus, PollingMetrics


class MetricsCollector:
    """Collects poller activity counters over a rolling window."""

    def __init__(self, window_seconds: float = 3600, clock: Callable[[], float] = time.time):
        self.window_seconds = window_seconds
        self._clock = clock

        self._polls: deque[float] = deque()
        self._errors: deque[float] = deque()
        self._rate_limits: deque[float] = deque()
        self._api_calls: deque[float] = deque()
        self._notifications: deque[float] = deque()

        self.failed_notifications = 0
        self.total_cycles = 0
        self.changes_detected = 0
        self.docs_tracked = 0
        self.last_poll_at: datetime | None = None
        self.last_poll_duration_ms = 0
        self.success_rate = 1.0

    def record_poll(self, success: bool, rate_limited: bool = False) -> None:
        """Record one per-document poll attempt."""
        now = self._clock()
        self._polls.append(now)
        if not success:
            self._errors.append(now)
        if rate_limited:
            self._rate_limits.append(now)

    def record_error(self) -> None:
        """Record an error that is not tied to a poll outcome, such as a failed write."""
        self._errors.append(self._clock())

    def record_api_calls(self, count: int) -> None:
        now = self._clock()
        self._api_calls.extend([now] * max(count, 0))

    def record_notification(self, sent: bool) -> None:
        if sent:
            self._notifications.append(self._clock())
        else:
            self.failed_notifications += 1

    def record_change(self) -> None:
        self.changes_detected += 1

    def record_cycle(self, report: CycleReport, docs_tracked: int) -> None:
        """Record the end of a poll cycle."""
        self.total_cycles += 1
        self.docs_tracked = docs_tracked
        self.last_poll_at = datetime.now(UTC)
        self.last_poll_duration_ms = report.duration_ms
        self.success_rate = report.successful / report.docs_polled if report.docs_polled else 1.0

    def _prune(self) -> None:
        cutoff = self._clock() - self.window_seconds
        for events in (self._polls, self._errors, self._rate_limits, self._api_calls, self._notifications):
            while events and events[0] < cutoff:
                events.popleft()

    def snapshot(self) -> PollingMetrics:
        """Build a metrics snapshot for the current window."""
        self._prune()
        return PollingMetrics(
            docs_tracked=self.docs_tracked,
            last_poll_at=self.last_poll_at,
            last_poll_duration_ms=self.last_poll_duration_ms,
            success_rate=self.success_rate,
            errors_in_last_hour=len(self._errors),
            notifications_in_last_hour=len(self._notifications),
            api_calls_in_last_hour=len(self._api_calls),
            polls_in_last_hour=len(self._polls),
            rate_limit_errors_in_last_hour=len(self._rate_limits),
            failed_notifications=self.failed_notifications,
            total_cycles=self.total_cycles,
            changes_detected=self.changes_detected,
        )


def derive_health(
    metrics: PollingMetrics,
    unhealthy_error_rate: float = 0.5,
    degraded_error_rate: float = 0.2,
    degraded_rate_limit_errors: int = 5,
) -> HealthReport:
    """
    Derive a health status from a metrics snapshot.

    Args:
        metrics: Metrics snapshot
        unhealthy_error_rate: Error rate above which the poller is unhealthy
        degraded_error_rate: Error rate above which the poller is degraded
        degraded_rate_limit_errors: Rate-limit count above which the poller is degraded

    Returns:
        Health report carrying the status, a reason and the metrics used
    """
    error_rate = metrics.error_rate

    if error_rate > unhealthy_error_rate:
        status = HealthStatus.UNHEALTHY
        reason = f"High error rate: {error_rate:.0%}"
    elif error_rate > degraded_error_rate:
        status = HealthStatus.DEGRADED
        reason = f"Elevated error rate: {error_rate:.0%}"
    elif metrics.rate_limit_errors_in_last_hour > degraded_rate_limit_errors:
        status = HealthStatus.DEGRADED
        reason = f"Rate limited {metrics.rate_limit_errors_in_last_hour} times in the last hour"
    else:
        status = HealthStatus.HEALTHY
        reason = "Polling normally"

    return HealthReport(status=status, reason=reason, metrics=metrics)
