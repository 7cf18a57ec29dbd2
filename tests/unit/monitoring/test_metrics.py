"""Unit tests for polling metrics and health derivation."""

import pytest
from doc_change_tracker.models import CycleReport, HealthStatus, PollingMetrics
from doc_change_tracker.monitoring import MetricsCollector, derive_health


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestMetricsCollector:
    """Test cases for MetricsCollector."""

    def setup_method(self):
        self.clock = FakeClock()
        self.collector = MetricsCollector(window_seconds=3600, clock=self.clock)

    def test_initial_snapshot(self):
        """Test an idle collector."""
        snapshot = self.collector.snapshot()

        assert snapshot.total_cycles == 0
        assert snapshot.success_rate == 1.0
        assert snapshot.error_rate == 0.0
        assert snapshot.last_poll_at is None

    def test_counts_events(self):
        """Test poll, error, notification and API counts."""
        self.collector.record_poll(success=True)
        self.collector.record_poll(success=False)
        self.collector.record_poll(success=False, rate_limited=True)
        self.collector.record_error()
        self.collector.record_api_calls(5)
        self.collector.record_notification(sent=True)
        self.collector.record_notification(sent=False)
        self.collector.record_change()

        snapshot = self.collector.snapshot()

        assert snapshot.polls_in_last_hour == 3
        assert snapshot.errors_in_last_hour == 3
        assert snapshot.rate_limit_errors_in_last_hour == 1
        assert snapshot.api_calls_in_last_hour == 5
        assert snapshot.notifications_in_last_hour == 1
        assert snapshot.failed_notifications == 1
        assert snapshot.changes_detected == 1
        assert snapshot.error_rate == 1.0

    def test_window_expiry(self):
        """Test events older than the window age out."""
        self.collector.record_poll(success=False)
        self.collector.record_api_calls(2)

        self.clock.now += 3601
        self.collector.record_poll(success=True)
        snapshot = self.collector.snapshot()

        assert snapshot.polls_in_last_hour == 1
        assert snapshot.errors_in_last_hour == 0
        assert snapshot.api_calls_in_last_hour == 0

    def test_record_cycle(self):
        """Test end-of-cycle values."""
        report = CycleReport(docs_polled=4, successful=3, failed=1, duration_ms=120)

        self.collector.record_cycle(report, docs_tracked=4)
        snapshot = self.collector.snapshot()

        assert snapshot.total_cycles == 1
        assert snapshot.docs_tracked == 4
        assert snapshot.success_rate == 0.75
        assert snapshot.last_poll_duration_ms == 120
        assert snapshot.last_poll_at is not None

    def test_empty_cycle_success_rate(self):
        """Test a cycle without documents counts as fully successful."""
        self.collector.record_cycle(CycleReport(), docs_tracked=0)
        assert self.collector.snapshot().success_rate == 1.0


class TestDeriveHealth:
    """Test cases for derive_health."""

    @pytest.mark.parametrize(
        "errors, polls, rate_limits, expected",
        [
            (0, 0, 0, HealthStatus.HEALTHY),
            (2, 10, 0, HealthStatus.HEALTHY),
            (3, 10, 0, HealthStatus.DEGRADED),
            (5, 10, 0, HealthStatus.DEGRADED),
            (6, 10, 0, HealthStatus.UNHEALTHY),
            (0, 100, 5, HealthStatus.HEALTHY),
            (0, 100, 6, HealthStatus.DEGRADED),
        ],
    )
    def test_thresholds(self, errors, polls, rate_limits, expected):
        """Test the default error-rate and rate-limit thresholds."""
        metrics = PollingMetrics(
            errors_in_last_hour=errors, polls_in_last_hour=polls, rate_limit_errors_in_last_hour=rate_limits
        )

        report = derive_health(metrics)

        assert report.status == expected
        assert report.metrics == metrics

    def test_custom_thresholds(self):
        """Test thresholds are configurable."""
        metrics = PollingMetrics(errors_in_last_hour=1, polls_in_last_hour=10)

        report = derive_health(metrics, unhealthy_error_rate=0.05, degraded_error_rate=0.01)

        assert report.status == HealthStatus.UNHEALTHY
        assert "10%" in report.reason
