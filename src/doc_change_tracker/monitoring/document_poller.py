"""
Document poller for tracked document changes.

Runs poll cycles on a fixed interval: every tracked document of every tenant
is fetched once, compared with the last known state of each of its active
tracking rows and, when it changed, notified and written to the audit trail.
Work inside a cycle is concurrent up to ``max_concurrent_polls`` documents;
cycles themselves never overlap.
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from doc_change_tracker.core.interfaces import INotifier, ITrackingStore
from doc_change_tracker.detection import analyze_change_pattern, detect_change, format_detection_result
from doc_change_tracker.fetching import MetadataFetcher, validate_document_ref
from doc_change_tracker.models import (
    ChangeAuditRecord,
    ChangeDetectionResult,
    ChangeStats,
    CycleReport,
    DocType,
    DocumentMetadata,
    FetchError,
    HealthReport,
    PersistenceError,
    PollingError,
    PollingMetrics,
    RateLimitError,
    TrackedDocument,
    ValidationError,
)
from doc_change_tracker.monitoring.metrics import MetricsCollector, derive_health
from doc_change_tracker.notifications import render_change_message
from doc_change_tracker.storage.scope import require_tenant

logger = logging.getLogger(__name__)


def _is_rate_limited(error: Exception) -> bool:
    return isinstance(error, RateLimitError) or isinstance(getattr(error, "cause", None), RateLimitError)


class DocumentPoller:
    """
    Polls tracked documents and dispatches change notifications.

    The poller owns the fetcher cache and the metrics; tracking state lives
    in the store so that start and stop commands take effect on the next
    cycle without touching the loop.
    """

    def __init__(
        self,
        config,
        fetcher: MetadataFetcher,
        store: ITrackingStore,
        notifier: INotifier,
        clock: Callable[[], datetime] | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the document poller.

        Args:
            config: Tracker configuration
            fetcher: Metadata fetcher with retry and cache
            store: Tracking store
            notifier: Notification sink
            clock: Optional source of the current UTC time
            metrics: Optional metrics collector (will create if not provided)
        """
        self.config = config
        self.fetcher = fetcher
        self.store = store
        self.notifier = notifier
        self._clock = clock or (lambda: datetime.now(UTC))
        self.metrics = metrics or MetricsCollector(window_seconds=config.metrics_window_seconds)

        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, config=None) -> None:
        """
        Start the polling loop. The first cycle runs immediately.

        Args:
            config: Optional replacement configuration, retry policy included

        Raises:
            PollingError: If the tracking store is unreachable
        """
        if self.is_running:
            logger.warning("Document poller already running")
            return

        if config is not None:
            self.config = config
            self.fetcher.configure(
                max_attempts=config.retry_attempts,
                retry_delays=config.get_retry_delays(),
                attempt_timeout_seconds=config.fetch_timeout_seconds,
            )

        if not await self.store.health_check():
            raise PollingError("Tracking store is unavailable, not starting poller", operation="start")

        logger.info(
            "Starting document poller (interval: %ss, max concurrent: %d, debounce: %ss)",
            self.config.poll_interval_seconds,
            self.config.max_concurrent_polls,
            self.config.debounce_window_seconds,
        )
        self._task = asyncio.create_task(self._run_loop(), name="document-poller")

    async def stop(self) -> None:
        """Stop the polling loop and wait for it to finish."""
        if self._task is None:
            logger.debug("Document poller not running, nothing to stop")
            return

        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Document poller stopped")

    async def _run_loop(self) -> None:
        while True:
            try:
                await self.poll_once()
            except Exception as e:
                self.metrics.record_error()
                logger.error("Poll cycle failed: %s", e)

            await asyncio.sleep(self.config.poll_interval_seconds)

    async def poll_once(self) -> CycleReport:
        """
        Run one poll cycle over every active tracking row.

        Returns:
            Summary of the cycle
        """
        started = time.perf_counter()
        api_calls_before = self.fetcher.api_calls
        report = CycleReport()
        batch_size = max(1, self.config.max_concurrent_polls)

        for tenant_id in await self.store.list_active_tenants():
            try:
                tracked_docs = await self.store.list_tracked(tenant_id, active_only=True)
            except PersistenceError as e:
                self.metrics.record_error()
                logger.error("Could not list tracked documents for tenant %s: %s", tenant_id, e)
                continue

            report.tenants += 1
            report.docs_polled += len(tracked_docs)

            # One fetch per document, shared by all of its destinations
            rows_by_doc: dict[str, list[TrackedDocument]] = {}
            for tracked in tracked_docs:
                rows_by_doc.setdefault(tracked.doc_id, []).append(tracked)
            groups = list(rows_by_doc.values())

            for start in range(0, len(groups), batch_size):
                batch = groups[start:start + batch_size]
                results = await asyncio.gather(
                    *(self._poll_document(rows, report) for rows in batch),
                    return_exceptions=True,
                )
                for rows, result in zip(batch, results, strict=True):
                    if isinstance(result, BaseException):
                        self.metrics.record_poll(success=False)
                        report.failed += len(rows)
                        logger.error("Unexpected error polling %s: %s", rows[0].doc_id, result)
                    elif result:
                        report.successful += len(rows)
                    else:
                        report.failed += len(rows)

        report.duration_ms = int((time.perf_counter() - started) * 1000)
        self.metrics.record_api_calls(self.fetcher.api_calls - api_calls_before)
        self.metrics.record_cycle(report, docs_tracked=report.docs_polled)

        logger.info(
            "Poll cycle complete: %d docs, %d ok, %d failed, %d changes, %d notified, %d debounced in %dms",
            report.docs_polled,
            report.successful,
            report.failed,
            report.changes_detected,
            report.notifications_sent,
            report.debounced,
            report.duration_ms,
        )
        if report.detections:
            pattern = analyze_change_pattern(report.detections)
            logger.info(
                "Changes this cycle by %d modifier(s): %s",
                len(pattern.unique_modifiers),
                ", ".join(sorted(pattern.unique_modifiers)) or "-",
            )
        return report

    async def _poll_document(self, rows: list[TrackedDocument], report: CycleReport) -> bool:
        """
        Poll one document and apply the result to each of its tracking rows.

        Args:
            rows: Active tracking rows of the same tenant and document
            report: Cycle report to update

        Returns:
            True when the metadata was fetched, False when the fetch failed
        """
        first = rows[0]
        try:
            metadata = await self.fetcher.fetch(first.doc_id, first.doc_type)
        except (FetchError, ValidationError) as e:
            self.metrics.record_poll(success=False, rate_limited=_is_rate_limited(e))
            logger.warning("Failed to poll %s (tenant %s): %s", first.doc_id, first.tenant_id, e)
            return False

        self.metrics.record_poll(success=True)
        for tracked in rows:
            await self._apply_metadata(tracked, metadata, report)
        return True

    async def _apply_metadata(
        self, tracked: TrackedDocument, metadata: DocumentMetadata, report: CycleReport
    ) -> None:
        """Detect, notify, audit and store the new state for one tracking row."""
        previous = tracked if tracked.has_known_state else None
        detection = detect_change(metadata, previous, self.config.debounce_window_seconds, now=self._clock())

        if detection.has_changed:
            if not await self._handle_change(tracked, metadata, detection, report):
                return

        await self._write(
            "update_last_known_state",
            tracked,
            self.store.update_last_known_state(
                tracked.tenant_id,
                tracked.doc_id,
                metadata.last_modified_by,
                metadata.last_modified_at,
                destination=tracked.notify_destination,
            ),
        )

    async def _handle_change(
        self,
        tracked: TrackedDocument,
        metadata: DocumentMetadata,
        detection: ChangeDetectionResult,
        report: CycleReport,
    ) -> bool:
        """
        Notify and audit a detected change.

        Returns:
            False when the row was deactivated during the cycle and nothing was written
        """
        try:
            current = await self.store.get_tracked(
                tracked.tenant_id, tracked.doc_id, destination=tracked.notify_destination
            )
        except PersistenceError as e:
            self.metrics.record_error()
            logger.error("Could not re-check tracking state of %s: %s", tracked.doc_id, e)
            current = tracked

        if current is None or not current.active:
            logger.info("Tracking of %s stopped during cycle, dropping change", tracked.doc_id)
            return False

        report.changes_detected += 1
        self.metrics.record_change()
        report.detections.append(detection)
        logger.info("Change for %s: %s", tracked.doc_id, format_detection_result(detection))

        notification_ref = None
        error_message = None
        if detection.debounced:
            report.debounced += 1
        else:
            try:
                notification_ref = await self.notifier.notify(
                    tracked.notify_destination, render_change_message(metadata, detection)
                )
            except Exception as e:
                error_message = str(e)
                logger.error("Failed to notify %s about %s: %s", tracked.notify_destination, tracked.doc_id, e)

            self.metrics.record_notification(sent=notification_ref is not None)
            if notification_ref is not None:
                report.notifications_sent += 1
                await self._write(
                    "update_last_notification_time",
                    tracked,
                    self.store.update_last_notification_time(
                        tracked.tenant_id,
                        tracked.doc_id,
                        detection.detected_at,
                        destination=tracked.notify_destination,
                    ),
                )

        record = ChangeAuditRecord.from_detection(
            current, detection, notification_ref=notification_ref, error_message=error_message
        )
        await self._write("record_change", tracked, self.store.record_change(tracked.tenant_id, record))
        return True

    async def _write(self, operation: str, tracked: TrackedDocument, write: Awaitable[Any]) -> Any:
        """Await a store write, logging and counting a failure instead of raising."""
        try:
            return await write
        except PersistenceError as e:
            self.metrics.record_error()
            logger.error("Store %s failed for %s (tenant %s): %s", operation, tracked.doc_id, tracked.tenant_id, e)
            return None

    async def start_tracking_doc(
        self,
        tenant_id: str,
        doc_id: str,
        doc_type: DocType | str,
        destination: str,
        owner_user_id: str | None = None,
        notes: str | None = None,
    ) -> TrackedDocument:
        """
        Start tracking a document for a destination.

        The current metadata is fetched as the baseline so the first cycle
        does not report the document as changed. A failed fetch still
        registers the document, without a baseline.

        Raises:
            ValidationError: If the document reference or destination is invalid
            TenantScopeError: If the tenant is missing
            PersistenceError: If the tracking row cannot be written
        """
        require_tenant(tenant_id, "start_tracking")
        doc_type = validate_document_ref(doc_id, doc_type)
        if not destination or not destination.strip():
            raise ValidationError(
                "Notification destination is required",
                field_name="destination",
                actual_value=destination,
                validation_rule="non_empty",
            )

        try:
            metadata = await self.fetcher.fetch(doc_id, doc_type, use_cache=False)
        except FetchError as e:
            logger.warning("Could not fetch baseline for %s, tracking without one: %s", doc_id, e)
            metadata = None

        return await self.store.start_tracking(
            tenant_id,
            doc_id,
            doc_type,
            destination,
            initial_metadata=metadata,
            owner_user_id=owner_user_id,
            notes=notes,
        )

    async def stop_tracking_doc(self, tenant_id: str, doc_id: str) -> bool:
        """Stop tracking a document for every destination of the tenant."""
        return await self.store.stop_tracking(tenant_id, doc_id)

    async def check_document(
        self, tenant_id: str, doc_id: str, doc_type: DocType | str
    ) -> tuple[DocumentMetadata, ChangeDetectionResult]:
        """
        Fetch fresh metadata and compare it with the stored state without writing anything.

        Raises:
            ValidationError: If the document reference is invalid
            FetchError: If the metadata cannot be fetched
        """
        require_tenant(tenant_id, "check_document")
        doc_type = validate_document_ref(doc_id, doc_type)
        metadata = await self.fetcher.fetch(doc_id, doc_type, use_cache=False)

        tracked = await self.store.get_tracked(tenant_id, doc_id)
        previous = tracked if tracked is not None and tracked.has_known_state else None
        detection = detect_change(metadata, previous, self.config.debounce_window_seconds, now=self._clock())
        return metadata, detection

    async def list_tracked(self, tenant_id: str, active_only: bool = True) -> list[TrackedDocument]:
        return await self.store.list_tracked(tenant_id, active_only=active_only)

    async def get_change_history(self, tenant_id: str, doc_id: str, limit: int = 50) -> list[ChangeAuditRecord]:
        return await self.store.get_change_history(tenant_id, doc_id, limit=limit)

    async def get_change_stats(self, tenant_id: str, doc_id: str) -> ChangeStats:
        return await self.store.get_change_stats(tenant_id, doc_id)

    def get_polling_metrics(self) -> PollingMetrics:
        return self.metrics.snapshot()

    def get_health(self) -> HealthReport:
        return derive_health(
            self.get_polling_metrics(),
            unhealthy_error_rate=self.config.unhealthy_error_rate,
            degraded_error_rate=self.config.degraded_error_rate,
            degraded_rate_limit_errors=self.config.degraded_rate_limit_errors,
        )
