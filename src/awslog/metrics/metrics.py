"""
Delivery metrics for awslog writers.

Implements minimal Prometheus-compatible counters and a latency histogram.

Design goals:
- Thread-safe: producers and the writer thread record concurrently
- Zero global state; each writer owns its collector
- In-memory counters always tracked so statistics work with Prometheus off
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram


@dataclass(frozen=True)
class WriterStatistics:
    """Snapshot of a writer's counters and most recent error."""

    destination: str | None = None
    state: str | None = None
    messages_sent: int = 0
    messages_discarded: int = 0
    messages_rejected: int = 0
    messages_dropped: int = 0
    batches_sent: int = 0
    batches_failed: int = 0
    retries: int = 0
    queue_size: int = 0
    last_error_message: str | None = None
    last_error_reason: str | None = None
    last_error_time: datetime | None = None


class MetricsCollector:
    """Writer-scoped metrics collector.

    When disabled, all exporter calls are no-ops while the in-memory
    counters are still maintained for ``snapshot()``.
    """

    def __init__(self, *, enabled: bool = False, destination: str = "unknown") -> None:
        self._enabled = bool(enabled)
        self._lock = threading.Lock()
        self._state = WriterStatistics()
        self._label = destination

        self._c_sent: Any | None = None
        self._c_dropped: Any | None = None
        self._c_batches_failed: Any | None = None
        self._c_retries: Any | None = None
        self._c_errors: Any | None = None
        self._h_send_latency: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            # Isolated registry avoids duplicate registration across writers
            self._registry = CollectorRegistry()
            self._c_sent = Counter(
                "awslog_messages_sent_total",
                "Messages accepted by the destination",
                ["destination"],
                registry=self._registry,
            )
            self._c_dropped = Counter(
                "awslog_messages_dropped_total",
                "Messages lost to discard policy, oversize or failed batches",
                ["destination", "cause"],
                registry=self._registry,
            )
            self._c_batches_failed = Counter(
                "awslog_batches_failed_total",
                "Batches dropped after a non-retryable error or exhausted retries",
                ["destination"],
                registry=self._registry,
            )
            self._c_retries = Counter(
                "awslog_send_retries_total",
                "Send attempts repeated after a retryable error",
                ["destination"],
                registry=self._registry,
            )
            self._c_errors = Counter(
                "awslog_remote_errors_total",
                "Remote call failures by reason code",
                ["destination", "reason"],
                registry=self._registry,
            )
            self._h_send_latency = Histogram(
                "awslog_send_seconds",
                "Latency of a single remote send call",
                ["destination"],
                buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        """Expose the isolated Prometheus registry when enabled."""
        return self._registry

    def set_destination(self, destination: str) -> None:
        with self._lock:
            self._label = destination
            self._state = replace(self._state, destination=destination)

    def record_sent(self, count: int, *, latency_seconds: float | None = None) -> None:
        with self._lock:
            self._state = replace(
                self._state,
                messages_sent=self._state.messages_sent + count,
                batches_sent=self._state.batches_sent + 1,
            )
        if self._c_sent is not None:
            self._c_sent.labels(destination=self._label).inc(count)
        if latency_seconds is not None and self._h_send_latency is not None:
            self._h_send_latency.labels(destination=self._label).observe(
                latency_seconds
            )

    def record_rejected(self, count: int = 1) -> None:
        """Messages refused at enqueue (newest policy, writer stopping)."""
        with self._lock:
            self._state = replace(
                self._state, messages_rejected=self._state.messages_rejected + count
            )
        if self._c_dropped is not None:
            self._c_dropped.labels(destination=self._label, cause="rejected").inc(
                count
            )

    def record_oversize(self) -> None:
        with self._lock:
            self._state = replace(
                self._state, messages_dropped=self._state.messages_dropped + 1
            )
        if self._c_dropped is not None:
            self._c_dropped.labels(destination=self._label, cause="oversize").inc()

    def record_batch_failed(self, count: int) -> None:
        with self._lock:
            self._state = replace(
                self._state,
                messages_dropped=self._state.messages_dropped + count,
                batches_failed=self._state.batches_failed + 1,
            )
        if self._c_batches_failed is not None:
            self._c_batches_failed.labels(destination=self._label).inc()
        if self._c_dropped is not None:
            self._c_dropped.labels(destination=self._label, cause="failed").inc(count)

    def record_retry(self) -> None:
        with self._lock:
            self._state = replace(self._state, retries=self._state.retries + 1)
        if self._c_retries is not None:
            self._c_retries.labels(destination=self._label).inc()

    def record_error(self, message: str, reason: str) -> None:
        with self._lock:
            self._state = replace(
                self._state,
                last_error_message=message,
                last_error_reason=reason,
                last_error_time=datetime.now(timezone.utc),
            )
        if self._c_errors is not None:
            self._c_errors.labels(destination=self._label, reason=reason).inc()

    def snapshot(self, **overrides: Any) -> WriterStatistics:
        """Copy of the counters, with caller-supplied live fields merged in."""
        with self._lock:
            return replace(self._state, **overrides)
