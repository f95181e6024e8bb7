"""
Producer-facing entry point.

``LogShipper`` is what the formatting layer talks to: construct it once
with a writer config, call ``enqueue`` for every rendered event, and
``shutdown`` when the application exits. ``enqueue`` never raises and never
waits on the network.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Mapping

from ..metrics.metrics import MetricsCollector, WriterStatistics
from . import diagnostics, shutdown
from .config import WriterConfig
from .records import LogMessage
from .writer import FacadeFactory, LogWriter, WriterState


def _default_facade_factory() -> FacadeFactory:
    from ..facades import create_facade

    return create_facade


class LogShipper:
    """Owns one ``LogWriter`` and creates it lazily or eagerly.

    Usage:
        shipper = LogShipper({"kind": "cloudwatch", "log_group_name": "app"})
        shipper.enqueue("hello world")
        shipper.shutdown()
    """

    def __init__(
        self,
        config: WriterConfig | Mapping[str, Any],
        *,
        facade_factory: FacadeFactory | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if not isinstance(config, WriterConfig):
            from ..facades import parse_writer_config

            config = parse_writer_config(config)
        self._config = config
        self._facade_factory = facade_factory or _default_facade_factory()
        self._metrics = metrics
        self._startup = datetime.now(timezone.utc)
        self._lock = threading.Lock()
        self._writer: LogWriter | None = None
        self._closed = False
        if not config.lazy_start:
            self._ensure_writer()

    @property
    def config(self) -> WriterConfig:
        return self._config

    @property
    def writer(self) -> LogWriter | None:
        return self._writer

    def enqueue(
        self,
        message: str,
        timestamp: float | None = None,
        size_hint: int | None = None,
    ) -> bool:
        """Queue a rendered event; True if it was accepted.

        ``timestamp`` is epoch seconds. ``size_hint`` is the caller's UTF-8
        size estimate; the stored size is always measured from ``message``.
        """
        try:
            writer = self._ensure_writer()
            if writer is None:
                return False
            record = LogMessage.create(message, timestamp)
            if size_hint is not None and size_hint != record.size:
                diagnostics.debug(
                    "shipper",
                    "size hint does not match message size",
                    size_hint=size_hint,
                    size=record.size,
                    _rate_limit_key="shipper-size-hint",
                )
            return writer.add_message(record)
        except Exception as exc:
            diagnostics.warn(
                "shipper",
                "enqueue failed",
                error=f"{type(exc).__name__}: {exc}",
                _rate_limit_key="shipper-enqueue",
            )
            return False

    def shutdown(self, timeout: float | None = None) -> bool:
        """Flush and stop the writer; True if it stopped within ``timeout``."""
        with self._lock:
            self._closed = True
            writer = self._writer
        if writer is None:
            return True
        stopped = writer.shutdown(timeout)
        shutdown.unregister_writer(writer)
        if not stopped:
            diagnostics.warn(
                "shipper",
                "writer did not stop within timeout",
                writer=writer.name,
                state=writer.state.value,
            )
        return stopped

    def statistics(self) -> WriterStatistics | None:
        writer = self._writer
        return writer.statistics() if writer is not None else None

    def _ensure_writer(self) -> LogWriter | None:
        writer = self._writer
        if writer is not None:
            return writer
        with self._lock:
            if self._closed:
                return None
            if self._writer is None:
                writer = LogWriter(
                    self._config,
                    self._facade_factory,
                    metrics=self._metrics,
                    startup=self._startup,
                )
                if self._config.use_shutdown_hook:
                    shutdown.register_writer(writer)
                self._writer = writer
                writer.start()
                diagnostics.debug(
                    "shipper",
                    "writer started",
                    writer=writer.name,
                    synchronous=self._config.synchronous_mode,
                )
            return self._writer

    def is_running(self) -> bool:
        writer = self._writer
        return writer is not None and writer.state is WriterState.RUNNING
