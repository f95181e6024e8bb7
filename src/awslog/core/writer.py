"""
Background writer: one thread per destination draining the message queue.

Lifecycle::

    INITIALIZING -> RUNNING -> STOPPING -> STOPPED
          |            |
          +------------+----> FAILED (terminal)

- INITIALIZING resolves destination-name substitutions, builds the facade
  and waits for the destination to be ready, retrying retryable failures
  within ``initialization_timeout_ms``.
- RUNNING builds batches and sends them. Retryable failures back off and
  retry a bounded number of times; everything else is dropped with a
  diagnostic. Messages are never re-enqueued.
- STOPPING closes the queue to new messages and flushes what is queued
  until the grace window runs out. A stop that arrives while initializing
  or backing off cuts the wait short; delivery continues within the grace
  window. In-flight calls are never interrupted.

In synchronous mode no thread is started: ``start`` initializes on the
caller's thread and ``add_message`` sends inline under a lock.
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Callable

from ..metrics.metrics import MetricsCollector, WriterStatistics
from . import diagnostics
from .batching import BatchBuilder
from .config import WriterConfig
from .errors import DestinationKind, FacadeError, ReasonCode
from .queue import DiscardAction, MessageQueue
from .records import LogMessage
from .substitutions import Substitutions

if TYPE_CHECKING:
    from ..facades.base import Facade

FacadeFactory = Callable[[WriterConfig], "Facade"]

# Floor for initialization polling when the retry delay is configured as 0
_MIN_POLL_SECONDS = 0.01


class WriterState(str, Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


_DONE = (WriterState.STOPPED, WriterState.FAILED)


class LogWriter:
    """Owns a ``MessageQueue`` and delivers its contents through a facade.

    Producers call ``add_message`` from any thread. Only the writer thread
    (or, in synchronous mode, the caller holding the send lock) touches the
    facade.
    """

    def __init__(
        self,
        config: WriterConfig,
        facade_factory: FacadeFactory,
        *,
        metrics: MetricsCollector | None = None,
        startup: datetime | None = None,
    ) -> None:
        self._config = config
        self._facade_factory = facade_factory
        self._startup = startup or datetime.now(timezone.utc)
        self._metrics = metrics or MetricsCollector()
        self._queue = MessageQueue(config.discard_threshold, config.discard_action)
        self._batch_delay = config.batch_delay_seconds
        self._name = f"awslog-{getattr(config, 'kind', 'log')}-writer"

        self._state = WriterState.INITIALIZING
        self._state_cond = threading.Condition()
        self._start_lock = threading.Lock()
        self._started = False
        self._finished = False
        self._stop_requested = threading.Event()
        self._stop_deadline: float | None = None
        self._send_lock = threading.Lock()
        self._thread: threading.Thread | None = None

        self._facade: Facade | None = None
        self._builder: BatchBuilder | None = None
        # Reasons already reported since the last successful send
        self._reported: set[ReasonCode] = set()

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> WriterConfig:
        return self._config

    @property
    def state(self) -> WriterState:
        return self._state

    @property
    def queue(self) -> MessageQueue:
        return self._queue

    @property
    def facade(self) -> Facade | None:
        return self._facade

    @property
    def thread(self) -> threading.Thread | None:
        return self._thread

    # Producer side -------------------------------------------------------

    def start(self) -> None:
        """Start the writer; idempotent."""
        with self._start_lock:
            if self._started:
                return
            self._started = True
        if self._config.synchronous_mode:
            with self._send_lock:
                if self._initialize():
                    self._transition((WriterState.INITIALIZING,), WriterState.RUNNING)
            return
        self._thread = threading.Thread(target=self.run, name=self._name, daemon=True)
        self._thread.start()

    def add_message(self, message: LogMessage) -> bool:
        """Queue a message for delivery.

        Returns False when the message was not accepted: the writer is
        stopping, or the discard policy rejected it.
        """
        if self._state in (WriterState.STOPPING, WriterState.STOPPED):
            self._metrics.record_rejected()
            return False
        accepted = self._queue.enqueue(message)
        if not accepted and self._queue.closed:
            self._metrics.record_rejected()
        if accepted and self._config.synchronous_mode:
            self._send_inline()
        return accepted

    # Runtime reconfiguration ---------------------------------------------

    def set_batch_delay(self, batch_delay_ms: int) -> None:
        if batch_delay_ms < 0:
            raise ValueError("batch_delay_ms must be >= 0")
        self._batch_delay = batch_delay_ms / 1000.0
        if self._builder is not None:
            self._builder.batch_delay = self._batch_delay

    def set_discard_threshold(self, threshold: int) -> None:
        self._queue.reconfigure(discard_threshold=threshold)

    def set_discard_action(self, action: DiscardAction | str) -> None:
        self._queue.reconfigure(discard_action=DiscardAction(action))

    # Writer thread -------------------------------------------------------

    def run(self) -> None:
        """Writer thread body."""
        try:
            if not self._initialize():
                return
            self._transition((WriterState.INITIALIZING,), WriterState.RUNNING)
            builder = self._builder
            assert builder is not None
            while (
                not self._stop_requested.is_set()
                and self._state is WriterState.RUNNING
            ):
                batch = builder.build()
                if batch:
                    self._send_batch(batch)
            if self._state is WriterState.STOPPING:
                self._flush()
        except Exception as exc:
            self._fail(
                "writer thread stopped unexpectedly",
                FacadeError(
                    f"{type(exc).__name__}: {exc}",
                    reason=ReasonCode.UNEXPECTED_EXCEPTION,
                    kind=self._kind(),
                    function_name="run",
                    cause=exc,
                ),
            )
        finally:
            self._finish()

    def _initialize(self) -> bool:
        config = self._config
        deadline = time.monotonic() + config.initialization_timeout_seconds
        try:
            resolved = config.with_substitutions(Substitutions(startup=self._startup))
            facade = self._facade_factory(resolved)
        except FacadeError as exc:
            self._fail("writer configuration rejected", exc)
            return False
        except Exception as exc:
            self._fail(
                "writer configuration rejected",
                FacadeError(
                    f"{type(exc).__name__}: {exc}",
                    reason=ReasonCode.INVALID_CONFIGURATION,
                    kind=self._kind(),
                    function_name="configure",
                    cause=exc,
                ),
            )
            return False

        self._facade = facade
        self._metrics.set_destination(facade.destination)
        self._builder = BatchBuilder(
            self._queue,
            facade.limits,
            sizer=facade.message_size,
            batch_delay=self._batch_delay,
            truncate_oversize=config.truncate_oversize_messages,
            synchronous=config.synchronous_mode,
            on_reject=lambda _message: self._metrics.record_oversize(),
        )

        attempt = 0
        while True:
            try:
                facade.ensure_destination()
            except FacadeError as exc:
                self._metrics.record_error(str(exc), exc.reason.value)
                if not exc.retryable:
                    self._fail("destination initialization failed", exc)
                    return False
                if self._past_stop_deadline():
                    diagnostics.warn(
                        "writer",
                        "shutdown grace window expired before destination was ready",
                        destination=facade.destination,
                        abandoned=len(self._queue),
                        error=exc.to_dict(),
                    )
                    return False
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._fail("timed out waiting for destination", exc)
                    return False
                delay = max(_MIN_POLL_SECONDS, config.retry.delay_seconds(attempt))
                attempt += 1
                diagnostics.debug(
                    "writer",
                    "destination not ready; retrying",
                    destination=facade.destination,
                    reason=exc.reason.value,
                    attempt=attempt,
                )
                # Woken early by stop; polling continues within the grace window
                self._pause(min(delay, remaining, self._until_stop_deadline()))
                continue
            except Exception as exc:
                self._fail(
                    "destination initialization failed",
                    FacadeError(
                        f"{type(exc).__name__}: {exc}",
                        reason=ReasonCode.UNEXPECTED_EXCEPTION,
                        kind=self._kind(),
                        function_name="ensure_destination",
                        cause=exc,
                    ),
                )
                return False
            diagnostics.debug(
                "writer", "destination ready", destination=facade.destination
            )
            return True

    def _send_batch(self, batch: list[LogMessage]) -> None:
        facade = self._facade
        assert facade is not None
        retry = self._config.retry
        pending = list(batch)
        attempt = 0
        recreated = False

        while pending:
            started = time.monotonic()
            error: FacadeError | None = None
            try:
                unsent = facade.send(pending)
            except FacadeError as exc:
                self._metrics.record_error(str(exc), exc.reason.value)
                error = exc
                if exc.reason is ReasonCode.MISSING_DESTINATION and not recreated:
                    recreated = True
                    if self._recreate_destination():
                        continue
                    if self._state is WriterState.FAILED:
                        # Already reported by _fail
                        self._metrics.record_batch_failed(len(pending))
                        return
                elif not exc.retryable:
                    self._drop(pending, exc)
                    if exc.reason is ReasonCode.INVALID_CONFIGURATION:
                        self._transition(
                            (WriterState.RUNNING, WriterState.STOPPING),
                            WriterState.FAILED,
                        )
                    return
            except Exception as exc:
                self._metrics.record_error(
                    str(exc), ReasonCode.UNEXPECTED_EXCEPTION.value
                )
                self._drop(
                    pending,
                    FacadeError(
                        f"{type(exc).__name__}: {exc}",
                        reason=ReasonCode.UNEXPECTED_EXCEPTION,
                        kind=self._kind(),
                        function_name="send",
                        cause=exc,
                    ),
                )
                return
            else:
                delivered = len(pending) - len(unsent)
                if delivered:
                    self._metrics.record_sent(
                        delivered, latency_seconds=time.monotonic() - started
                    )
                    self._reported.clear()
                pending = list(unsent)
                if not pending:
                    return

            attempt += 1
            if attempt >= retry.max_attempts or self._past_stop_deadline():
                self._metrics.record_batch_failed(len(pending))
                diagnostics.warn(
                    "writer",
                    "dropping batch after retries",
                    destination=facade.destination,
                    dropped=len(pending),
                    attempts=attempt,
                    reason=error.reason.value if error else "partial_failure",
                    _rate_limit_key=f"{self._name}-exhausted",
                )
                return
            self._metrics.record_retry()
            self._pause(self._backoff_delay(attempt - 1))

    def _recreate_destination(self) -> bool:
        facade = self._facade
        assert facade is not None
        try:
            facade.ensure_destination()
        except FacadeError as exc:
            self._metrics.record_error(str(exc), exc.reason.value)
            if not exc.retryable:
                self._fail("destination could not be recreated", exc)
            return False
        except Exception as exc:
            self._fail(
                "destination could not be recreated",
                FacadeError(
                    f"{type(exc).__name__}: {exc}",
                    reason=ReasonCode.UNEXPECTED_EXCEPTION,
                    kind=self._kind(),
                    function_name="ensure_destination",
                    cause=exc,
                ),
            )
            return False
        diagnostics.debug(
            "writer", "destination recreated", destination=facade.destination
        )
        return True

    def _flush(self) -> None:
        builder = self._builder
        if builder is None:
            return
        while not self._queue.is_empty():
            if self._state is WriterState.FAILED:
                break
            if self._past_stop_deadline():
                diagnostics.warn(
                    "writer",
                    "shutdown grace window expired; abandoning queued messages",
                    destination=self._destination(),
                    abandoned=len(self._queue),
                )
                break
            batch = builder.build(wait=False)
            if batch:
                self._send_batch(batch)

    def _send_inline(self) -> None:
        with self._send_lock:
            builder = self._builder
            if self._state is not WriterState.RUNNING or builder is None:
                return
            while True:
                batch = builder.build(wait=False)
                if not batch:
                    return
                self._send_batch(batch)

    # Shutdown ------------------------------------------------------------

    def stop(self, timeout: float | None = None) -> None:
        """Request shutdown with a flush window of ``timeout`` seconds.

        Returns immediately for a background writer; use
        ``wait_until_stopped`` to wait for the flush. In synchronous mode
        the flush runs on the calling thread.
        """
        grace = self._config.shutdown_timeout_seconds if timeout is None else timeout
        with self._state_cond:
            if self._state in (WriterState.INITIALIZING, WriterState.RUNNING):
                self._state = WriterState.STOPPING
                self._state_cond.notify_all()
            if self._stop_deadline is None:
                self._stop_deadline = time.monotonic() + max(0.0, grace)
        with self._start_lock:
            never_started = not self._started
            self._started = True
        self._stop_requested.set()
        self._queue.close()

        if self._config.synchronous_mode:
            with self._send_lock:
                if self._state is WriterState.STOPPING:
                    self._flush()
            self._finish()
        elif never_started:
            self._finish()

    def wait_until_stopped(self, timeout: float | None = None) -> bool:
        with self._state_cond:
            return self._state_cond.wait_for(lambda: self._state in _DONE, timeout)

    def wait_until_initialized(self, timeout: float | None = None) -> bool:
        """Wait until the writer has left INITIALIZING."""
        with self._state_cond:
            return self._state_cond.wait_for(
                lambda: self._state is not WriterState.INITIALIZING, timeout
            )

    def shutdown(self, timeout: float | None = None) -> bool:
        """Stop and wait for the writer; True if it stopped in time."""
        grace = self._config.shutdown_timeout_seconds if timeout is None else timeout
        self.stop(grace)
        stopped = self.wait_until_stopped(grace)
        thread = self._thread
        if stopped and thread is not None and thread is not threading.current_thread():
            thread.join(timeout=grace)
        return stopped

    def statistics(self) -> WriterStatistics:
        return self._metrics.snapshot(
            destination=self._destination(),
            state=self._state.value,
            queue_size=len(self._queue),
            messages_discarded=self._queue.discard_count,
        )

    # Internals -----------------------------------------------------------

    def _transition(
        self, expected: tuple[WriterState, ...], new_state: WriterState
    ) -> bool:
        with self._state_cond:
            if self._state not in expected:
                return False
            self._state = new_state
            self._state_cond.notify_all()
            return True

    def _fail(self, message: str, error: FacadeError) -> None:
        self._transition(
            (WriterState.INITIALIZING, WriterState.RUNNING, WriterState.STOPPING),
            WriterState.FAILED,
        )
        self._reported.add(error.reason)
        diagnostics.warn(
            "writer",
            message,
            destination=self._destination(),
            error=error.to_dict(),
        )

    def _drop(self, pending: list[LogMessage], error: FacadeError) -> None:
        self._metrics.record_batch_failed(len(pending))
        if error.reason in self._reported:
            return
        self._reported.add(error.reason)
        diagnostics.warn(
            "writer",
            "dropping batch after non-retryable error",
            destination=self._destination(),
            dropped=len(pending),
            error=error.to_dict(),
        )

    def _finish(self) -> None:
        with self._state_cond:
            if self._finished:
                return
            self._finished = True
            if self._state is not WriterState.FAILED:
                self._state = WriterState.STOPPED
            self._state_cond.notify_all()
        facade = self._facade
        if facade is not None:
            facade.shutdown()
        diagnostics.debug(
            "writer",
            "writer stopped",
            destination=self._destination(),
            state=self._state.value,
        )

    def _past_stop_deadline(self) -> bool:
        deadline = self._stop_deadline
        return deadline is not None and time.monotonic() >= deadline

    def _until_stop_deadline(self) -> float:
        deadline = self._stop_deadline
        if deadline is None:
            return float("inf")
        return max(0.0, deadline - time.monotonic())

    def _backoff_delay(self, attempt: int) -> float:
        delay = self._config.retry.delay_seconds(attempt)
        return min(delay, self._until_stop_deadline())

    def _pause(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, waking early on the first stop request."""
        if delay <= 0:
            return
        if self._stop_requested.is_set():
            time.sleep(delay)
        else:
            self._stop_requested.wait(delay)

    def _destination(self) -> str | None:
        facade = self._facade
        return facade.destination if facade is not None else None

    def _kind(self) -> DestinationKind:
        kind = getattr(self._config, "kind", None)
        try:
            return DestinationKind(kind)
        except ValueError:
            return DestinationKind.CLOUDWATCH
