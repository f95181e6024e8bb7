"""
Batch construction from the message queue.

A batch is bounded by the destination's record count and cumulative byte
size (measured with the facade's sizer, which includes per-record overhead).
The builder waits for the first message, then keeps collecting until the
batch is full or ``batch_delay`` has passed since that first message.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from . import diagnostics
from .queue import MessageQueue, Sizer
from .records import LogMessage

RejectCallback = Callable[[LogMessage], None]


@dataclass(frozen=True)
class BatchLimits:
    """Per-destination request limits."""

    max_count: int
    max_bytes: int
    # Largest single record, as measured by the sizer; never above max_bytes
    max_message_bytes: int

    def __post_init__(self) -> None:
        if self.max_count <= 0 or self.max_bytes <= 0:
            raise ValueError("batch limits must be > 0")
        if self.max_message_bytes > self.max_bytes:
            raise ValueError("max_message_bytes must not exceed max_bytes")


class BatchBuilder:
    """Drain a ``MessageQueue`` into limit-respecting batches.

    Only the single writer thread may call ``build``.
    """

    def __init__(
        self,
        queue: MessageQueue,
        limits: BatchLimits,
        *,
        sizer: Sizer,
        batch_delay: float,
        truncate_oversize: bool = True,
        synchronous: bool = False,
        idle_timeout: float = 1.0,
        on_reject: RejectCallback | None = None,
    ) -> None:
        self._queue = queue
        self._limits = limits
        self._sizer = sizer
        self._batch_delay = max(0.0, batch_delay)
        self._truncate = truncate_oversize
        self._synchronous = synchronous
        self._idle_timeout = idle_timeout
        self._on_reject = on_reject

    @property
    def limits(self) -> BatchLimits:
        return self._limits

    @property
    def batch_delay(self) -> float:
        return self._batch_delay

    @batch_delay.setter
    def batch_delay(self, value: float) -> None:
        self._batch_delay = max(0.0, value)

    def build(self, *, wait: bool = True) -> list[LogMessage]:
        """Return the next batch, possibly empty.

        With ``wait`` False (always in synchronous mode) the builder takes
        only what is queued right now.
        """
        wait = wait and not self._synchronous
        limits = self._limits
        batch: list[LogMessage] = []
        total = 0
        deadline: float | None = None

        while len(batch) < limits.max_count:
            if not wait:
                timeout = 0.0
            elif deadline is None:
                timeout = self._idle_timeout
            else:
                timeout = max(0.0, deadline - time.monotonic())

            chunk = self._queue.drain(
                limits.max_count - len(batch),
                limits.max_bytes - total,
                timeout=timeout,
                sizer=self._sizer,
            )
            if not chunk:
                head = self._queue.peek()
                if head is None:
                    if deadline is None and not batch:
                        return batch
                    if (
                        not wait
                        or self._queue.closed
                        or deadline is None
                        or time.monotonic() >= deadline
                    ):
                        break
                    continue
                if batch:
                    # Head does not fit in what is left of this batch
                    break
                # Head alone exceeds the batch byte limit
                single = self._queue.dequeue()
                if single is None:
                    continue
                chunk = [single]

            for message in chunk:
                checked = self._check_size(message)
                if checked is None:
                    continue
                batch.append(checked)
                total += self._sizer(checked)
            if deadline is None:
                deadline = time.monotonic() + self._batch_delay
        return batch

    def _check_size(self, message: LogMessage) -> LogMessage | None:
        size = self._sizer(message)
        limit = self._limits.max_message_bytes
        if size <= limit:
            return message
        if self._truncate:
            overhead = size - message.size
            return message.truncate(limit - overhead)
        diagnostics.warn(
            "batch",
            "dropping oversize message",
            size=size,
            limit=limit,
            _rate_limit_key="batch-oversize",
        )
        if self._on_reject is not None:
            self._on_reject(message)
        return None
