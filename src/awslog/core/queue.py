"""
Bounded FIFO of pending log messages shared by producers and one writer.

Design:
- Producers call ``enqueue`` and never block beyond the in-memory discard
  decision; the queue never performs I/O.
- The writer drains from the head with ``drain``; it blocks only while the
  queue is empty.
- A single ``threading.Condition`` guards every operation, so all enqueues
  and drains observe one consistent order.
"""

from __future__ import annotations

import threading
from collections import deque
from enum import Enum
from typing import Callable

from . import diagnostics
from .records import LogMessage

Sizer = Callable[[LogMessage], int]


class DiscardAction(str, Enum):
    OLDEST = "oldest"  # Evict the head to admit the new message
    NEWEST = "newest"  # Reject the new message
    NONE = "none"  # Always accept; the queue grows without bound


class MessageQueue:
    """Thread-safe message queue with a discard policy.

    Usage:
        q = MessageQueue(discard_threshold=10_000)
        q.enqueue(LogMessage.create("hello"))
        batch = q.drain(100, max_bytes=1_048_576, timeout=2.0)
    """

    def __init__(
        self,
        discard_threshold: int,
        discard_action: DiscardAction = DiscardAction.OLDEST,
    ) -> None:
        if discard_threshold <= 0:
            raise ValueError("discard_threshold must be > 0")
        self._messages: deque[LogMessage] = deque()
        self._cond = threading.Condition(threading.Lock())
        self._threshold = discard_threshold
        self._action = DiscardAction(discard_action)
        self._closed = False
        self._discarded = 0
        self._over_threshold = False

    @property
    def discard_threshold(self) -> int:
        return self._threshold

    @property
    def discard_action(self) -> DiscardAction:
        return self._action

    @property
    def discard_count(self) -> int:
        """Messages evicted or rejected by the discard policy."""
        with self._cond:
            return self._discarded

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._messages)

    def is_empty(self) -> bool:
        return len(self) == 0

    def reconfigure(
        self,
        discard_threshold: int | None = None,
        discard_action: DiscardAction | None = None,
    ) -> None:
        """Change the policy; takes effect at the next enqueue."""
        with self._cond:
            if discard_threshold is not None:
                if discard_threshold <= 0:
                    raise ValueError("discard_threshold must be > 0")
                self._threshold = discard_threshold
            if discard_action is not None:
                self._action = DiscardAction(discard_action)

    def enqueue(self, message: LogMessage) -> bool:
        """Add a message, applying the discard policy at capacity.

        Returns False when the message was rejected (``newest`` policy at
        capacity, or queue closed).
        """
        crossed = False
        discarded = 0
        accepted = True
        with self._cond:
            if self._closed:
                return False
            if len(self._messages) >= self._threshold:
                if self._action is DiscardAction.NEWEST:
                    accepted = False
                    discarded = 1
                elif self._action is DiscardAction.OLDEST:
                    # Loop handles a threshold lowered by reconfigure()
                    while len(self._messages) >= self._threshold:
                        self._messages.popleft()
                        discarded += 1
                elif not self._over_threshold:
                    self._over_threshold = True
                    crossed = True
            self._discarded += discarded
            if accepted:
                self._messages.append(message)
                self._cond.notify()
            size = len(self._messages)

        if discarded:
            diagnostics.warn(
                "queue",
                "discarding messages: queue at discard threshold",
                action=self._action.value,
                threshold=self._threshold,
                _rate_limit_key="queue-discard",
            )
        if crossed:
            diagnostics.warn(
                "queue",
                "queue exceeded discard threshold with discard disabled",
                threshold=self._threshold,
                size=size,
            )
        return accepted

    def drain(
        self,
        max_count: int,
        max_bytes: int | None = None,
        timeout: float | None = 0.0,
        sizer: Sizer | None = None,
    ) -> list[LogMessage]:
        """Remove messages from the head while they fit the limits.

        Blocks up to ``timeout`` seconds (forever when None) only while the
        queue is empty; a closed queue never blocks. Stops at the first
        message that would exceed ``max_count`` or ``max_bytes``, leaving it
        at the head.
        """
        measure = sizer or _message_size
        taken: list[LogMessage] = []
        total = 0
        with self._cond:
            if not self._messages and not self._closed and timeout != 0:
                self._cond.wait_for(
                    lambda: bool(self._messages) or self._closed, timeout
                )
            while self._messages and len(taken) < max_count:
                head = self._messages[0]
                size = measure(head)
                if max_bytes is not None and total + size > max_bytes:
                    break
                self._messages.popleft()
                taken.append(head)
                total += size
            self._rearm_locked()
        return taken

    def peek(self) -> LogMessage | None:
        with self._cond:
            return self._messages[0] if self._messages else None

    def dequeue(self) -> LogMessage | None:
        """Remove and return the head without waiting, or None if empty."""
        with self._cond:
            if not self._messages:
                return None
            message = self._messages.popleft()
            self._rearm_locked()
            return message

    def close(self) -> None:
        """Reject further enqueues and wake any waiting consumer.

        Messages already queued remain available to ``drain``.
        """
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def _rearm_locked(self) -> None:
        if self._over_threshold and len(self._messages) < self._threshold:
            self._over_threshold = False


def _message_size(message: LogMessage) -> int:
    return message.size
