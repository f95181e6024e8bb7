"""Immutable log record carried through the delivery pipeline."""

from __future__ import annotations

import time
from dataclasses import dataclass, field


def utf8_size(text: str) -> int:
    if text.isascii():
        return len(text)
    return len(text.encode("utf-8"))


@dataclass(frozen=True)
class LogMessage:
    """A rendered log event.

    ``timestamp`` is epoch milliseconds; ``size`` is the UTF-8 length of
    ``message``. Destination overhead (e.g. CloudWatch's per-event bytes) is
    added by the facade, not stored here.
    """

    timestamp: int
    message: str
    size: int = field(init=False)

    def __post_init__(self) -> None:
        try:
            size = utf8_size(self.message)
        except UnicodeEncodeError:
            # Lone surrogates (e.g. from surrogateescape-decoded input)
            valid = self.message.encode("utf-8", errors="replace").decode("utf-8")
            object.__setattr__(self, "message", valid)
            size = utf8_size(valid)
        object.__setattr__(self, "size", size)

    @classmethod
    def create(cls, message: str, timestamp: float | None = None) -> LogMessage:
        """Build a message from rendered text.

        ``timestamp`` is epoch seconds (as in ``logging.LogRecord.created``);
        the current time is used when omitted.
        """
        if timestamp is None:
            timestamp = time.time()
        return cls(timestamp=int(timestamp * 1000), message=message)

    def truncate(self, max_bytes: int) -> LogMessage:
        """Return a copy cut to at most ``max_bytes`` UTF-8 bytes.

        Cuts on a code-point boundary, so the result may be a few bytes
        shorter than ``max_bytes``.
        """
        if self.size <= max_bytes:
            return self
        raw = self.message.encode("utf-8")[: max(0, max_bytes)]
        return LogMessage(
            timestamp=self.timestamp,
            message=raw.decode("utf-8", errors="ignore"),
        )
