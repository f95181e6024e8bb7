"""BatchBuilder limits, timing and oversize handling."""

from __future__ import annotations

import threading
import time

import pytest

from awslog.core.batching import BatchBuilder, BatchLimits
from awslog.core.queue import DiscardAction, MessageQueue
from awslog.core.records import LogMessage

pytestmark = pytest.mark.critical


def _msg(text: str, ts: int = 0) -> LogMessage:
    return LogMessage(timestamp=ts, message=text)


def _builder(
    queue: MessageQueue,
    *,
    max_count: int = 10,
    max_bytes: int = 1000,
    max_message_bytes: int | None = None,
    overhead: int = 0,
    batch_delay: float = 0.0,
    **kwargs,
) -> BatchBuilder:
    limits = BatchLimits(
        max_count=max_count,
        max_bytes=max_bytes,
        max_message_bytes=max_message_bytes or max_bytes,
    )
    return BatchBuilder(
        queue,
        limits,
        sizer=lambda m: m.size + overhead,
        batch_delay=batch_delay,
        idle_timeout=0.05,
        **kwargs,
    )


def test_limits_validation() -> None:
    with pytest.raises(ValueError):
        BatchLimits(max_count=0, max_bytes=10, max_message_bytes=10)
    with pytest.raises(ValueError):
        BatchLimits(max_count=1, max_bytes=10, max_message_bytes=11)


def test_discard_then_batch_by_count() -> None:
    q = MessageQueue(3, DiscardAction.OLDEST)
    for text in "ABCD":
        q.enqueue(_msg(text))
    builder = _builder(q, max_count=2)

    first = builder.build(wait=False)
    second = builder.build(wait=False)

    assert [m.message for m in first] == ["B", "C"]
    assert [m.message for m in second] == ["D"]


def test_batch_stops_at_byte_limit_including_overhead() -> None:
    q = MessageQueue(10)
    for text in ("aaaa", "bbbb", "cccc"):
        q.enqueue(_msg(text))
    # Each message costs 4 + 26 = 30 bytes
    builder = _builder(q, max_bytes=70, max_message_bytes=60, overhead=26)

    batch = builder.build(wait=False)

    assert [m.message for m in batch] == ["aaaa", "bbbb"]
    assert len(q) == 1


def test_empty_queue_returns_empty_batch_after_idle_timeout() -> None:
    q = MessageQueue(10)
    builder = _builder(q)

    assert builder.build() == []


def test_waits_batch_delay_for_more_messages() -> None:
    q = MessageQueue(10)
    q.enqueue(_msg("first"))
    builder = _builder(q, batch_delay=0.5)

    def late() -> None:
        time.sleep(0.05)
        q.enqueue(_msg("second"))

    t = threading.Thread(target=late)
    t.start()
    batch = builder.build()
    t.join()

    assert [m.message for m in batch] == ["first", "second"]


def test_full_batch_returns_without_waiting_for_delay() -> None:
    q = MessageQueue(10)
    q.enqueue(_msg("a"))
    q.enqueue(_msg("b"))
    builder = _builder(q, max_count=2, batch_delay=5.0)

    start = time.monotonic()
    batch = builder.build()

    assert len(batch) == 2
    assert time.monotonic() - start < 1.0


def test_synchronous_builder_never_waits() -> None:
    q = MessageQueue(10)
    q.enqueue(_msg("a"))
    builder = _builder(q, batch_delay=5.0, synchronous=True)

    start = time.monotonic()
    batch = builder.build()

    assert [m.message for m in batch] == ["a"]
    assert time.monotonic() - start < 1.0


def test_closed_queue_ends_batch_early() -> None:
    q = MessageQueue(10)
    q.enqueue(_msg("a"))
    q.close()
    builder = _builder(q, batch_delay=5.0)

    start = time.monotonic()
    batch = builder.build()

    assert [m.message for m in batch] == ["a"]
    assert time.monotonic() - start < 1.0


def test_oversize_message_is_truncated() -> None:
    q = MessageQueue(10)
    q.enqueue(_msg("x" * 100))
    builder = _builder(q, max_bytes=50, max_message_bytes=40, overhead=10)

    batch = builder.build(wait=False)

    assert len(batch) == 1
    assert batch[0].size == 30
    assert batch[0].size + 10 <= 40


def test_truncation_respects_utf8_boundaries() -> None:
    q = MessageQueue(10)
    q.enqueue(_msg("é" * 10))  # 20 bytes
    builder = _builder(q, max_bytes=5, max_message_bytes=5)

    batch = builder.build(wait=False)

    assert batch[0].message == "éé"
    assert batch[0].size == 4


def test_oversize_message_rejected_when_truncation_disabled(
    captured_diagnostics: list,
) -> None:
    q = MessageQueue(10)
    q.enqueue(_msg("x" * 100))
    q.enqueue(_msg("ok"))
    rejected: list[LogMessage] = []
    builder = _builder(
        q,
        max_bytes=50,
        max_message_bytes=40,
        truncate_oversize=False,
        on_reject=rejected.append,
    )

    batch = builder.build(wait=False)

    assert [m.message for m in batch] == ["ok"]
    assert len(rejected) == 1
    assert any(d["component"] == "batch" for d in captured_diagnostics)


def test_oversize_within_batch_bytes_is_not_split() -> None:
    q = MessageQueue(10)
    q.enqueue(_msg("a" * 30))
    q.enqueue(_msg("b" * 30))
    builder = _builder(q, max_bytes=100, max_message_bytes=20)

    batch = builder.build(wait=False)

    # Both truncated to 20 bytes; each stays one record
    assert [m.size for m in batch] == [20, 20]


def test_batch_delay_setter_clamps() -> None:
    builder = _builder(MessageQueue(1), batch_delay=1.0)
    builder.batch_delay = -1
    assert builder.batch_delay == 0.0
