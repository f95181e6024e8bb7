from __future__ import annotations

import dataclasses

import pytest

from awslog.core.records import LogMessage, utf8_size


def test_size_is_utf8_length() -> None:
    assert LogMessage(timestamp=0, message="abc").size == 3
    assert LogMessage(timestamp=0, message="日本").size == 6
    assert utf8_size("") == 0


def test_lone_surrogates_are_replaced_so_the_message_is_kept() -> None:
    msg = LogMessage.create("bad \udcff name")

    assert msg.message == "bad ? name"
    assert msg.size == len(msg.message.encode("utf-8"))


def test_create_converts_seconds_to_millis() -> None:
    msg = LogMessage.create("hello", 1_700_000_000.123)
    assert msg.timestamp == 1_700_000_000_123


def test_create_defaults_to_now() -> None:
    msg = LogMessage.create("hello")
    assert msg.timestamp > 1_600_000_000_000


def test_message_is_immutable() -> None:
    msg = LogMessage(timestamp=0, message="abc")
    with pytest.raises(dataclasses.FrozenInstanceError):
        msg.message = "changed"  # type: ignore[misc]


def test_truncate_returns_self_when_it_fits() -> None:
    msg = LogMessage(timestamp=5, message="abc")
    assert msg.truncate(3) is msg


def test_truncate_keeps_timestamp_and_code_points() -> None:
    msg = LogMessage(timestamp=5, message="a€b")  # 1 + 3 + 1 bytes
    cut = msg.truncate(3)
    assert cut.message == "a"
    assert cut.timestamp == 5
    assert cut.size == 1
