"""Process-exit drain of registered writers."""

from __future__ import annotations

import signal
from typing import Any

import pytest

from awslog.core import shutdown


class StubWriter:
    def __init__(self, *, stops: bool = True) -> None:
        self.stop_timeouts: list[float | None] = []
        self._stops = stops

    def stop(self, timeout: float | None = None) -> None:
        self.stop_timeouts.append(timeout)

    def wait_until_stopped(self, timeout: float | None = None) -> bool:
        return self._stops


class BrokenWriter(StubWriter):
    def stop(self, timeout: float | None = None) -> None:
        raise RuntimeError("cannot stop")


def test_register_and_unregister() -> None:
    writer = StubWriter()
    shutdown.register_writer(writer)  # type: ignore[arg-type]
    assert shutdown.registered_writers() == [writer]

    shutdown.unregister_writer(writer)  # type: ignore[arg-type]
    assert shutdown.registered_writers() == []


def test_registry_does_not_keep_writers_alive() -> None:
    shutdown.register_writer(StubWriter())  # type: ignore[arg-type]
    import gc

    gc.collect()
    assert shutdown.registered_writers() == []


def test_drain_stops_every_writer_and_counts_stragglers() -> None:
    done = StubWriter()
    stuck = StubWriter(stops=False)
    broken = BrokenWriter()
    for w in (done, stuck, broken):
        shutdown.register_writer(w)  # type: ignore[arg-type]

    pending = shutdown.drain_writers(0.5)

    assert pending == 1
    assert done.stop_timeouts == [0.5]
    assert stuck.stop_timeouts == [0.5]


def test_atexit_handler_uses_configured_timeout(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("AWSLOG_CORE__ATEXIT_DRAIN_TIMEOUT_SECONDS", "0.25")
    writer = StubWriter()
    shutdown.register_writer(writer)  # type: ignore[arg-type]

    shutdown._atexit_handler()
    shutdown._atexit_handler()

    assert writer.stop_timeouts == [0.25]


def test_atexit_handler_can_be_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWSLOG_CORE__ATEXIT_DRAIN_ENABLED", "false")
    writer = StubWriter()
    shutdown.register_writer(writer)  # type: ignore[arg-type]

    shutdown._atexit_handler()

    assert writer.stop_timeouts == []


def test_signal_handlers_installed_only_when_enabled(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    installed: list[Any] = []
    monkeypatch.setattr(
        shutdown.signal, "signal", lambda signum, handler: installed.append(signum)
    )

    shutdown._install_signal_handlers()
    assert installed == []

    monkeypatch.setenv("AWSLOG_CORE__SIGNAL_HANDLER_ENABLED", "true")
    shutdown._install_signal_handlers()
    assert signal.SIGINT in installed
