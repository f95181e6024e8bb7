"""
Internal diagnostics channel.

Writer, queue and facade problems are reported here instead of through the
``logging`` module: an ``AwsLogHandler`` installed on the root logger would
otherwise feed its own failures back into the queue it is failing to drain.

Each diagnostic is a single JSON line on stderr. Tests replace the writer
with ``set_writer_for_tests``.
"""

from __future__ import annotations

import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable

import orjson

DiagnosticWriter = Callable[[dict[str, Any]], None]

# Cached on first use; reset by tests through ``_reset_for_tests``
_internal_logging_enabled: bool | None = None
_internal_debug_enabled: bool | None = None

_RATE_LIMIT_INTERVAL_SECONDS = 10.0
_rate_limit_lock = threading.Lock()
_rate_limit_last: dict[str, float] = {}


def _stderr_writer(payload: dict[str, Any]) -> None:
    line = orjson.dumps(payload, default=str)
    sys.stderr.write(line.decode("utf-8") + "\n")
    sys.stderr.flush()


_writer: DiagnosticWriter = _stderr_writer


def _load_flags() -> None:
    global _internal_logging_enabled, _internal_debug_enabled
    try:
        from .settings import Settings

        core = Settings().core
        _internal_logging_enabled = bool(core.internal_logging_enabled)
        _internal_debug_enabled = bool(core.internal_debug_enabled)
    except Exception:
        _internal_logging_enabled = True
        _internal_debug_enabled = False


def is_enabled() -> bool:
    if _internal_logging_enabled is None:
        _load_flags()
    return bool(_internal_logging_enabled)


def is_debug_enabled() -> bool:
    if _internal_debug_enabled is None:
        _load_flags()
    return bool(_internal_debug_enabled)


def _allow(key: str | None) -> bool:
    if key is None:
        return True
    now = time.monotonic()
    with _rate_limit_lock:
        last = _rate_limit_last.get(key)
        if last is not None and (now - last) < _RATE_LIMIT_INTERVAL_SECONDS:
            return False
        _rate_limit_last[key] = now
        return True


def _emit(level: str, component: str, message: str, fields: dict[str, Any]) -> None:
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "logger": "awslog",
        "component": component,
        "message": message,
    }
    payload.update(fields)
    try:
        _writer(payload)
    except Exception:
        # Diagnostics must never raise into the caller
        pass


def warn(
    component: str,
    message: str,
    *,
    _rate_limit_key: str | None = None,
    **fields: Any,
) -> None:
    """Report a non-fatal problem.

    Calls sharing a ``_rate_limit_key`` are emitted at most once per
    rate-limit interval.
    """
    if not is_enabled():
        return
    if not _allow(_rate_limit_key):
        return
    _emit("WARN", component, message, fields)


def debug(
    component: str,
    message: str,
    *,
    _rate_limit_key: str | None = None,
    **fields: Any,
) -> None:
    """Report a lifecycle event; off unless debug diagnostics are enabled."""
    if not is_debug_enabled():
        return
    if not _allow(_rate_limit_key):
        return
    _emit("DEBUG", component, message, fields)


def set_writer_for_tests(writer: DiagnosticWriter) -> None:
    global _writer
    _writer = writer


def _reset_for_tests() -> None:
    global _internal_logging_enabled, _internal_debug_enabled, _writer
    _internal_logging_enabled = None
    _internal_debug_enabled = None
    _writer = _stderr_writer
    with _rate_limit_lock:
        _rate_limit_last.clear()
