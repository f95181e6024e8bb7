"""Process-exit teardown for awslog writers.

This module provides:
- Atexit handler that stops every registered writer and waits a bounded
  time for queued messages to be flushed
- Optional SIGTERM/SIGINT handlers running the same drain
- WeakSet-based writer registration to avoid keeping writers alive

The handlers are best-effort: writers still busy when the timeout expires
are abandoned (they run on daemon threads) and their queued messages are
lost.
"""

from __future__ import annotations

import atexit
import signal
import sys
import time
import weakref
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from types import FrameType

    from .writer import LogWriter


# Module-level state
_shutdown_in_progress: bool = False
_registered_writers: weakref.WeakSet[Any] = weakref.WeakSet()
_original_sigterm_handler: Any = None
_original_sigint_handler: Any = None


def _get_shutdown_settings() -> dict[str, Any]:
    """Get shutdown settings from Settings, with fallback defaults."""
    try:
        from .settings import Settings

        settings = Settings()
        return {
            "atexit_drain_enabled": settings.core.atexit_drain_enabled,
            "atexit_drain_timeout_seconds": settings.core.atexit_drain_timeout_seconds,
            "signal_handler_enabled": settings.core.signal_handler_enabled,
        }
    except Exception:  # pragma: no cover - invalid environment
        return {
            "atexit_drain_enabled": True,
            "atexit_drain_timeout_seconds": 5.0,
            "signal_handler_enabled": False,
        }


def register_writer(writer: LogWriter) -> None:
    """Register a writer to be stopped at process exit."""
    _registered_writers.add(writer)


def unregister_writer(writer: LogWriter) -> None:
    """Unregister a writer, typically after an explicit shutdown."""
    _registered_writers.discard(writer)


def registered_writers() -> list[LogWriter]:
    # Snapshot; WeakSet iteration can fail if GC runs mid-iteration
    return list(_registered_writers)


def drain_writers(timeout: float) -> int:
    """Stop all registered writers and wait up to ``timeout`` seconds total.

    Every writer is asked to stop first so their flushes overlap. Returns
    the number of writers that had not stopped when the time ran out.
    """
    writers = registered_writers()
    for writer in writers:
        try:
            writer.stop(timeout)
        except Exception:
            pass  # Best effort - don't crash on exit

    deadline = time.monotonic() + timeout
    pending = 0
    for writer in writers:
        remaining = max(0.0, deadline - time.monotonic())
        try:
            if not writer.wait_until_stopped(remaining):
                pending += 1
        except Exception:
            pending += 1
    return pending


def _atexit_handler() -> None:
    """Best-effort drain of all writers on normal exit.

    Called by atexit; should never raise.
    """
    global _shutdown_in_progress

    if _shutdown_in_progress:
        return

    settings = _get_shutdown_settings()

    if not settings["atexit_drain_enabled"]:
        return

    _shutdown_in_progress = True
    drain_writers(float(settings["atexit_drain_timeout_seconds"]))


def _signal_handler(signum: int, _frame: FrameType | None) -> None:
    """Drain writers, then re-raise the signal with the default handler."""
    if _shutdown_in_progress:
        return

    _atexit_handler()

    try:
        signal.signal(signum, signal.SIG_DFL)
        signal.raise_signal(signum)
    except Exception:  # pragma: no cover - rare signal error
        sys.exit(128 + signum)


def _install_signal_handlers() -> None:
    """Install SIGINT/SIGTERM handlers when enabled in settings.

    Installation fails outside the main thread; that is ignored.
    """
    global _original_sigterm_handler, _original_sigint_handler

    settings = _get_shutdown_settings()

    if not settings["signal_handler_enabled"]:
        return

    try:
        _original_sigint_handler = signal.signal(signal.SIGINT, _signal_handler)
    except (ValueError, OSError):  # pragma: no cover - not main thread
        pass

    # SIGTERM is not available on Windows
    if hasattr(signal, "SIGTERM"):
        try:
            _original_sigterm_handler = signal.signal(signal.SIGTERM, _signal_handler)
        except (ValueError, OSError):  # pragma: no cover - not main thread
            pass


def _reset_for_tests() -> None:
    global _shutdown_in_progress
    _shutdown_in_progress = False
    _registered_writers.clear()


# Register atexit handler on module import
atexit.register(_atexit_handler)

# Install signal handlers (if enabled)
_install_signal_handlers()
