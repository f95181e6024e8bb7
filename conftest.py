"""
Root pytest configuration.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from typing import Any

import pytest


def get_test_timeout(base: float, max_multiplier: float = 5.0) -> float:
    """Apply CI timeout multiplier to a base timeout value.

    Args:
        base: Base timeout in seconds
        max_multiplier: Maximum allowed multiplier (default 5x)

    Returns:
        Scaled timeout value

    Environment:
        CI_TIMEOUT_MULTIPLIER: Multiplier for CI environments (default: 1.0)

    Note:
        Reads env var on each call to support per-test monkeypatching.
    """
    raw = os.getenv("CI_TIMEOUT_MULTIPLIER", "1.0")
    try:
        multiplier = float(raw) if raw else 1.0
        multiplier = min(multiplier, max_multiplier)
    except ValueError:
        multiplier = 1.0
    return base * multiplier


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "critical: Tests that must never fail - core functionality",
    )
    config.addinivalue_line(
        "markers",
        "standard: Default risk category for typical unit tests",
    )
    config.addinivalue_line(
        "markers",
        "slow: Tests that take >1 second",
    )
    config.addinivalue_line(
        "markers",
        "property: Property-based tests (may be slow)",
    )


@pytest.fixture(autouse=True)
def reset_diagnostics_cache() -> Generator[None, None, None]:
    """Reset the diagnostics module before and after each test.

    The diagnostics module caches its enabled flags at first access and
    keeps per-key rate-limit timestamps; both would leak between tests.
    """
    import awslog.core.diagnostics as diag

    diag._reset_for_tests()
    yield
    diag._reset_for_tests()


@pytest.fixture
def captured_diagnostics() -> Generator[list[dict[str, Any]], None, None]:
    """Collect diagnostic payloads instead of writing them to stderr.

    Debug diagnostics are enabled so lifecycle events are captured too.
    """
    import awslog.core.diagnostics as diag

    captured: list[dict[str, Any]] = []
    diag._internal_logging_enabled = True
    diag._internal_debug_enabled = True
    diag.set_writer_for_tests(captured.append)
    yield captured


@pytest.fixture(autouse=True)
def _isolate_shutdown_registry() -> Generator[None, None, None]:
    """Keep writers registered by one test out of the next test's drain."""
    from awslog.core import shutdown

    shutdown._reset_for_tests()
    yield
    shutdown._reset_for_tests()


@pytest.fixture
def aws_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Dummy credentials and region so boto3 clients build offline."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
