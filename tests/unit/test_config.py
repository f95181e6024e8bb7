"""Writer config models, destination parsing and settings."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from awslog.core.config import RetryConfig
from awslog.core.errors import ConfigurationError
from awslog.core.queue import DiscardAction
from awslog.core.settings import Settings
from awslog.core.substitutions import Substitutions
from awslog.facades import (
    CloudWatchWriterConfig,
    KinesisWriterConfig,
    SNSWriterConfig,
    parse_writer_config,
)


def test_defaults() -> None:
    cfg = CloudWatchWriterConfig(log_group_name="app")

    assert cfg.batch_delay_ms == 2000
    assert cfg.discard_threshold == 10_000
    assert cfg.discard_action is DiscardAction.OLDEST
    assert cfg.truncate_oversize_messages is True
    assert cfg.synchronous_mode is False
    assert cfg.initialization_timeout_ms == 60_000
    assert cfg.dedicated_writer is True
    assert cfg.lazy_start is True
    assert cfg.use_shutdown_hook is True
    assert cfg.log_stream_name == "{startupTimestamp}"


def test_synchronous_mode_forces_zero_batch_delay() -> None:
    cfg = CloudWatchWriterConfig(
        log_group_name="app", synchronous_mode=True, batch_delay_ms=5000
    )
    assert cfg.batch_delay_ms == 0
    assert cfg.batch_delay_seconds == 0.0


def test_config_is_frozen_and_strict() -> None:
    cfg = CloudWatchWriterConfig(log_group_name="app")
    with pytest.raises(ValidationError):
        cfg.batch_delay_ms = 1  # type: ignore[misc]
    with pytest.raises(ValidationError):
        CloudWatchWriterConfig(log_group_name="app", unknown_option=True)


def test_cloudwatch_retention_must_be_allowed_value() -> None:
    assert CloudWatchWriterConfig(log_group_name="a", retention_period=30)
    with pytest.raises(ValidationError):
        CloudWatchWriterConfig(log_group_name="a", retention_period=31)


def test_kinesis_partition_key_length() -> None:
    with pytest.raises(ValidationError):
        KinesisWriterConfig(stream_name="s", partition_key="k" * 257)


def test_sns_requires_exactly_one_topic_identity() -> None:
    with pytest.raises(ValidationError):
        SNSWriterConfig()
    with pytest.raises(ValidationError):
        SNSWriterConfig(
            topic_name="t", topic_arn="arn:aws:sns:us-east-1:123456789012:t"
        )
    with pytest.raises(ValidationError):
        SNSWriterConfig(topic_name="t", subject="line\nbreak")


def test_with_substitutions_resolves_identity_fields() -> None:
    cfg = CloudWatchWriterConfig(log_group_name="app-{date}")
    subs = Substitutions(
        now=datetime(2024, 1, 2, tzinfo=timezone.utc),
        startup=datetime(2024, 1, 1, 23, 59, 59, tzinfo=timezone.utc),
    )

    resolved = cfg.with_substitutions(subs)

    assert resolved.log_group_name == "app-20240102"
    assert resolved.log_stream_name == "20240101235959"
    assert cfg.log_group_name == "app-{date}"


def test_parse_writer_config_dispatches_on_kind() -> None:
    cfg = parse_writer_config({"kind": "kinesis", "stream_name": "events"})
    assert isinstance(cfg, KinesisWriterConfig)
    assert parse_writer_config(cfg) is cfg

    sns = parse_writer_config({"kind": "sns", "topic_name": "alerts"})
    assert isinstance(sns, SNSWriterConfig)


def test_parse_writer_config_wraps_validation_errors() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        parse_writer_config({"kind": "carrier-pigeon"})
    assert isinstance(exc_info.value.cause, ValidationError)


def test_retry_delay_grows_and_caps() -> None:
    retry = RetryConfig(
        initial_delay_ms=100, max_delay_ms=500, multiplier=2.0, jitter=False
    )
    assert retry.delay_seconds(0) == pytest.approx(0.1)
    assert retry.delay_seconds(1) == pytest.approx(0.2)
    assert retry.delay_seconds(10) == pytest.approx(0.5)


def test_retry_jitter_stays_within_bounds() -> None:
    retry = RetryConfig(initial_delay_ms=100, jitter=True)
    for _ in range(50):
        assert 0.05 <= retry.delay_seconds(0) <= 0.1


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWSLOG_CORE__ATEXIT_DRAIN_TIMEOUT_SECONDS", "1.5")
    monkeypatch.setenv("AWSLOG_CORE__INTERNAL_DEBUG_ENABLED", "true")

    settings = Settings()

    assert settings.core.atexit_drain_timeout_seconds == 1.5
    assert settings.core.internal_debug_enabled is True
    assert settings.core.signal_handler_enabled is False
