"""
Asynchronous delivery of application logs to AWS.

Messages are queued without blocking the caller and shipped in batches to
CloudWatch Logs, Kinesis Data Streams or SNS by a background writer.

Usage:
    import logging
    from awslog import AwsLogHandler

    logging.getLogger().addHandler(
        AwsLogHandler({"kind": "cloudwatch", "log_group_name": "my-app"})
    )
"""

from __future__ import annotations

from ._version import __version__
from .core.config import RetryConfig, WriterConfig
from .core.errors import (
    AwsLogError,
    ConfigurationError,
    DestinationKind,
    FacadeError,
    ReasonCode,
)
from .core.queue import DiscardAction
from .core.shipper import LogShipper
from .core.writer import LogWriter, WriterState
from .facades import (
    CloudWatchWriterConfig,
    KinesisWriterConfig,
    SNSWriterConfig,
    create_facade,
    parse_writer_config,
)
from .handlers import AwsLogHandler
from .metrics.metrics import WriterStatistics

__all__ = [
    "AwsLogError",
    "AwsLogHandler",
    "CloudWatchWriterConfig",
    "ConfigurationError",
    "DestinationKind",
    "DiscardAction",
    "FacadeError",
    "KinesisWriterConfig",
    "LogShipper",
    "LogWriter",
    "ReasonCode",
    "RetryConfig",
    "SNSWriterConfig",
    "WriterConfig",
    "WriterState",
    "WriterStatistics",
    "VERSION",
    "__version__",
    "create_facade",
    "parse_writer_config",
]

# Keep attribute for tests/consumers expecting module-level VERSION
VERSION = __version__
