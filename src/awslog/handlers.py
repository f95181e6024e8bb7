"""``logging`` integration."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .core.config import WriterConfig
from .core.shipper import LogShipper

# SDK loggers used by the writer thread itself
DEFAULT_EXCLUDED_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


class AwsLogHandler(logging.Handler):
    """Send formatted log records to an AWS destination.

    Usage:
        handler = AwsLogHandler({"kind": "cloudwatch", "log_group_name": "app"})
        logging.getLogger().addHandler(handler)
    """

    def __init__(
        self,
        config: WriterConfig | Mapping[str, Any] | None = None,
        level: int = logging.NOTSET,
        *,
        shipper: LogShipper | None = None,
        excluded_loggers: Iterable[str] = DEFAULT_EXCLUDED_LOGGERS,
    ) -> None:
        super().__init__(level)
        if shipper is None:
            if config is None:
                raise ValueError("either config or shipper is required")
            shipper = LogShipper(config)
        self._shipper = shipper
        self._excluded = tuple(excluded_loggers)

    @property
    def shipper(self) -> LogShipper:
        return self._shipper

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        for excluded in self._excluded:
            if name == excluded or name.startswith(excluded + "."):
                return False
        return bool(super().filter(record))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            self._shipper.enqueue(message, record.created)
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        try:
            self._shipper.shutdown()
        finally:
            super().close()
