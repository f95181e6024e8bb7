"""
CloudWatch Logs destination.

The destination is a log stream inside a log group. Both are created on
demand. A dedicated writer keeps the sequence token returned by the last
``PutLogEvents`` call; a shared writer looks the token up before every put,
because another process may have advanced it.
"""

from __future__ import annotations

import re
from typing import Any, ClassVar, Literal

from pydantic import Field, field_validator

from ..core import diagnostics
from ..core.batching import BatchLimits
from ..core.config import WriterConfig
from ..core.errors import DestinationKind, FacadeError, ReasonCode
from ..core.records import LogMessage
from .base import BaseFacade

# Bytes CloudWatch charges per event on top of the UTF-8 message
EVENT_OVERHEAD = 26

ALLOWED_RETENTION_DAYS = frozenset(
    {
        1, 3, 5, 7, 14, 30, 60, 90, 120, 150, 180, 365, 400, 545, 731,
        1096, 1827, 2192, 2557, 2922, 3288, 3653,
    }
)  # fmt: skip

_LOG_GROUP_NAME = re.compile(r"^[A-Za-z0-9_\-/.#]{1,512}$")
_LOG_STREAM_NAME = re.compile(r"^[^:*]{1,512}$")


class CloudWatchWriterConfig(WriterConfig):
    """Writer options for a CloudWatch Logs stream."""

    substitution_fields: ClassVar[tuple[str, ...]] = (
        "log_group_name",
        "log_stream_name",
    )

    kind: Literal["cloudwatch"] = "cloudwatch"
    log_group_name: str = Field(min_length=1)
    log_stream_name: str = Field(default="{startupTimestamp}", min_length=1)
    retention_period: int | None = Field(
        default=None,
        description="Retention in days applied when the log group is created",
    )

    @field_validator("retention_period")
    @classmethod
    def _check_retention(cls, value: int | None) -> int | None:
        if value is not None and value not in ALLOWED_RETENTION_DAYS:
            allowed = ", ".join(str(v) for v in sorted(ALLOWED_RETENTION_DAYS))
            raise ValueError(f"retention_period must be one of: {allowed}")
        return value


class CloudWatchFacade(BaseFacade):
    kind = DestinationKind.CLOUDWATCH
    service_name = "logs"
    limits = BatchLimits(
        max_count=10_000, max_bytes=1_048_576, max_message_bytes=262_144
    )
    error_codes = {
        "ResourceNotFoundException": ReasonCode.MISSING_DESTINATION,
        "ResourceAlreadyExistsException": ReasonCode.ALREADY_EXISTS,
        "DataAlreadyAcceptedException": ReasonCode.ALREADY_EXISTS,
        "InvalidSequenceTokenException": ReasonCode.SEQUENCE_CONFLICT,
        "OperationAbortedException": ReasonCode.INVALID_STATE,
        "LimitExceededException": ReasonCode.THROTTLING,
        "InvalidParameterException": ReasonCode.INVALID_CONFIGURATION,
        "UnrecognizedClientException": ReasonCode.INVALID_CONFIGURATION,
    }

    def __init__(
        self, config: CloudWatchWriterConfig, *, client: Any | None = None
    ) -> None:
        if not _LOG_GROUP_NAME.match(config.log_group_name):
            raise self._invalid("invalid log group name", config.log_group_name)
        if not _LOG_STREAM_NAME.match(config.log_stream_name):
            raise self._invalid("invalid log stream name", config.log_stream_name)
        super().__init__(config, client=client)
        self._group = config.log_group_name
        self._stream = config.log_stream_name
        self._retention = config.retention_period
        self._dedicated = config.dedicated_writer
        self._sequence_token: str | None = None

    @property
    def destination(self) -> str:
        return f"{self._group}/{self._stream}"

    @property
    def sequence_token(self) -> str | None:
        return self._sequence_token

    def message_size(self, message: LogMessage) -> int:
        return message.size + EVENT_OVERHEAD

    def ensure_destination(self) -> None:
        if not self._log_group_exists():
            self._create_log_group()
        stream = self._describe_log_stream()
        if stream is None:
            self._create_log_stream()
            self._sequence_token = None
        else:
            self._sequence_token = stream.get("uploadSequenceToken")

    def send(self, batch: list[LogMessage]) -> list[LogMessage]:
        if not batch:
            return []
        # PutLogEvents rejects events that are not in chronological order
        events = [
            {"timestamp": m.timestamp, "message": m.message}
            for m in sorted(batch, key=lambda m: m.timestamp)
        ]
        params: dict[str, Any] = {
            "logGroupName": self._group,
            "logStreamName": self._stream,
            "logEvents": events,
        }
        token = self._sequence_token if self._dedicated else self._fetch_token()
        if token:
            params["sequenceToken"] = token

        try:
            response = self._call("send", "put_log_events", **params)
        except FacadeError as exc:
            if exc.reason is ReasonCode.ALREADY_EXISTS:
                return []
            if exc.reason is ReasonCode.SEQUENCE_CONFLICT:
                self._sequence_token = None
            raise

        self._sequence_token = response.get("nextSequenceToken")
        rejected = response.get("rejectedLogEventsInfo")
        if rejected:
            diagnostics.warn(
                "cloudwatch",
                "events rejected by service",
                destination=self.destination,
                _rate_limit_key="cloudwatch-rejected",
                **rejected,
            )
        return []

    def _log_group_exists(self) -> bool:
        params: dict[str, Any] = {"logGroupNamePrefix": self._group}
        while True:
            response = self._call("ensure_destination", "describe_log_groups", **params)
            for group in response.get("logGroups", []):
                if group.get("logGroupName") == self._group:
                    return True
            next_token = response.get("nextToken")
            if not next_token:
                return False
            params["nextToken"] = next_token

    def _create_log_group(self) -> None:
        try:
            self._call(
                "ensure_destination", "create_log_group", logGroupName=self._group
            )
        except FacadeError as exc:
            if exc.reason is not ReasonCode.ALREADY_EXISTS:
                raise
            return
        if self._retention is not None:
            self._call(
                "ensure_destination",
                "put_retention_policy",
                logGroupName=self._group,
                retentionInDays=self._retention,
            )

    def _describe_log_stream(
        self, function_name: str = "ensure_destination"
    ) -> dict[str, Any] | None:
        params: dict[str, Any] = {
            "logGroupName": self._group,
            "logStreamNamePrefix": self._stream,
        }
        while True:
            response = self._call(function_name, "describe_log_streams", **params)
            for stream in response.get("logStreams", []):
                if stream.get("logStreamName") == self._stream:
                    return stream
            next_token = response.get("nextToken")
            if not next_token:
                return None
            params["nextToken"] = next_token

    def _create_log_stream(self) -> None:
        try:
            self._call(
                "ensure_destination",
                "create_log_stream",
                logGroupName=self._group,
                logStreamName=self._stream,
            )
        except FacadeError as exc:
            if exc.reason is not ReasonCode.ALREADY_EXISTS:
                raise

    def _fetch_token(self) -> str | None:
        stream = self._describe_log_stream("send")
        if stream is None:
            raise FacadeError(
                "log stream does not exist",
                reason=ReasonCode.MISSING_DESTINATION,
                kind=self.kind,
                function_name="send",
                args=(self._group, self._stream),
            )
        return stream.get("uploadSequenceToken")


# Mark Pydantic validators as used for vulture
_VULTURE_USED: tuple[object, ...] = (CloudWatchWriterConfig._check_retention,)
