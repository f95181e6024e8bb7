"""
Kinesis Data Streams destination.

A stream that exists but is not yet ACTIVE (for example one this facade
just created) is reported as ``INVALID_STATE``. That reason is retryable, so
writer initialization keeps polling until the stream is usable or the
initialization timeout expires.
"""

from __future__ import annotations

import random
import re
from typing import Any, ClassVar, Literal

from pydantic import Field, field_validator

from ..core import diagnostics
from ..core.batching import BatchLimits
from ..core.config import WriterConfig
from ..core.errors import DestinationKind, FacadeError, ReasonCode
from ..core.records import LogMessage, utf8_size
from .base import BaseFacade

_STREAM_NAME = re.compile(r"^[A-Za-z0-9_.\-]{1,128}$")
_MAX_PARTITION_KEY = 256
_RANDOM_KEY_DIGITS = 8
_WRITABLE_STATUSES = ("ACTIVE", "UPDATING")


class KinesisWriterConfig(WriterConfig):
    """Writer options for a Kinesis data stream."""

    substitution_fields: ClassVar[tuple[str, ...]] = ("stream_name", "partition_key")

    kind: Literal["kinesis"] = "kinesis"
    stream_name: str = Field(min_length=1)
    partition_key: str = Field(
        default="{startupTimestamp}",
        description="Partition key for every record; empty for a random key per record",
    )
    auto_create: bool = Field(default=False)
    shard_count: int = Field(default=1, ge=1)
    retention_period: int | None = Field(
        default=None,
        ge=25,
        le=8760,
        description="Retention in hours applied when the stream is created",
    )

    @field_validator("partition_key")
    @classmethod
    def _check_partition_key(cls, value: str) -> str:
        if len(value) > _MAX_PARTITION_KEY:
            raise ValueError(
                f"partition_key must be at most {_MAX_PARTITION_KEY} characters"
            )
        return value


class KinesisFacade(BaseFacade):
    kind = DestinationKind.KINESIS
    service_name = "kinesis"
    limits = BatchLimits(
        max_count=500, max_bytes=5_242_880, max_message_bytes=1_048_576
    )
    error_codes = {
        "ResourceNotFoundException": ReasonCode.MISSING_DESTINATION,
        "ResourceInUseException": ReasonCode.INVALID_STATE,
        "ProvisionedThroughputExceededException": ReasonCode.THROTTLING,
        "LimitExceededException": ReasonCode.THROTTLING,
        "KMSThrottlingException": ReasonCode.THROTTLING,
        "InvalidArgumentException": ReasonCode.INVALID_CONFIGURATION,
        "ValidationException": ReasonCode.INVALID_CONFIGURATION,
        "KMSAccessDeniedException": ReasonCode.INVALID_CONFIGURATION,
        "KMSDisabledException": ReasonCode.INVALID_CONFIGURATION,
        "KMSNotFoundException": ReasonCode.INVALID_CONFIGURATION,
        "KMSInvalidStateException": ReasonCode.INVALID_STATE,
    }

    def __init__(
        self, config: KinesisWriterConfig, *, client: Any | None = None
    ) -> None:
        if not _STREAM_NAME.match(config.stream_name):
            raise self._invalid("invalid stream name", config.stream_name)
        super().__init__(config, client=client)
        self._stream = config.stream_name
        self._partition_key = config.partition_key
        self._auto_create = config.auto_create
        self._shard_count = config.shard_count
        self._retention = config.retention_period
        self._created = False
        self._retention_applied = False

    @property
    def destination(self) -> str:
        return self._stream

    def message_size(self, message: LogMessage) -> int:
        if not self._partition_key:
            return message.size + _RANDOM_KEY_DIGITS
        return message.size + utf8_size(self._partition_key)

    def ensure_destination(self) -> None:
        status = self._stream_status()
        if status is None:
            if not self._auto_create:
                raise FacadeError(
                    "stream does not exist",
                    reason=ReasonCode.MISSING_DESTINATION,
                    kind=self.kind,
                    function_name="ensure_destination",
                    args=(self._stream,),
                )
            self._create_stream()
            status = "CREATING"
        if status not in _WRITABLE_STATUSES:
            raise FacadeError(
                f"stream is {status}",
                reason=ReasonCode.INVALID_STATE,
                kind=self.kind,
                function_name="ensure_destination",
                args=(self._stream,),
            )
        if self._created and self._retention and not self._retention_applied:
            self._call(
                "ensure_destination",
                "increase_stream_retention_period",
                StreamName=self._stream,
                RetentionPeriodHours=self._retention,
            )
            self._retention_applied = True

    def send(self, batch: list[LogMessage]) -> list[LogMessage]:
        if not batch:
            return []
        records = [
            {"Data": m.message.encode("utf-8"), "PartitionKey": self._key()}
            for m in batch
        ]
        response = self._call(
            "send", "put_records", StreamName=self._stream, Records=records
        )
        if not response.get("FailedRecordCount"):
            return []
        failed = [
            message
            for message, result in zip(batch, response.get("Records", []))
            if result.get("ErrorCode")
        ]
        diagnostics.debug(
            "kinesis",
            "partial batch failure",
            destination=self._stream,
            failed=len(failed),
            total=len(batch),
        )
        return failed

    def _key(self) -> str:
        if self._partition_key:
            return self._partition_key
        return f"{random.randrange(10**_RANDOM_KEY_DIGITS):0{_RANDOM_KEY_DIGITS}d}"

    def _stream_status(self) -> str | None:
        try:
            response = self._call(
                "ensure_destination",
                "describe_stream_summary",
                StreamName=self._stream,
            )
        except FacadeError as exc:
            if exc.reason is ReasonCode.MISSING_DESTINATION:
                return None
            raise
        return response["StreamDescriptionSummary"]["StreamStatus"]

    def _create_stream(self) -> None:
        try:
            self._call(
                "ensure_destination",
                "create_stream",
                StreamName=self._stream,
                ShardCount=self._shard_count,
            )
        except FacadeError as exc:
            # ResourceInUse: another process created it first
            if exc.reason not in (ReasonCode.ALREADY_EXISTS, ReasonCode.INVALID_STATE):
                raise
            return
        self._created = True


# Mark Pydantic validators as used for vulture
_VULTURE_USED: tuple[object, ...] = (KinesisWriterConfig._check_partition_key,)
