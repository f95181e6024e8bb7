"""SNS topic destination: one ``Publish`` call per message."""

from __future__ import annotations

import re
from typing import Any, ClassVar, Literal

from pydantic import Field, field_validator, model_validator

from ..core.batching import BatchLimits
from ..core.config import WriterConfig
from ..core.errors import DestinationKind, FacadeError, ReasonCode
from ..core.records import LogMessage
from .base import BaseFacade

_TOPIC_NAME = re.compile(r"^[A-Za-z0-9_\-]{1,256}$")
_TOPIC_ARN = re.compile(r"^arn:[^:]+:sns:[^:]+:\d{12}:[A-Za-z0-9_\-]{1,256}$")
_MAX_SUBJECT = 99


class SNSWriterConfig(WriterConfig):
    """Writer options for an SNS topic, identified by name or ARN."""

    substitution_fields: ClassVar[tuple[str, ...]] = (
        "topic_name",
        "topic_arn",
        "subject",
    )

    kind: Literal["sns"] = "sns"
    topic_name: str | None = Field(default=None)
    topic_arn: str | None = Field(default=None)
    subject: str | None = Field(default=None)
    auto_create: bool = Field(
        default=False,
        description="Create the topic when it is configured by name and missing",
    )

    @field_validator("subject")
    @classmethod
    def _check_subject(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if not value or len(value) > _MAX_SUBJECT:
            raise ValueError(f"subject must be 1 to {_MAX_SUBJECT} characters")
        if not value.isascii() or not value.isprintable():
            raise ValueError("subject must be printable ASCII")
        return value

    @model_validator(mode="after")
    def _check_topic(self) -> SNSWriterConfig:
        if bool(self.topic_name) == bool(self.topic_arn):
            raise ValueError("exactly one of topic_name or topic_arn is required")
        return self


class SNSFacade(BaseFacade):
    kind = DestinationKind.SNS
    service_name = "sns"
    limits = BatchLimits(max_count=1, max_bytes=262_144, max_message_bytes=262_144)
    error_codes = {
        "NotFound": ReasonCode.MISSING_DESTINATION,
        "NotFoundException": ReasonCode.MISSING_DESTINATION,
        "Throttled": ReasonCode.THROTTLING,
        "ThrottledException": ReasonCode.THROTTLING,
        "KMSThrottling": ReasonCode.THROTTLING,
        "InvalidParameter": ReasonCode.INVALID_CONFIGURATION,
        "InvalidParameterException": ReasonCode.INVALID_CONFIGURATION,
        "AuthorizationError": ReasonCode.INVALID_CONFIGURATION,
        "AuthorizationErrorException": ReasonCode.INVALID_CONFIGURATION,
        "KMSAccessDenied": ReasonCode.INVALID_CONFIGURATION,
        "KMSDisabled": ReasonCode.INVALID_CONFIGURATION,
        "KMSNotFound": ReasonCode.INVALID_CONFIGURATION,
        "InternalError": ReasonCode.UNAVAILABLE,
    }

    def __init__(self, config: SNSWriterConfig, *, client: Any | None = None) -> None:
        if config.topic_name and not _TOPIC_NAME.match(config.topic_name):
            raise self._invalid("invalid topic name", config.topic_name)
        if config.topic_arn and not _TOPIC_ARN.match(config.topic_arn):
            raise self._invalid("invalid topic ARN", config.topic_arn)
        super().__init__(config, client=client)
        self._topic_name = config.topic_name
        self._topic_arn = config.topic_arn
        self._subject = config.subject
        self._auto_create = config.auto_create

    @property
    def destination(self) -> str:
        return self._topic_arn or self._topic_name or ""

    @property
    def topic_arn(self) -> str | None:
        return self._topic_arn

    def ensure_destination(self) -> None:
        if self._topic_name is None:
            # Configured by ARN; verify it
            self._call(
                "ensure_destination",
                "get_topic_attributes",
                TopicArn=self._topic_arn,
            )
            return
        arn = self._find_topic()
        if arn is None:
            if not self._auto_create:
                raise FacadeError(
                    "topic does not exist",
                    reason=ReasonCode.MISSING_DESTINATION,
                    kind=self.kind,
                    function_name="ensure_destination",
                    args=(self._topic_name,),
                )
            response = self._call(
                "ensure_destination", "create_topic", Name=self._topic_name
            )
            arn = response["TopicArn"]
        self._topic_arn = arn

    def send(self, batch: list[LogMessage]) -> list[LogMessage]:
        if batch and self._topic_arn is None:
            raise FacadeError(
                "topic has not been resolved",
                reason=ReasonCode.MISSING_DESTINATION,
                kind=self.kind,
                function_name="send",
                args=(self._topic_name,),
            )
        for message in batch:
            params: dict[str, Any] = {
                "TopicArn": self._topic_arn,
                "Message": message.message,
            }
            if self._subject:
                params["Subject"] = self._subject
            self._call("send", "publish", **params)
        return []

    def _find_topic(self) -> str | None:
        suffix = f":{self._topic_name}"
        params: dict[str, Any] = {}
        while True:
            response = self._call("ensure_destination", "list_topics", **params)
            for topic in response.get("Topics", []):
                arn = topic.get("TopicArn", "")
                if arn.endswith(suffix):
                    return arn
            next_token = response.get("NextToken")
            if not next_token:
                return None
            params["NextToken"] = next_token


# Mark Pydantic validators as used for vulture
_VULTURE_USED: tuple[object, ...] = (
    SNSWriterConfig._check_subject,
    SNSWriterConfig._check_topic,
)
