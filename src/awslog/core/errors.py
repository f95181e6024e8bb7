"""
Error types for awslog.

Two families live here:

- ``ConfigurationError`` for problems detected locally before any remote call.
- ``FacadeError`` for every failure of a remote call. Each facade maps the
  AWS SDK's error surface onto a single ``ReasonCode`` plus a retryable flag,
  so the writer can dispatch without knowing anything about the remote API.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class DestinationKind(str, Enum):
    """Remote service a writer delivers to."""

    CLOUDWATCH = "cloudwatch"
    KINESIS = "kinesis"
    SNS = "sns"


class ReasonCode(str, Enum):
    """Classification of a failed remote call."""

    # Not expected to be corrected by retrying; drop and move on
    UNEXPECTED_EXCEPTION = "unexpected_exception"
    # Bad destination identity or insufficient permission
    INVALID_CONFIGURATION = "invalid_configuration"
    # Log group/stream, Kinesis stream or SNS topic does not exist
    MISSING_DESTINATION = "missing_destination"
    # Returned by create calls; callers treat it as success
    ALREADY_EXISTS = "already_exists"
    THROTTLING = "throttling"
    # Network failure or 5xx from the service
    UNAVAILABLE = "unavailable"
    # Destination exists but is not ready (creating, updating, aborted op)
    INVALID_STATE = "invalid_state"
    # Another writer advanced the destination's sequencing state
    SEQUENCE_CONFLICT = "sequence_conflict"


_ALWAYS_RETRYABLE = frozenset(
    {
        ReasonCode.THROTTLING,
        ReasonCode.UNAVAILABLE,
        ReasonCode.INVALID_STATE,
        ReasonCode.SEQUENCE_CONFLICT,
    }
)


def is_retryable(reason: ReasonCode) -> bool:
    """Return the fixed retry classification for a reason code."""
    return reason in _ALWAYS_RETRYABLE


class AwsLogError(Exception):
    """Base class for all awslog errors."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
        }
        if self.cause is not None:
            data["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return data


class ConfigurationError(AwsLogError):
    """Writer configuration is unusable."""


class FacadeError(AwsLogError):
    """A remote call failed.

    Carries enough context to produce a standalone diagnostic: the facade
    function that failed, its arguments, and the underlying SDK exception.

    ``retryable`` defaults to the fixed classification for ``reason``;
    facades may only override it for reasons that are not fixed.
    """

    def __init__(
        self,
        message: str,
        *,
        reason: ReasonCode,
        kind: DestinationKind,
        function_name: str | None = None,
        args: tuple[Any, ...] = (),
        cause: BaseException | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.reason = reason
        self.kind = kind
        self.function_name = function_name
        self.args_ = tuple(args)
        if reason is ReasonCode.THROTTLING:
            retryable = True
        elif reason is ReasonCode.INVALID_CONFIGURATION:
            retryable = False
        elif retryable is None:
            retryable = is_retryable(reason)
        self.retryable = retryable

    def __str__(self) -> str:
        prefix = f"{self.kind.value}"
        if self.function_name:
            prefix += f".{self.function_name}"
        return f"{prefix}: {self.message} ({self.reason.value})"

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "reason": self.reason.value,
                "retryable": self.retryable,
                "kind": self.kind.value,
                "function": self.function_name,
                "args": [str(a) for a in self.args_],
            }
        )
        return data
