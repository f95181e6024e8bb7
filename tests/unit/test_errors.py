from __future__ import annotations

import pytest

from awslog.core.errors import (
    AwsLogError,
    ConfigurationError,
    DestinationKind,
    FacadeError,
    ReasonCode,
    is_retryable,
)

pytestmark = pytest.mark.critical


@pytest.mark.parametrize(
    "reason,expected",
    [
        (ReasonCode.THROTTLING, True),
        (ReasonCode.UNAVAILABLE, True),
        (ReasonCode.INVALID_STATE, True),
        (ReasonCode.SEQUENCE_CONFLICT, True),
        (ReasonCode.INVALID_CONFIGURATION, False),
        (ReasonCode.MISSING_DESTINATION, False),
        (ReasonCode.ALREADY_EXISTS, False),
        (ReasonCode.UNEXPECTED_EXCEPTION, False),
    ],
)
def test_default_retry_classification(reason: ReasonCode, expected: bool) -> None:
    assert is_retryable(reason) is expected
    err = FacadeError("x", reason=reason, kind=DestinationKind.SNS)
    assert err.retryable is expected


def test_throttling_is_always_retryable() -> None:
    err = FacadeError(
        "slow down",
        reason=ReasonCode.THROTTLING,
        kind=DestinationKind.KINESIS,
        retryable=False,
    )
    assert err.retryable is True


def test_invalid_configuration_is_never_retryable() -> None:
    err = FacadeError(
        "denied",
        reason=ReasonCode.INVALID_CONFIGURATION,
        kind=DestinationKind.CLOUDWATCH,
        retryable=True,
    )
    assert err.retryable is False


def test_unfixed_reason_accepts_override() -> None:
    err = FacadeError(
        "odd",
        reason=ReasonCode.UNEXPECTED_EXCEPTION,
        kind=DestinationKind.SNS,
        retryable=True,
    )
    assert err.retryable is True


def test_facade_error_carries_context() -> None:
    cause = RuntimeError("boom")
    err = FacadeError(
        "put failed",
        reason=ReasonCode.UNAVAILABLE,
        kind=DestinationKind.CLOUDWATCH,
        function_name="send",
        args=("group", "stream"),
        cause=cause,
    )

    assert err.__cause__ is cause
    assert str(err) == "cloudwatch.send: put failed (unavailable)"
    data = err.to_dict()
    assert data["error_type"] == "FacadeError"
    assert data["reason"] == "unavailable"
    assert data["retryable"] is True
    assert data["function"] == "send"
    assert data["args"] == ["group", "stream"]
    assert data["cause"] == "RuntimeError: boom"


def test_configuration_error_is_awslog_error() -> None:
    err = ConfigurationError("bad")
    assert isinstance(err, AwsLogError)
    assert err.to_dict() == {"error_type": "ConfigurationError", "message": "bad"}
