"""
Shared plumbing for destination facades.

A facade is the only code that talks to an AWS client. ``BaseFacade._call``
wraps every SDK call and translates any exception into a ``FacadeError``;
nothing raised by boto3 or botocore is allowed past it.
"""

from __future__ import annotations

from typing import Any, ClassVar, Mapping, Protocol, runtime_checkable

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
    NoRegionError,
    ParamValidationError,
    PartialCredentialsError,
)

from ..core.batching import BatchLimits
from ..core.config import WriterConfig
from ..core.errors import DestinationKind, FacadeError, ReasonCode
from ..core.records import LogMessage


@runtime_checkable
class Facade(Protocol):
    """Synchronous wrapper around one destination's remote API.

    Implementations must raise only ``FacadeError``.
    """

    kind: DestinationKind
    limits: BatchLimits

    @property
    def destination(self) -> str: ...

    def message_size(self, message: LogMessage) -> int: ...

    def ensure_destination(self) -> None:
        """Verify the destination exists, creating it where configured."""
        ...

    def send(self, batch: list[LogMessage]) -> list[LogMessage]:
        """Deliver a batch; return the messages the service did not accept."""
        ...

    def shutdown(self) -> None: ...


# Codes shared by every AWS JSON/query protocol service
_COMMON_CODES: dict[str, ReasonCode] = {
    "Throttling": ReasonCode.THROTTLING,
    "ThrottlingException": ReasonCode.THROTTLING,
    "ThrottledException": ReasonCode.THROTTLING,
    "TooManyRequestsException": ReasonCode.THROTTLING,
    "RequestLimitExceeded": ReasonCode.THROTTLING,
    "ServiceUnavailable": ReasonCode.UNAVAILABLE,
    "ServiceUnavailableException": ReasonCode.UNAVAILABLE,
    "InternalFailure": ReasonCode.UNAVAILABLE,
    "InternalError": ReasonCode.UNAVAILABLE,
    "InternalServerError": ReasonCode.UNAVAILABLE,
    "AccessDenied": ReasonCode.INVALID_CONFIGURATION,
    "AccessDeniedException": ReasonCode.INVALID_CONFIGURATION,
    "UnrecognizedClientException": ReasonCode.INVALID_CONFIGURATION,
    "InvalidClientTokenId": ReasonCode.INVALID_CONFIGURATION,
    "InvalidSignatureException": ReasonCode.INVALID_CONFIGURATION,
}


class BaseFacade:
    """Common client handling and error translation."""

    kind: ClassVar[DestinationKind]
    service_name: ClassVar[str]
    limits: ClassVar[BatchLimits]
    # Service-specific error codes; consulted before the common table
    error_codes: ClassVar[Mapping[str, ReasonCode]] = {}

    def __init__(self, config: WriterConfig, *, client: Any | None = None) -> None:
        self._config = config
        self._client = client if client is not None else self._create_client()

    @property
    def config(self) -> WriterConfig:
        return self._config

    @property
    def client(self) -> Any:
        return self._client

    def message_size(self, message: LogMessage) -> int:
        return message.size

    def shutdown(self) -> None:
        close = getattr(self._client, "close", None)
        if callable(close):
            try:
                close()
            except Exception:
                # Closing idle connections is best effort
                pass

    def _create_client(self) -> Any:
        try:
            return boto3.client(
                self.service_name,
                region_name=self._config.client_region,
                endpoint_url=self._config.client_endpoint,
            )
        except Exception as exc:
            raise self._translate(exc, "create_client", ()) from exc

    def _invalid(self, message: str, *args: Any) -> FacadeError:
        return FacadeError(
            message,
            reason=ReasonCode.INVALID_CONFIGURATION,
            kind=self.kind,
            function_name="configure",
            args=args,
        )

    def _call(self, function_name: str, operation: str, **params: Any) -> Any:
        """Invoke ``client.<operation>(**params)`` with error translation."""
        method = getattr(self._client, operation)
        try:
            return method(**params)
        except Exception as exc:
            # Scalars only; message payloads stay out of diagnostics
            args = tuple(v for v in params.values() if isinstance(v, (str, int)))
            raise self._translate(exc, function_name, args) from exc

    def _translate(
        self, exc: BaseException, function_name: str, args: tuple[Any, ...]
    ) -> FacadeError:
        if isinstance(exc, FacadeError):
            return exc
        if isinstance(exc, ClientError):
            error = exc.response.get("Error", {})
            code = str(error.get("Code", ""))
            reason = self.error_codes.get(code) or _COMMON_CODES.get(code)
            if reason is None:
                status = exc.response.get("ResponseMetadata", {}).get(
                    "HTTPStatusCode", 0
                )
                reason = (
                    ReasonCode.UNAVAILABLE
                    if status >= 500
                    else ReasonCode.UNEXPECTED_EXCEPTION
                )
            message = f"{code}: {error.get('Message', '')}".rstrip(": ")
        elif isinstance(exc, (BotoConnectionError, HTTPClientError)):
            reason = ReasonCode.UNAVAILABLE
            message = str(exc)
        elif isinstance(
            exc,
            (
                NoRegionError,
                NoCredentialsError,
                PartialCredentialsError,
                ParamValidationError,
            ),
        ):
            reason = ReasonCode.INVALID_CONFIGURATION
            message = str(exc)
        elif isinstance(exc, BotoCoreError):
            reason = ReasonCode.UNEXPECTED_EXCEPTION
            message = str(exc)
        else:
            reason = ReasonCode.UNEXPECTED_EXCEPTION
            message = f"{type(exc).__name__}: {exc}"
        return FacadeError(
            message or type(exc).__name__,
            reason=reason,
            kind=self.kind,
            function_name=function_name,
            args=args,
            cause=exc,
        )
