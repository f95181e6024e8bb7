"""
Destination facades and config parsing.

``create_facade`` maps a writer config to its facade; ``parse_writer_config``
builds the right config class from a plain mapping using its ``kind``.
"""

from __future__ import annotations

from typing import Annotated, Any, Mapping, Union

from pydantic import Field, TypeAdapter, ValidationError

from ..core.config import WriterConfig
from ..core.errors import ConfigurationError
from .base import BaseFacade, Facade
from .cloudwatch import CloudWatchFacade, CloudWatchWriterConfig
from .kinesis import KinesisFacade, KinesisWriterConfig
from .sns import SNSFacade, SNSWriterConfig

DestinationConfig = Annotated[
    Union[CloudWatchWriterConfig, KinesisWriterConfig, SNSWriterConfig],
    Field(discriminator="kind"),
]

_CONFIG_ADAPTER: TypeAdapter[Any] = TypeAdapter(DestinationConfig)

_FACADES: dict[type[WriterConfig], type[BaseFacade]] = {
    CloudWatchWriterConfig: CloudWatchFacade,
    KinesisWriterConfig: KinesisFacade,
    SNSWriterConfig: SNSFacade,
}


def parse_writer_config(data: Mapping[str, Any] | WriterConfig) -> WriterConfig:
    """Validate a mapping into its destination config.

    Raises ``ConfigurationError`` (chained to the pydantic error) when the
    mapping is invalid.
    """
    if isinstance(data, WriterConfig):
        return data
    try:
        return _CONFIG_ADAPTER.validate_python(dict(data))
    except ValidationError as exc:
        raise ConfigurationError(
            f"invalid writer configuration: {exc.error_count()} error(s)",
            cause=exc,
        ) from exc


def create_facade(config: WriterConfig) -> Facade:
    """Build the facade for a (substitution-resolved) writer config."""
    facade_cls = _FACADES.get(type(config))
    if facade_cls is None:
        raise ConfigurationError(
            f"no facade for config type {type(config).__name__}"
        )
    return facade_cls(config)  # type: ignore[arg-type]


__all__ = [
    "BaseFacade",
    "CloudWatchFacade",
    "CloudWatchWriterConfig",
    "DestinationConfig",
    "Facade",
    "KinesisFacade",
    "KinesisWriterConfig",
    "SNSFacade",
    "SNSWriterConfig",
    "create_facade",
    "parse_writer_config",
]
