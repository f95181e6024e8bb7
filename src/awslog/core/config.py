"""
Writer configuration models.

``WriterConfig`` holds the options every destination shares; the facade
modules subclass it with their destination identity fields and a ``kind``
discriminator. Configs are immutable once built; destination-name
substitution produces a resolved copy via ``with_substitutions``.
"""

from __future__ import annotations

import random
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .queue import DiscardAction
from .substitutions import Substitutions


class RetryConfig(BaseModel):
    """Exponential backoff for retryable remote failures."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(
        default=5,
        ge=1,
        description="Total send attempts per batch, including the first",
    )
    initial_delay_ms: int = Field(default=200, ge=0)
    max_delay_ms: int = Field(default=10_000, ge=0)
    multiplier: float = Field(default=2.0, ge=1.0)
    jitter: bool = Field(
        default=True,
        description="Randomize each delay between 50% and 100% of its value",
    )

    def delay_seconds(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        delay_ms = min(
            self.max_delay_ms,
            self.initial_delay_ms * (self.multiplier ** max(0, attempt)),
        )
        if self.jitter:
            delay_ms *= random.uniform(0.5, 1.0)
        return delay_ms / 1000.0


class WriterConfig(BaseModel):
    """Options shared by all destination kinds.

    Defaults match the documented option table: 2s batch delay, 10,000
    message discard threshold discarding the oldest, truncation of oversize
    messages, background writer, 60s initialization timeout and a dedicated
    writer.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    # Names of string fields that may contain substitution tokens
    substitution_fields: ClassVar[tuple[str, ...]] = ()

    batch_delay_ms: int = Field(
        default=2000,
        ge=0,
        description="Maximum wait before flushing a partial batch",
    )
    discard_threshold: int = Field(
        default=10_000,
        ge=1,
        description="Queue size at which the discard policy triggers",
    )
    discard_action: DiscardAction = Field(default=DiscardAction.OLDEST)
    truncate_oversize_messages: bool = Field(
        default=True,
        description="Truncate a message larger than the destination allows; "
        "when False such messages are dropped with a diagnostic",
    )
    synchronous_mode: bool = Field(
        default=False,
        description="Send on the caller's thread instead of a background writer",
    )
    initialization_timeout_ms: int = Field(
        default=60_000,
        gt=0,
        description="Maximum time to wait for the destination to become ready",
    )
    dedicated_writer: bool = Field(
        default=True,
        description="Assume this writer is the only writer of its destination",
    )
    lazy_start: bool = Field(
        default=True,
        description="Create the writer on first enqueue rather than at configure time",
    )
    use_shutdown_hook: bool = Field(
        default=True,
        description="Drain this writer when the interpreter exits",
    )
    shutdown_timeout_ms: int = Field(
        default=5000,
        ge=0,
        description="Grace window for flushing queued messages on shutdown",
    )
    retry: RetryConfig = Field(default_factory=RetryConfig)
    client_region: str | None = Field(default=None)
    client_endpoint: str | None = Field(default=None)

    @model_validator(mode="before")
    @classmethod
    def _synchronous_disables_batch_delay(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("synchronous_mode"):
            data = dict(data)
            data["batch_delay_ms"] = 0
        return data

    @property
    def batch_delay_seconds(self) -> float:
        return self.batch_delay_ms / 1000.0

    @property
    def initialization_timeout_seconds(self) -> float:
        return self.initialization_timeout_ms / 1000.0

    @property
    def shutdown_timeout_seconds(self) -> float:
        return self.shutdown_timeout_ms / 1000.0

    def with_substitutions(self, substitutions: Substitutions) -> WriterConfig:
        """Return a copy with substitution tokens resolved in identity fields."""
        update: dict[str, Any] = {}
        for name in self.substitution_fields:
            value = getattr(self, name)
            if isinstance(value, str):
                update[name] = substitutions.apply(value)
        if not update:
            return self
        return self.model_copy(update=update)


# Mark Pydantic validators as used for vulture
_VULTURE_USED: tuple[object, ...] = (WriterConfig._synchronous_disables_batch_delay,)
