"""Data loader engine configuration settings.

Engine-wide defaults applied to every loader before options customizers run.
Environment variables use DATALOADER_ prefix.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MissingKeyMode = Literal["none", "error"]


class DataLoaderSettings(BaseSettings):
    """Data loader engine defaults.

    Environment variables use DATALOADER_ prefix.
    Example: DATALOADER_MAX_BATCH_SIZE=100, DATALOADER_CACHING_ENABLED=false
    """

    # Batching
    max_batch_size: int = Field(
        default=0,
        ge=0,
        le=100_000,
        description="Maximum keys per batch function call (0 = unlimited)",
    )
    batching_enabled: bool = Field(
        default=True,
        description="Group keys into batches (false = one call per key)",
    )

    # Request-scoped cache
    caching_enabled: bool = Field(
        default=True,
        description="Cache loaded values for the lifetime of the loader",
    )

    # Mapped loaders
    missing_key_policy: MissingKeyMode = Field(
        default="none",
        description="Outcome for keys absent from a mapped batch result: none or error",
    )

    # Instrumentation
    log_batches: bool = Field(
        default=False,
        description="Log dispatches and batches, tagging batch function logs with the loader",
    )
    metrics_enabled: bool = Field(
        default=False,
        description="Record Prometheus metrics for loads and batches",
    )
    tracing_enabled: bool = Field(
        default=False,
        description="Create an OpenTelemetry span per batch function call",
    )

    # Discovery
    rediscover_per_request: bool = Field(
        default=False,
        description="Run loader discovery again for every registry build",
    )

    model_config = SettingsConfigDict(
        env_prefix="DATALOADER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @field_validator("missing_key_policy", mode="before")
    @classmethod
    def normalize_policy(cls, v: str) -> str:
        """Normalize policy name to lowercase."""
        if isinstance(v, str):
            return v.lower()
        return v

    @property
    def effective_max_batch_size(self) -> int | None:
        """Maximum batch size, or None when unlimited."""
        return self.max_batch_size or None
