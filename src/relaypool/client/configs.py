"""Relay pool configuration models.

All durations are in seconds. Every model can be built from a plain dict,
which is how [RelayPool.from_yaml()][relaypool.client.pool.RelayPool.from_yaml]
loads them.

Examples:
    ```yaml
    name: main
    relays:
      - wss://relay.damus.io
      - wss://nos.lol
    backoff:
      initial_delay: 1.0
      multiplier: 2.0
      max_delay: 300.0
    publish:
      timeout: 2.0
    queue:
      capacity: 100
      max_retries: 3
    metrics:
      enabled: true
      port: 8000
    ```
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from relaypool.core.metrics import MetricsConfig
from relaypool.models.relay import RelayEndpoint


class BackoffConfig(BaseModel):
    """Reconnection delay policy.

    ``delay(n) = min(initial_delay * multiplier ** (n - 1), max_delay)`` plus
    an optional uniform ``[0, jitter]`` random term.
    """

    initial_delay: float = Field(default=1.0, gt=0.0, description="Delay before the first retry")
    multiplier: float = Field(default=2.0, ge=1.0, description="Growth factor per attempt")
    max_delay: float = Field(default=300.0, gt=0.0, description="Upper bound for any delay")
    jitter: float = Field(default=0.0, ge=0.0, description="Max random seconds added")
    max_attempts: int = Field(
        default=20, ge=0, description="Failed attempts before giving up (0 = unlimited)"
    )

    @model_validator(mode="after")
    def validate_bounds(self) -> BackoffConfig:
        if self.max_delay < self.initial_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= initial_delay ({self.initial_delay})"
            )
        return self


class ConnectionConfig(BaseModel):
    """Per-connection transport settings."""

    connect_timeout: float = Field(default=10.0, gt=0.0, description="Handshake timeout")
    close_timeout: float = Field(default=5.0, gt=0.0, description="Graceful close timeout")
    heartbeat: float | None = Field(default=30.0, gt=0.0, description="Ping interval")
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")


class PublishConfig(BaseModel):
    timeout: float = Field(default=2.0, gt=0.0, description="Seconds to wait for OK replies")


class QueueConfig(BaseModel):
    """Offline queue bounds."""

    capacity: int = Field(default=100, ge=1, description="Max queued events")
    max_retries: int = Field(default=3, ge=1, description="Flush attempts before dropping")
    max_age: float | None = Field(
        default=86400.0, gt=0.0, description="Seconds before a record expires (None = never)"
    )
    flush_on_connect: bool = Field(
        default=True, description="Flush when a relay opens on a disconnected pool"
    )


class DedupConfig(BaseModel):
    max_size: int = Field(default=10_000, ge=1, description="Max remembered event ids")
    max_age: float | None = Field(
        default=3600.0, gt=0.0, description="Seconds an id is remembered (None = forever)"
    )


class RelayPoolConfig(BaseModel):
    """Top-level configuration of a [RelayPool][relaypool.client.pool.RelayPool]."""

    name: str = Field(default="default", min_length=1, description="Pool name (metrics label)")
    relays: list[str] = Field(default_factory=list, description="Relay URLs to connect to")
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    dedup: DedupConfig = Field(default_factory=DedupConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @field_validator("relays", mode="after")
    @classmethod
    def validate_relays(cls, v: list[str]) -> list[str]:
        """Normalize relay URLs and drop duplicate spellings."""
        seen: dict[str, None] = {}
        for url in v:
            seen.setdefault(RelayEndpoint(url).url)
        return list(seen)

    def endpoints(self) -> list[RelayEndpoint]:
        return [RelayEndpoint(url) for url in self.relays]
