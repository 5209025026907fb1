"""Relay connectivity core.

Attributes:
    connection: One WebSocket connection and its state machine.
    registry: Logical subscriptions and replay onto reopened connections.
    dedup: First-delivery-wins event id filter.
    publisher: Publish fan-out and ``OK`` fan-in.
    queue: Bounded offline queue for unpublished events.
    pool: The [RelayPool][relaypool.client.pool.RelayPool] facade.
"""

from .configs import (
    BackoffConfig,
    ConnectionConfig,
    DedupConfig,
    PublishConfig,
    QueueConfig,
    RelayPoolConfig,
)
from .connection import (
    Closed,
    ConnectionEvent,
    Errored,
    FrameReceived,
    Opened,
    RelayConnection,
    compute_backoff,
)
from .dedup import Deduplicator
from .pool import RelayPool
from .publisher import PublishCoordinator
from .queue import OfflineQueue
from .registry import ReplayFrame, SubscriptionRegistry, replay_subscriptions


__all__ = [
    "BackoffConfig",
    "Closed",
    "ConnectionConfig",
    "ConnectionEvent",
    "DedupConfig",
    "Deduplicator",
    "Errored",
    "FrameReceived",
    "OfflineQueue",
    "Opened",
    "PublishConfig",
    "PublishCoordinator",
    "QueueConfig",
    "RelayConnection",
    "RelayPool",
    "RelayPoolConfig",
    "ReplayFrame",
    "SubscriptionRegistry",
    "compute_backoff",
    "replay_subscriptions",
]
