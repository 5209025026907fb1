"""Read-only snapshots describing relay and deduplication state."""

from __future__ import annotations

from dataclasses import dataclass, field

from .constants import ConnectionState
from .relay import RelayEndpoint


@dataclass(frozen=True, slots=True)
class RelayStats:
    """Point-in-time view of one relay slot in a pool.

    Attributes:
        endpoint: The relay.
        state: Current connection state.
        reconnect_attempts: Consecutive failed attempts since the last open.
        last_error: Message of the most recent transport error, if any.
        last_connected_at: Unix timestamp of the last successful open.
        last_disconnected_at: Unix timestamp of the last close.
        next_reconnect_at: Unix timestamp of the scheduled retry, if waiting.
        messages_sent: Frames written across all connections to this relay.
        messages_received: Well-formed frames received from this relay.
        auth_challenge: Last ``AUTH`` challenge the relay sent.
    """

    endpoint: RelayEndpoint
    state: ConnectionState
    reconnect_attempts: int = 0
    last_error: str | None = None
    last_connected_at: float | None = None
    last_disconnected_at: float | None = None
    next_reconnect_at: float | None = None
    messages_sent: int = 0
    messages_received: int = 0
    auth_challenge: str | None = None

    @property
    def is_reconnecting(self) -> bool:
        return self.next_reconnect_at is not None


@dataclass(frozen=True, slots=True)
class ConnectionSummary:
    """Relay counts per connection state."""

    connecting: int = 0
    open: int = 0
    closing: int = 0
    closed: int = 0

    @property
    def total(self) -> int:
        return self.connecting + self.open + self.closing + self.closed


@dataclass(slots=True)
class DedupEntry:
    """Record of an event id already delivered to the application.

    Attributes:
        event_id: The delivered event id.
        first_seen_at: Monotonic clock reading of the first delivery.
        first_relay: Relay that delivered it first, when known.
        relays: Every relay that reported the id.
        duplicates: Number of rejected redundant deliveries.
    """

    event_id: str
    first_seen_at: float
    first_relay: RelayEndpoint | None = None
    relays: set[RelayEndpoint] = field(default_factory=set)
    duplicates: int = 0
