"""Pure data models for relaypool.

Frozen dataclasses with zero I/O. Everything above this layer exchanges
these types: [RelayEndpoint][relaypool.models.relay.RelayEndpoint],
[Event][relaypool.models.event.Event], [Filter][relaypool.models.filter.Filter],
[Subscription][relaypool.models.subscription.Subscription] and the publish
and statistics records.
"""

from .constants import ConnectionState, MessageType, SubscriptionStatus
from .event import Event, EventPayload
from .filter import Filter, match_any
from .publish import FlushResult, OutboundEventRecord, PublishResult
from .relay import RelayEndpoint
from .stats import ConnectionSummary, DedupEntry, RelayStats
from .subscription import Subscription


__all__ = [
    "ConnectionState",
    "ConnectionSummary",
    "DedupEntry",
    "Event",
    "EventPayload",
    "Filter",
    "FlushResult",
    "MessageType",
    "OutboundEventRecord",
    "PublishResult",
    "RelayEndpoint",
    "RelayStats",
    "Subscription",
    "SubscriptionStatus",
    "match_any",
]
