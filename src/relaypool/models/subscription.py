"""
Logical subscription owned by the subscription registry.

A subscription is identified by a client-assigned id and an immutable
filter set. Changing filters means unsubscribing and subscribing again with
a new id. The mutable parts (status, EOSE bookkeeping) are only ever
touched by [SubscriptionRegistry][relaypool.client.registry.SubscriptionRegistry].
"""

from __future__ import annotations

from dataclasses import dataclass, field
from time import time

from .constants import SubscriptionStatus
from .filter import Filter
from .relay import RelayEndpoint


@dataclass(slots=True)
class Subscription:
    """A standing query against every relay of a pool.

    Attributes:
        id: Client-assigned identifier, unique while the subscription lives.
        filters: Immutable filter set sent verbatim in every ``REQ``.
        created_at: Unix timestamp of registration.
        status: ``pending`` until the first EOSE, then ``live``; ``closed``
            after unsubscribe.
        eose_relays: Relays that answered EOSE on their current connection.
        backlog_complete: Set once, on the first EOSE from any relay.
    """

    id: str
    filters: tuple[Filter, ...]
    created_at: float = field(default_factory=time)
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    eose_relays: set[RelayEndpoint] = field(default_factory=set)
    backlog_complete: bool = False

    @property
    def is_active(self) -> bool:
        return self.status is not SubscriptionStatus.CLOSED

    def filter_dicts(self) -> list[dict[str, object]]:
        return [flt.to_dict() for flt in self.filters]
