"""Subscription registry: which subscriptions should exist.

The registry is the single source of truth for logical subscriptions,
independent of which connections currently carry them. Connections keep
their own wire set (``RelayConnection.subscriptions``); when a connection
opens,
[replay_subscriptions()][relaypool.client.registry.replay_subscriptions]
computes the ``REQ`` frames needed to bring it in line with the registry.

EOSE bookkeeping is per relay: the first EOSE for a subscription flips it to
``live`` and reports the backlog as complete; later EOSEs from other relays
are recorded but do not report again.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, NamedTuple

from relaypool.models.constants import SubscriptionStatus
from relaypool.models.filter import Filter
from relaypool.models.relay import RelayEndpoint
from relaypool.models.subscription import Subscription
from relaypool.utils.protocol import encode_req


if TYPE_CHECKING:
    from .connection import RelayConnection


class ReplayFrame(NamedTuple):
    subscription_id: str
    frame: str


class SubscriptionRegistry:
    """In-memory set of logical subscriptions keyed by id.

    Closed subscriptions are removed immediately, so an id can be reused
    once unsubscribed.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __contains__(self, subscription_id: object) -> bool:
        return subscription_id in self._subscriptions

    def __iter__(self) -> Iterator[Subscription]:
        return iter(list(self._subscriptions.values()))

    def add(self, subscription_id: str, filters: Iterable[Filter]) -> Subscription:
        """Register a new pending subscription.

        Raises:
            ValueError: If the id is empty or already active, or if no
                filter is given.
        """
        if not subscription_id:
            raise ValueError("Subscription id must be a non-empty string")
        if subscription_id in self._subscriptions:
            raise ValueError(f"Subscription {subscription_id!r} is already active")
        frozen = tuple(Filter.coerce(flt) for flt in filters)
        if not frozen:
            raise ValueError("A subscription needs at least one filter")

        subscription = Subscription(id=subscription_id, filters=frozen)
        self._subscriptions[subscription_id] = subscription
        return subscription

    def get(self, subscription_id: str) -> Subscription | None:
        return self._subscriptions.get(subscription_id)

    def is_active(self, subscription_id: str) -> bool:
        """True while the subscription is ``pending`` or ``live``."""
        subscription = self._subscriptions.get(subscription_id)
        return subscription is not None and subscription.is_active

    def remove(self, subscription_id: str) -> Subscription | None:
        """Mark a subscription ``closed`` and forget it.

        Returns:
            The closed subscription, or ``None`` if the id was unknown.
        """
        subscription = self._subscriptions.pop(subscription_id, None)
        if subscription is not None:
            subscription.status = SubscriptionStatus.CLOSED
            subscription.eose_relays.clear()
        return subscription

    def active(self) -> list[Subscription]:
        """Pending and live subscriptions in registration order."""
        return [s for s in self._subscriptions.values() if s.is_active]

    def mark_eose(self, subscription_id: str, relay: RelayEndpoint) -> bool:
        """Record an EOSE from ``relay``.

        Returns:
            True only for the first EOSE of the subscription, from any relay.
        """
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None or not subscription.is_active:
            return False
        subscription.eose_relays.add(relay)
        subscription.status = SubscriptionStatus.LIVE
        if subscription.backlog_complete:
            return False
        subscription.backlog_complete = True
        return True

    def eose_relays(self, subscription_id: str) -> frozenset[RelayEndpoint]:
        """Relays that answered EOSE on their current connection."""
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            return frozenset()
        return frozenset(subscription.eose_relays)

    def forget_relay(self, relay: RelayEndpoint) -> None:
        """Drop per-relay EOSE state after ``relay`` disconnects."""
        for subscription in self._subscriptions.values():
            subscription.eose_relays.discard(relay)


def replay_subscriptions(
    connection: RelayConnection, registry: SubscriptionRegistry
) -> list[ReplayFrame]:
    """Return the ``REQ`` frames a freshly opened connection is missing.

    Pure function: it neither sends nor mutates. Active subscriptions already
    in ``connection.subscriptions`` are skipped, so an id is never sent twice
    to the same connection. Filters are re-sent verbatim.
    """
    return [
        ReplayFrame(subscription.id, encode_req(subscription.id, subscription.filters))
        for subscription in registry.active()
        if subscription.id not in connection.subscriptions
    ]
