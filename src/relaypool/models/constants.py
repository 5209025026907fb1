"""Shared enumerations for the models layer.

Placing them here avoids circular imports between the models, protocol and
client layers.

See Also:
    [RelayConnection][relaypool.client.connection.RelayConnection]: Owns a
        [ConnectionState][relaypool.models.constants.ConnectionState].
    [SubscriptionRegistry][relaypool.client.registry.SubscriptionRegistry]:
        Drives [SubscriptionStatus][relaypool.models.constants.SubscriptionStatus].
"""

from __future__ import annotations

from enum import StrEnum


class ConnectionState(StrEnum):
    """Lifecycle state of one relay connection.

    Allowed transitions::

        CONNECTING -> OPEN -> CLOSING -> CLOSED
        CONNECTING -> CLOSED          (failed handshake)
        CONNECTING -> CLOSING         (close requested during handshake)
        OPEN       -> CLOSED          (abrupt network loss)

    ``CLOSED`` is final for a connection object; the pool builds a fresh
    connection for every reconnect attempt.
    """

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class SubscriptionStatus(StrEnum):
    """Lifecycle state of a logical subscription.

    Attributes:
        PENDING: Registered, no relay has answered EOSE yet.
        LIVE: At least one relay finished its stored-event backlog.
        CLOSED: Unsubscribed; never replayed again.
    """

    PENDING = "pending"
    LIVE = "live"
    CLOSED = "closed"


class MessageType(StrEnum):
    """First-element tags of relay protocol frames."""

    EVENT = "EVENT"
    REQ = "REQ"
    CLOSE = "CLOSE"
    OK = "OK"
    EOSE = "EOSE"
    CLOSED = "CLOSED"
    NOTICE = "NOTICE"
    AUTH = "AUTH"
