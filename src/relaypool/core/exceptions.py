"""relaypool exception hierarchy.

Typed exceptions for every error category the relay core can produce.
Per-relay failures are isolated by the pool and never escape an operation
that targets several relays; these classes exist so the places that *do*
catch them can be specific instead of catching ``Exception``.

Exception hierarchy:

```text
RelayPoolError (base -- never raised directly)
├── ConfigurationError        -- config validation, bad YAML, bad CLI input
├── ConnectivityError         -- transport-level failures (alias: TransportError)
│   ├── HandshakeError        -- WebSocket handshake failed or timed out
│   └── NotOpenError          -- send() while not open (alias: SendWhileClosedError)
├── ProtocolError             -- malformed inbound frame
└── PublishingError           -- event broadcast failures
    └── PublishRejectedError  -- a relay answered OK with success=false
```

See Also:
    [RelayConnection][relaypool.client.connection.RelayConnection]: Raises
        [NotOpenError][relaypool.core.exceptions.NotOpenError] from ``send()``.
    [parse_message()][relaypool.utils.protocol.parse_message]: Raises
        [ProtocolError][relaypool.core.exceptions.ProtocolError], which the
        connection logs and drops.
"""

from __future__ import annotations


class RelayPoolError(Exception):
    """Base exception for all relaypool errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(RelayPoolError):
    """Invalid or missing configuration (YAML, env vars, CLI flags)."""


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(RelayPoolError):
    """Base for all relay transport errors.

    Triggers backoff reconnection inside the pool and is only reflected to
    the application through
    [RelayPool.get_status()][relaypool.client.pool.RelayPool.get_status].
    """


class HandshakeError(ConnectivityError):
    """The WebSocket handshake failed, was refused, or timed out."""


class NotOpenError(ConnectivityError):
    """``send()`` was called on a connection that is not open.

    Callers treat this as "relay unreachable right now", never as fatal.
    """

    def __init__(self, relay: str = "", state: str = "") -> None:
        self.relay = relay
        self.state = state
        if relay:
            super().__init__(f"Connection to {relay} is not open (state={state})")
        else:
            super().__init__()


TransportError = ConnectivityError
SendWhileClosedError = NotOpenError


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(RelayPoolError):
    """An inbound frame is not a well-formed relay message.

    Relays are untrusted peers, so this is logged and the frame discarded.
    """


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


class PublishingError(RelayPoolError):
    """Failed to broadcast an event to relays."""


class PublishRejectedError(PublishingError):
    """A relay explicitly refused an event (``OK`` with ``success=false``).

    Reported per relay in
    [PublishResult.rejected_by][relaypool.models.publish.PublishResult];
    the pool never raises it.
    """

    def __init__(self, relay: str, event_id: str, message: str = "") -> None:
        self.relay = relay
        self.event_id = event_id
        self.message = message
        super().__init__(f"{relay} rejected {event_id[:16]}: {message}")
