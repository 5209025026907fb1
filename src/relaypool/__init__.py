r"""relaypool -- resilient multi-relay connectivity for Nostr clients.

Maintains many concurrent relay connections, keeps subscriptions alive
across reconnects, publishes signed events with per-relay acknowledgement
aggregation, queues events while offline, and delivers each inbound event
to the application exactly once.

Imports flow strictly downward:

```text
               client       Pool, connection, registry, publisher, queue
              /      \
           core  <-  utils  Infrastructure; wire codec, transport and keys
              \      /
               models       Pure dataclasses (zero I/O)
```

Note:
    For lightweight usage, import directly from subpackages::

        from relaypool.models import Event, Filter
        from relaypool.client import RelayPool

    Top-level imports (``from relaypool import RelayPool``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("relaypool")

__all__ = [
    "ConnectionState",
    "Deduplicator",
    "Event",
    "EventPayload",
    "Filter",
    "Logger",
    "OfflineQueue",
    "PublishCoordinator",
    "PublishResult",
    "RelayConnection",
    "RelayEndpoint",
    "RelayPool",
    "RelayPoolConfig",
    "Subscription",
    "SubscriptionRegistry",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "Deduplicator": ("relaypool.client", "Deduplicator"),
    "OfflineQueue": ("relaypool.client", "OfflineQueue"),
    "PublishCoordinator": ("relaypool.client", "PublishCoordinator"),
    "RelayConnection": ("relaypool.client", "RelayConnection"),
    "RelayPool": ("relaypool.client", "RelayPool"),
    "RelayPoolConfig": ("relaypool.client", "RelayPoolConfig"),
    "SubscriptionRegistry": ("relaypool.client", "SubscriptionRegistry"),
    "Logger": ("relaypool.core", "Logger"),
    "ConnectionState": ("relaypool.models", "ConnectionState"),
    "Event": ("relaypool.models", "Event"),
    "EventPayload": ("relaypool.models", "EventPayload"),
    "Filter": ("relaypool.models", "Filter"),
    "PublishResult": ("relaypool.models", "PublishResult"),
    "RelayEndpoint": ("relaypool.models", "RelayEndpoint"),
    "Subscription": ("relaypool.models", "Subscription"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'relaypool' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
