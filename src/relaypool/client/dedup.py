"""Bounded, time-decaying record of delivered event ids.

The same event usually arrives from several relays. The
[Deduplicator][relaypool.client.dedup.Deduplicator] lets exactly one delivery
per id through to the application. Entries are kept in insertion order and
evicted oldest-first, either when they exceed ``max_age`` or when the table
exceeds ``max_size``, so long sessions do not grow without bound.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable

from relaypool.models.relay import RelayEndpoint
from relaypool.models.stats import DedupEntry


class Deduplicator:
    """First-delivery-wins filter keyed by event id.

    Args:
        max_size: Maximum number of remembered ids.
        max_age: Seconds an id is remembered, or ``None`` for no expiry.
        clock: Monotonic time source, injectable for tests.

    Examples:
        ```python
        dedup = Deduplicator(max_size=1000)
        dedup.should_deliver("ab12", relay_a)   # True
        dedup.should_deliver("ab12", relay_b)   # False
        dedup.entry("ab12").duplicates          # 1
        ```
    """

    def __init__(
        self,
        max_size: int = 10_000,
        max_age: float | None = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        if max_age is not None and max_age <= 0:
            raise ValueError(f"max_age must be positive, got {max_age}")
        self._max_size = max_size
        self._max_age = max_age
        self._clock = clock
        self._entries: OrderedDict[str, DedupEntry] = OrderedDict()
        self.delivered = 0
        self.duplicates = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._entries

    def should_deliver(self, event_id: str, relay: RelayEndpoint | None = None) -> bool:
        """Return True and record ``event_id`` on first sight, else False."""
        now = self._clock()
        self._expire(now)

        entry = self._entries.get(event_id)
        if entry is not None:
            entry.duplicates += 1
            if relay is not None:
                entry.relays.add(relay)
            self.duplicates += 1
            return False

        entry = DedupEntry(event_id=event_id, first_seen_at=now, first_relay=relay)
        if relay is not None:
            entry.relays.add(relay)
        self._entries[event_id] = entry
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)
        self.delivered += 1
        return True

    def entry(self, event_id: str) -> DedupEntry | None:
        return self._entries.get(event_id)

    def relays_for(self, event_id: str) -> frozenset[RelayEndpoint]:
        entry = self._entries.get(event_id)
        return frozenset(entry.relays) if entry is not None else frozenset()

    def clear(self) -> None:
        self._entries.clear()

    def _expire(self, now: float) -> None:
        if self._max_age is None:
            return
        cutoff = now - self._max_age
        while self._entries:
            oldest = next(iter(self._entries.values()))
            if oldest.first_seen_at > cutoff:
                break
            self._entries.popitem(last=False)
