"""
Unit tests for client.dedup module.

Tests:
- First delivery wins, later deliveries from any relay are rejected
- Entry bookkeeping (first relay, relays seen, duplicate count)
- Size-bounded eviction (oldest first)
- Age-bounded expiry with an injected clock
"""

import pytest

from relaypool.client.dedup import Deduplicator
from relaypool.models import RelayEndpoint


RELAYS = [RelayEndpoint(f"wss://relay-{c}.example.com") for c in "abc"]


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestShouldDeliver:
    """Deduplicator.should_deliver()."""

    def test_first_sight_delivers(self) -> None:
        dedup = Deduplicator()
        assert dedup.should_deliver("e1") is True
        assert "e1" in dedup

    def test_same_id_from_three_relays(self) -> None:
        dedup = Deduplicator()

        results = [dedup.should_deliver("e1", relay) for relay in RELAYS]

        assert results == [True, False, False]
        entry = dedup.entry("e1")
        assert entry.first_relay == RELAYS[0]
        assert entry.duplicates == 2
        assert dedup.relays_for("e1") == set(RELAYS)
        assert dedup.delivered == 1
        assert dedup.duplicates == 2

    def test_distinct_ids_all_delivered(self) -> None:
        dedup = Deduplicator()
        assert all(dedup.should_deliver(f"e{i}") for i in range(10))
        assert len(dedup) == 10

    def test_unknown_entry(self) -> None:
        dedup = Deduplicator()
        assert dedup.entry("missing") is None
        assert dedup.relays_for("missing") == frozenset()

    def test_clear(self) -> None:
        dedup = Deduplicator()
        dedup.should_deliver("e1")
        dedup.clear()
        assert dedup.should_deliver("e1") is True


class TestBounds:
    """Size and age limits."""

    def test_evicts_oldest_beyond_max_size(self) -> None:
        dedup = Deduplicator(max_size=3)
        for i in range(5):
            dedup.should_deliver(f"e{i}")

        assert len(dedup) == 3
        assert "e0" not in dedup
        assert "e1" not in dedup
        assert "e4" in dedup
        assert dedup.should_deliver("e0") is True

    def test_expires_old_entries(self) -> None:
        clock = FakeClock()
        dedup = Deduplicator(max_age=60.0, clock=clock)
        dedup.should_deliver("old")
        clock.now += 30
        dedup.should_deliver("young")

        clock.now += 45

        assert dedup.should_deliver("old") is True
        assert dedup.should_deliver("young") is False

    def test_no_expiry_when_max_age_none(self) -> None:
        clock = FakeClock()
        dedup = Deduplicator(max_age=None, clock=clock)
        dedup.should_deliver("e1")
        clock.now += 10**9
        assert dedup.should_deliver("e1") is False

    @pytest.mark.parametrize(("kwargs", "match"), [
        ({"max_size": 0}, "max_size"),
        ({"max_age": 0}, "max_age"),
    ])
    def test_invalid_bounds(self, kwargs: dict, match: str) -> None:
        with pytest.raises(ValueError, match=match):
            Deduplicator(**kwargs)
