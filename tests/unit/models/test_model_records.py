"""
Unit tests for the record models.

Tests:
- PublishResult success rule and read-only messages
- OutboundEventRecord defaults
- RelayStats / ConnectionSummary derived properties
- Subscription lifecycle helpers
"""

import dataclasses

import pytest

from relaypool.models import (
    ConnectionState,
    ConnectionSummary,
    Event,
    Filter,
    FlushResult,
    OutboundEventRecord,
    PublishResult,
    RelayEndpoint,
    RelayStats,
    Subscription,
    SubscriptionStatus,
)


RELAY = RelayEndpoint("wss://relay.example.com")


class TestPublishResult:
    def test_success_needs_one_acceptance(self):
        assert PublishResult("e1", accepted_by=(RELAY,)).success is True
        assert PublishResult("e1", rejected_by=(RELAY,)).success is False
        assert PublishResult("e1").success is False

    def test_messages_read_only(self):
        messages = {RELAY: "duplicate"}
        result = PublishResult("e1", messages=messages)
        messages[RELAY] = "changed"

        assert result.messages[RELAY] == "duplicate"
        with pytest.raises(TypeError):
            result.messages[RELAY] = "x"

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            PublishResult("e1").queued = True


class TestOutboundEventRecord:
    def test_defaults(self):
        record = OutboundEventRecord(Event.from_dict({"id": "e1"}))
        assert record.event_id == "e1"
        assert record.targets == frozenset()
        assert record.attempts == 0
        assert record.last_attempt_at is None
        assert record.queued_at > 0

    def test_flush_result_defaults(self):
        result = FlushResult()
        assert result.sent == result.dropped == result.retained == result.expired == ()


class TestStats:
    def test_reconnecting_when_retry_scheduled(self):
        stats = RelayStats(RELAY, ConnectionState.CLOSED, next_reconnect_at=123.0)
        assert stats.is_reconnecting

    def test_not_reconnecting_by_default(self):
        assert not RelayStats(RELAY, ConnectionState.OPEN).is_reconnecting

    def test_summary_total(self):
        assert ConnectionSummary(connecting=1, open=2, closing=0, closed=3).total == 6


class TestSubscription:
    def test_active_until_closed(self):
        sub = Subscription("s1", (Filter(kinds=[1]),))
        assert sub.is_active
        sub.status = SubscriptionStatus.LIVE
        assert sub.is_active
        sub.status = SubscriptionStatus.CLOSED
        assert not sub.is_active

    def test_filter_dicts(self):
        sub = Subscription("s1", (Filter(kinds=[1]), Filter(tags={"t": ["x"]})))
        assert sub.filter_dicts() == [{"kinds": [1]}, {"#t": ["x"]}]
