"""
Unit tests for client.connection module.

Tests:
- compute_backoff() delay formula, cap, jitter and argument checks
- RelayConnection state machine (CONNECTING -> OPEN -> CLOSING -> CLOSED)
- Failed handshakes (refused, timed out, unexpected errors) emit one Errored
  and one Closed
- Frame parsing: well-formed frames surface, malformed or hostile ones are
  dropped, and an unexpected reader failure still ends in Closed
- send() while not open raises NotOpenError
- Graceful close vs abrupt loss (``requested`` flag)
"""

import asyncio

import pytest

from relaypool.client.configs import ConnectionConfig
from relaypool.client.connection import (
    Closed,
    Errored,
    FrameReceived,
    Opened,
    RelayConnection,
    compute_backoff,
)
from relaypool.core.exceptions import HandshakeError, NotOpenError, SendWhileClosedError
from relaypool.models.constants import ConnectionState
from relaypool.utils.protocol import EoseMessage, NoticeMessage


URL = "wss://relay-a.example.com"


async def collect(connection: RelayConnection, count: int | None = None, timeout: float = 2.0):
    """Read ``count`` events (or all of them) from the connection stream."""
    events = []
    async with asyncio.timeout(timeout):
        async for event in connection.events():
            events.append(event)
            if count is not None and len(events) == count:
                break
    return events


# ============================================================================
# compute_backoff Tests
# ============================================================================


class TestComputeBackoff:
    """compute_backoff() formula."""

    @pytest.mark.parametrize(
        ("attempt", "expected_ms"),
        [(1, 1000), (2, 2000), (3, 4000), (5, 16000), (20, 300000)],
    )
    def test_default_schedule(self, attempt: int, expected_ms: int) -> None:
        assert compute_backoff(attempt) * 1000 == expected_ms

    def test_capped_at_max_delay(self) -> None:
        assert compute_backoff(9, max_delay=100.0) == 100.0

    def test_huge_attempt_does_not_overflow(self) -> None:
        assert compute_backoff(100_000) == 300.0

    def test_custom_parameters(self) -> None:
        assert compute_backoff(3, initial_delay=0.5, multiplier=3.0, max_delay=60.0) == 4.5

    def test_jitter_bounded(self) -> None:
        for _ in range(50):
            delay = compute_backoff(2, jitter=0.5)
            assert 2.0 <= delay <= 2.5

    def test_attempt_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="attempt must be >= 1"):
            compute_backoff(0)


# ============================================================================
# Handshake Tests
# ============================================================================


class TestHandshake:
    """Connection establishment."""

    async def test_initial_state_is_connecting(self, transport) -> None:
        connection = RelayConnection(URL, transport)
        assert connection.state is ConnectionState.CONNECTING
        assert connection.endpoint.url == URL

    async def test_open_emits_opened(self, transport, eventually) -> None:
        connection = RelayConnection(URL, transport, reconnect_attempts=4)
        connection.open()

        events = await collect(connection, 1)

        assert isinstance(events[0], Opened)
        assert connection.state is ConnectionState.OPEN
        assert connection.reconnect_attempts == 0
        assert connection.opened_at is not None
        await connection.close()

    async def test_open_is_idempotent(self, transport, eventually) -> None:
        connection = RelayConnection(URL, transport)
        connection.open()
        connection.open()
        await eventually(lambda: connection.is_open)
        assert transport.connect_calls == [URL]
        await connection.close()

    async def test_refused_handshake_emits_one_error_and_one_close(self, transport) -> None:
        transport.refuse.add(URL)
        connection = RelayConnection(URL, transport, reconnect_attempts=2)
        connection.open()

        events = await collect(connection)

        assert [type(e) for e in events] == [Errored, Closed]
        assert isinstance(events[0].error, HandshakeError)
        assert events[1].requested is False
        assert connection.state is ConnectionState.CLOSED
        assert connection.opened_at is None
        assert connection.reconnect_attempts == 2
        assert "refused" in connection.last_error

    async def test_handshake_timeout(self, transport) -> None:
        transport.hang.add(URL)
        connection = RelayConnection(URL, transport, config=ConnectionConfig(connect_timeout=0.05))
        connection.open()

        events = await collect(connection)

        assert [type(e) for e in events] == [Errored, Closed]
        assert isinstance(events[0].error, HandshakeError)
        assert connection.state is ConnectionState.CLOSED

    async def test_unexpected_transport_exception(self) -> None:
        class BrokenTransport:
            async def connect(self, url: str, timeout: float):
                raise RuntimeError("boom")

        connection = RelayConnection(URL, BrokenTransport())
        connection.open()

        events = await collect(connection)

        assert [type(e) for e in events] == [Errored, Closed]
        assert isinstance(events[0].error, HandshakeError)
        assert events[1].requested is False
        assert connection.state is ConnectionState.CLOSED
        assert "boom" in connection.last_error

    async def test_close_while_connecting(self, transport) -> None:
        transport.hang.add(URL)
        connection = RelayConnection(URL, transport)
        connection.open()
        await asyncio.sleep(0)

        await connection.close()

        events = await collect(connection)
        assert [type(e) for e in events] == [Closed]
        assert events[0].requested is True
        assert connection.state is ConnectionState.CLOSED


# ============================================================================
# Frame Tests
# ============================================================================


class TestFrames:
    """Inbound frame handling."""

    async def test_frames_surface_in_order(self, transport, eventually) -> None:
        connection = RelayConnection(URL, transport)
        connection.open()
        await eventually(lambda: connection.is_open)
        ws = transport.last(URL)

        ws.feed("NOTICE", "first")
        ws.feed("EOSE", "sub1")

        events = await collect(connection, 3)
        assert isinstance(events[0], Opened)
        assert events[1] == FrameReceived(NoticeMessage("first"))
        assert events[2] == FrameReceived(EoseMessage("sub1"))
        assert connection.messages_received == 2
        await connection.close()

    async def test_malformed_frames_dropped(self, transport, eventually) -> None:
        connection = RelayConnection(URL, transport)
        connection.open()
        await eventually(lambda: connection.is_open)
        ws = transport.last(URL)

        ws.feed_raw("not json")
        ws.feed_raw('{"EOSE": "sub1"}')
        ws.feed_raw('["UNKNOWN", 1]')
        ws.feed_raw('["EVENT", "sub1", {"no": "id"}]')
        ws.feed("EOSE", "sub1")

        events = await collect(connection, 2)
        assert events[1] == FrameReceived(EoseMessage("sub1"))
        assert connection.messages_received == 1
        assert connection.is_open
        await connection.close()

    async def test_deeply_nested_frames_dropped(self, transport, eventually) -> None:
        connection = RelayConnection(URL, transport)
        connection.open()
        await eventually(lambda: connection.is_open)
        ws = transport.last(URL)

        nested: list = []
        for _ in range(600):
            nested = [nested]
        ws.feed_raw("[" * 100_000 + "]" * 100_000)
        ws.feed("EVENT", "sub1", {"id": "ab" * 32, "extra": nested})
        ws.feed("EOSE", "sub1")

        events = await collect(connection, 2)
        assert events[1] == FrameReceived(EoseMessage("sub1"))
        assert connection.messages_received == 1
        assert connection.is_open
        await connection.close()

    async def test_reader_failure_closes_connection(
        self, transport, eventually, monkeypatch
    ) -> None:
        def explode(raw):
            raise RuntimeError("decoder crashed")

        monkeypatch.setattr("relaypool.client.connection.parse_message", explode)
        connection = RelayConnection(URL, transport)
        connection.open()
        await eventually(lambda: connection.is_open)
        ws = transport.last(URL)

        ws.feed("NOTICE", "hello")

        events = await collect(connection)
        assert [type(e) for e in events] == [Opened, Errored, Closed]
        assert events[2].requested is False
        assert connection.state is ConnectionState.CLOSED
        assert connection.last_error == "decoder crashed"
        assert ws.closed


# ============================================================================
# Send Tests
# ============================================================================


class TestSend:
    """Outbound frames."""

    async def test_send_before_open_raises(self, transport) -> None:
        connection = RelayConnection(URL, transport)
        with pytest.raises(NotOpenError) as exc_info:
            connection.send('["CLOSE","x"]')
        assert exc_info.value.relay == URL
        assert exc_info.value.state == "connecting"

    async def test_alias_is_same_class(self) -> None:
        assert SendWhileClosedError is NotOpenError

    async def test_send_after_close_raises(self, transport, eventually) -> None:
        connection = RelayConnection(URL, transport)
        connection.open()
        await eventually(lambda: connection.is_open)
        await connection.close()

        with pytest.raises(NotOpenError):
            connection.send('["CLOSE","x"]')

    async def test_frames_written_in_order(self, transport, eventually) -> None:
        connection = RelayConnection(URL, transport)
        connection.open()
        await eventually(lambda: connection.is_open)

        connection.send('["CLOSE","a"]')
        connection.send('["CLOSE","b"]')

        ws = transport.last(URL)
        await eventually(lambda: len(ws.sent) == 2)
        assert ws.sent == ['["CLOSE","a"]', '["CLOSE","b"]']
        assert connection.messages_sent == 2
        await connection.close()

    async def test_send_failure_closes_connection(self, transport, eventually) -> None:
        connection = RelayConnection(URL, transport)
        connection.open()
        await eventually(lambda: connection.is_open)
        transport.last(URL).fail_send = ConnectionResetError("boom")

        connection.send('["CLOSE","a"]')

        events = await collect(connection)
        assert [type(e) for e in events] == [Opened, Errored, Closed]
        assert events[2].requested is False
        assert connection.last_error == "boom"


# ============================================================================
# Close Tests
# ============================================================================


class TestClose:
    """Graceful and abrupt closing."""

    async def test_graceful_close(self, transport, eventually) -> None:
        connection = RelayConnection(URL, transport)
        connection.open()
        await eventually(lambda: connection.is_open)
        connection.subscriptions.add("sub1")

        await connection.close(1000, "bye")

        events = await collect(connection)
        assert [type(e) for e in events] == [Opened, Closed]
        assert events[1].requested is True
        assert events[1].code == 1000
        assert transport.last(URL).closed
        assert connection.state is ConnectionState.CLOSED
        assert connection.subscriptions == set()
        assert connection.closed_at is not None

    async def test_close_twice(self, transport, eventually) -> None:
        connection = RelayConnection(URL, transport)
        connection.open()
        await eventually(lambda: connection.is_open)

        await connection.close()
        await connection.close()

        events = await collect(connection)
        assert sum(isinstance(e, Closed) for e in events) == 1

    async def test_abrupt_loss(self, transport, eventually) -> None:
        connection = RelayConnection(URL, transport)
        connection.open()
        await eventually(lambda: connection.is_open)

        transport.last(URL).drop(1006, "gone")

        events = await collect(connection)
        assert events[-1] == Closed(1006, "gone", requested=False)
        assert connection.state is ConnectionState.CLOSED
        assert connection.close_requested is False

    async def test_never_reopens(self, transport, eventually) -> None:
        connection = RelayConnection(URL, transport)
        connection.open()
        await eventually(lambda: connection.is_open)
        await connection.close()

        connection.open()

        assert connection.state is ConnectionState.CLOSED
        assert transport.connect_calls == [URL]
