"""
Pytest configuration and shared fixtures for relaypool tests.

Provides:
- An in-memory WebSocket transport (``FakeTransport``) driven by the tests
- Event and relay sample fixtures
- ``eventually`` for waiting on conditions reached by background tasks
"""

import asyncio
import json
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from relaypool.models import Event, RelayEndpoint


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Fake Transport
# ============================================================================


Responder = Callable[["FakeWebSocket", str], None]


class FakeWebSocket:
    """In-memory WebSocket. Tests push inbound frames with ``feed()``."""

    def __init__(self, url: str, responder: Responder | None = None) -> None:
        self.url = url
        self.responder = responder
        self.sent: list[str] = []
        self.closed = False
        self.close_code: int | None = None
        self.close_reason = ""
        self.fail_send: Exception | None = None
        self._inbox: asyncio.Queue[str | None] = asyncio.Queue()

    async def send(self, text: str) -> None:
        if self.fail_send is not None:
            raise self.fail_send
        if self.closed:
            raise ConnectionResetError("socket closed")
        self.sent.append(text)
        if self.responder is not None:
            self.responder(self, text)

    async def recv(self) -> str | None:
        return await self._inbox.get()

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        self.close_code = code
        self.close_reason = reason
        self._inbox.put_nowait(None)

    # -- test helpers --

    def feed(self, *frame: Any) -> None:
        self._inbox.put_nowait(json.dumps(list(frame)))

    def feed_raw(self, raw: str) -> None:
        self._inbox.put_nowait(raw)

    def drop(self, code: int = 1006, reason: str = "") -> None:
        """Simulate an abrupt network loss."""
        self.closed = True
        self.close_code = code
        self.close_reason = reason
        self._inbox.put_nowait(None)

    def frames(self, tag: str | None = None) -> list[list[Any]]:
        decoded = [json.loads(text) for text in self.sent]
        if tag is None:
            return decoded
        return [frame for frame in decoded if frame[0] == tag]


class FakeTransport:
    """Transport whose relays are scripted per URL.

    Attributes:
        refuse: URLs whose handshake fails with ``ConnectionRefusedError``.
        hang: URLs whose handshake never completes.
        responders: Per-URL callbacks invoked for every sent frame.
    """

    def __init__(self) -> None:
        self.sockets: dict[str, list[FakeWebSocket]] = defaultdict(list)
        self.refuse: set[str] = set()
        self.hang: set[str] = set()
        self.responders: dict[str, Responder] = {}
        self.connect_calls: list[str] = []

    async def connect(self, url: str, timeout: float) -> FakeWebSocket:
        self.connect_calls.append(url)
        if url in self.refuse:
            raise ConnectionRefusedError(f"refused: {url}")
        if url in self.hang:
            await asyncio.Event().wait()
        ws = FakeWebSocket(url, self.responders.get(url))
        self.sockets[url].append(ws)
        return ws

    def last(self, url: str) -> FakeWebSocket:
        return self.sockets[url][-1]


def ok_responder(success: bool = True, message: str = "") -> Responder:
    """Answer every ``EVENT`` frame with an ``OK``."""

    def respond(ws: FakeWebSocket, text: str) -> None:
        frame = json.loads(text)
        if frame[0] == "EVENT":
            ws.feed("OK", frame[1]["id"], success, message)

    return respond


def eose_responder(ws: FakeWebSocket, text: str) -> None:
    """Answer every ``REQ`` with an immediate ``EOSE``."""
    frame = json.loads(text)
    if frame[0] == "REQ":
        ws.feed("EOSE", frame[1])


# ============================================================================
# Fixtures
# ============================================================================


RELAY_URLS = (
    "wss://relay-a.example.com",
    "wss://relay-b.example.com",
    "wss://relay-c.example.com",
)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def relay_urls() -> tuple[str, ...]:
    return RELAY_URLS


@pytest.fixture
def relays() -> list[RelayEndpoint]:
    return [RelayEndpoint(url) for url in RELAY_URLS]


@pytest.fixture
def make_ok_responder() -> Callable[..., Responder]:
    return ok_responder


@pytest.fixture
def eose_reply() -> Responder:
    return eose_responder


@pytest.fixture
def make_event() -> Callable[..., Event]:
    """Factory for events with a deterministic id."""

    def _make(n: int | str = 1, **fields: Any) -> Event:
        event_id = n if isinstance(n, str) else f"{n:064x}"
        data = {
            "id": event_id,
            "pubkey": "ab" * 32,
            "created_at": 1_700_000_000,
            "kind": 1,
            "tags": [],
            "content": f"note {n}",
            "sig": "cd" * 64,
        }
        data.update(fields)
        return Event.from_dict(data)

    return _make


@pytest.fixture
def eventually() -> Callable[..., Awaitable[None]]:
    """Wait until ``predicate()`` is true, failing after ``timeout`` seconds."""

    async def _eventually(predicate: Callable[[], Any], timeout: float = 2.0) -> None:
        async with asyncio.timeout(timeout):
            while not predicate():
                await asyncio.sleep(0.005)

    return _eventually
