"""One persistent WebSocket connection to one relay.

[RelayConnection][relaypool.client.connection.RelayConnection] owns the
per-connection state machine:

```text
CONNECTING --> OPEN --> CLOSING --> CLOSED
    |            |                    ^
    |            +--------------------+   abrupt network loss
    +---------------------------------+   failed handshake
```

A connection never reopens once ``CLOSED``. The pool discards it and builds
a fresh instance for the next attempt, carrying only the endpoint and the
reconnect attempt counter forward.

Transport activity is reported as a single ordered stream of tagged events
(``Opened``, ``FrameReceived``, ``Errored``, ``Closed``) consumed through
[events()][relaypool.client.connection.RelayConnection.events]. Exactly one
``Closed`` is emitted per connection, always last.

See Also:
    [compute_backoff()][relaypool.client.connection.compute_backoff]: Delay
        the pool waits before the next attempt.
    [RelayPool][relaypool.client.pool.RelayPool]: Consumes the event stream.
"""

from __future__ import annotations

import asyncio
import contextlib
import random
from collections.abc import AsyncIterator
from dataclasses import dataclass
from time import time
from typing import TYPE_CHECKING, Final, TypeAlias

from relaypool.core.exceptions import HandshakeError, NotOpenError, ProtocolError
from relaypool.core.logger import Logger
from relaypool.models.constants import ConnectionState
from relaypool.models.relay import RelayEndpoint
from relaypool.utils.protocol import RelayMessage, parse_message

from .configs import ConnectionConfig


if TYPE_CHECKING:
    from relaypool.utils.transport import Transport, WebSocket


NORMAL_CLOSURE: Final[int] = 1000


# ---------------------------------------------------------------------------
# Backoff
# ---------------------------------------------------------------------------


def compute_backoff(
    attempt: int,
    initial_delay: float = 1.0,
    multiplier: float = 2.0,
    max_delay: float = 300.0,
    jitter: float = 0.0,
) -> float:
    """Return the reconnection delay in seconds for retry number ``attempt``.

    ``min(initial_delay * multiplier ** (attempt - 1), max_delay)``, plus a
    uniform random ``[0, jitter]`` term when ``jitter`` is positive.

    Examples:
        ```python
        compute_backoff(1)   # 1.0
        compute_backoff(5)   # 16.0
        compute_backoff(20)  # 300.0
        ```

    Raises:
        ValueError: If ``attempt`` is lower than 1.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    try:
        delay = min(initial_delay * multiplier ** (attempt - 1), max_delay)
    except OverflowError:
        delay = max_delay
    if jitter > 0:
        delay += random.uniform(0.0, jitter)  # noqa: S311
    return delay


# ---------------------------------------------------------------------------
# Event stream
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Opened:
    """The handshake completed; the connection is ``OPEN``."""


@dataclass(frozen=True, slots=True)
class FrameReceived:
    """A well-formed relay frame arrived."""

    message: RelayMessage


@dataclass(frozen=True, slots=True)
class Errored:
    """A transport error occurred. Always followed by ``Closed``."""

    error: Exception


@dataclass(frozen=True, slots=True)
class Closed:
    """The connection reached ``CLOSED``.

    Attributes:
        code: WebSocket close code, or ``None`` if no close frame was seen.
        reason: Close reason or error description.
        requested: True if [close()][relaypool.client.connection.RelayConnection.close]
            caused it; such closes are never followed by a reconnect.
    """

    code: int | None
    reason: str
    requested: bool


ConnectionEvent: TypeAlias = Opened | FrameReceived | Errored | Closed

_END_OF_STREAM: Final = object()


# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------


class RelayConnection:
    """Single connection attempt to one relay.

    Args:
        endpoint: Relay to connect to.
        transport: Factory for the underlying WebSocket.
        config: Timeouts for handshake and close.
        reconnect_attempts: Counter carried over from the previous
            connection to the same relay; reset to 0 on ``OPEN``.

    Attributes:
        subscriptions: Subscription ids this connection believes are live on
            the wire. Maintained by the pool; cleared on close.
    """

    def __init__(
        self,
        endpoint: RelayEndpoint | str,
        transport: Transport,
        *,
        config: ConnectionConfig | None = None,
        reconnect_attempts: int = 0,
    ) -> None:
        self.endpoint = RelayEndpoint.coerce(endpoint)
        self._transport = transport
        self._config = config or ConnectionConfig()
        self._logger = Logger("relaypool.connection")

        self.state = ConnectionState.CONNECTING
        self.reconnect_attempts = reconnect_attempts
        self.last_error: str | None = None
        self.subscriptions: set[str] = set()
        self.messages_sent = 0
        self.messages_received = 0
        self.opened_at: float | None = None
        self.closed_at: float | None = None

        self._events: asyncio.Queue[object] = asyncio.Queue()
        self._outgoing: asyncio.Queue[str] = asyncio.Queue()
        self._ws: WebSocket | None = None
        self._task: asyncio.Task[None] | None = None
        self._writer: asyncio.Task[None] | None = None
        self._close_requested = False
        self._closed = asyncio.Event()

    def __repr__(self) -> str:
        return f"RelayConnection({self.endpoint.url!r}, state={self.state.value})"

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    @property
    def close_requested(self) -> bool:
        return self._close_requested

    # -- Public API ---------------------------------------------------------

    def open(self) -> None:
        """Start the handshake in the background and return immediately.

        Calling it again, or after ``close()``, has no effect.
        """
        if self._task is not None or self.state is not ConnectionState.CONNECTING:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"relay-reader:{self.endpoint.url}"
        )

    def send(self, frame: str) -> None:
        """Queue a text frame for transmission.

        Frames are written in call order by a background writer.

        Raises:
            NotOpenError: If the connection is not ``OPEN``.
        """
        if self.state is not ConnectionState.OPEN:
            raise NotOpenError(self.endpoint.url, self.state.value)
        self._outgoing.put_nowait(frame)

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        """Close gracefully: ``CLOSING`` then ``CLOSED``.

        The resulting ``Closed`` event has ``requested=True``. Safe to call
        in any state and more than once.
        """
        if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            await self._closed.wait()
            return

        self._close_requested = True
        self._set_state(ConnectionState.CLOSING)

        ws = self._ws
        if ws is not None:
            with contextlib.suppress(Exception):
                await asyncio.wait_for(ws.close(code, reason), timeout=self._config.close_timeout)

        task = self._task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._finish(code, reason)

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def events(self) -> AsyncIterator[ConnectionEvent]:
        """Yield connection events in order until (and including) ``Closed``."""
        while True:
            event = await self._events.get()
            if event is _END_OF_STREAM:
                return
            yield event  # type: ignore[misc]

    # -- Internals ----------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if state is self.state:
            return
        self._logger.debug(
            "state_changed", relay=self.endpoint.url, old=self.state.value, new=state.value
        )
        self.state = state

    def _emit(self, event: ConnectionEvent) -> None:
        self._events.put_nowait(event)

    async def _run(self) -> None:
        try:
            async with asyncio.timeout(self._config.connect_timeout):
                ws = await self._transport.connect(self.endpoint.url, self._config.connect_timeout)
        except Exception as e:  # transport error boundary
            reason = str(e) or type(e).__name__
            error = HandshakeError(f"{self.endpoint.url}: {reason}")
            self.last_error = str(error)
            self._logger.debug("handshake_failed", relay=self.endpoint.url, error=reason)
            self._emit(Errored(error))
            self._finish(None, reason)
            return

        self._ws = ws
        self.reconnect_attempts = 0
        self.opened_at = time()
        self._set_state(ConnectionState.OPEN)
        self._emit(Opened())
        self._writer = asyncio.get_running_loop().create_task(
            self._write_loop(ws), name=f"relay-writer:{self.endpoint.url}"
        )
        try:
            await self._read_loop(ws)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # frame handling boundary
            self._logger.error("reader_failed", relay=self.endpoint.url, error=repr(e))
            self._lose(e)
            with contextlib.suppress(Exception):
                await ws.close()
            self._finish(None, str(e) or type(e).__name__)

    async def _read_loop(self, ws: WebSocket) -> None:
        while True:
            try:
                raw = await ws.recv()
            except asyncio.CancelledError:
                raise
            except Exception as e:  # transport error boundary
                self._lose(e)
                with contextlib.suppress(Exception):
                    await ws.close()
                self._finish(None, str(e))
                return

            if raw is None:
                break

            try:
                message = parse_message(raw)
            except ProtocolError as e:
                self._logger.debug(
                    "frame_dropped", relay=self.endpoint.url, error=str(e), frame=raw[:200]
                )
                continue

            self.messages_received += 1
            self._emit(FrameReceived(message))

        self._finish(ws.close_code, ws.close_reason)

    async def _write_loop(self, ws: WebSocket) -> None:
        while True:
            frame = await self._outgoing.get()
            try:
                await ws.send(frame)
            except asyncio.CancelledError:
                raise
            except Exception as e:  # transport error boundary
                self._lose(e)
                # Closing unblocks the reader, which finishes the connection.
                with contextlib.suppress(Exception):
                    await ws.close()
                return
            self.messages_sent += 1

    def _lose(self, error: Exception) -> None:
        if self.state is ConnectionState.CLOSED or self._close_requested:
            return
        self.last_error = str(error) or type(error).__name__
        self._logger.debug("transport_error", relay=self.endpoint.url, error=self.last_error)
        self._emit(Errored(error))

    def _finish(self, code: int | None, reason: str) -> None:
        if self.state is ConnectionState.CLOSED:
            return
        writer = self._writer
        if writer is not None and writer is not asyncio.current_task():
            writer.cancel()
        self._ws = None
        self.closed_at = time()
        self.subscriptions.clear()
        self._set_state(ConnectionState.CLOSED)
        self._emit(Closed(code, reason, self._close_requested))
        self._events.put_nowait(_END_OF_STREAM)
        self._closed.set()
