"""WebSocket transport primitives for relay connections.

A transport opens one duplex text channel to a relay URL. The connection
layer only depends on the small [Transport][relaypool.utils.transport.Transport]
and [WebSocket][relaypool.utils.transport.WebSocket] protocols, so tests can
substitute an in-memory implementation and production code uses
[AiohttpTransport][relaypool.utils.transport.AiohttpTransport].

Note:
    Transports report failures as ``OSError`` (connection refused, DNS,
    TLS, timeout). [RelayConnection][relaypool.client.connection.RelayConnection]
    translates them into
    [HandshakeError][relaypool.core.exceptions.HandshakeError]. The utils
    layer has no imports from ``relaypool.core`` or ``relaypool.client``.

Examples:
    ```python
    transport = AiohttpTransport(heartbeat=30.0)
    ws = await transport.connect("wss://relay.damus.io", timeout=10.0)
    await ws.send('["REQ","sub",{"kinds":[1],"limit":1}]')
    frame = await ws.recv()
    await ws.close()
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import ssl
from typing import Final, Protocol

import aiohttp


DEFAULT_TIMEOUT: Final[float] = 10.0
_WS_CLOSE_TIMEOUT: Final[float] = 5.0
_MAX_MESSAGE_SIZE: Final[int] = 4 * 1024 * 1024


logger = logging.getLogger("utils.transport")


class WebSocket(Protocol):
    """One open duplex text channel."""

    close_code: int | None
    close_reason: str

    async def send(self, text: str) -> None: ...

    async def recv(self) -> str | None:
        """Return the next text frame, or ``None`` once the channel closed."""
        ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class Transport(Protocol):
    """Factory of [WebSocket][relaypool.utils.transport.WebSocket] channels."""

    async def connect(self, url: str, timeout: float) -> WebSocket:  # noqa: ASYNC109
        """Open a channel to ``url``.

        Raises:
            OSError: On any handshake failure, including timeouts.
        """
        ...


class AiohttpWebSocket:
    """[WebSocket][relaypool.utils.transport.WebSocket] backed by aiohttp.

    Owns its ``ClientSession`` and closes it together with the socket.
    """

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        session: aiohttp.ClientSession,
        close_timeout: float = _WS_CLOSE_TIMEOUT,
    ) -> None:
        self._ws = ws
        self._session = session
        self._close_timeout = close_timeout
        self.close_code: int | None = None
        self.close_reason: str = ""

    async def send(self, text: str) -> None:
        await self._ws.send_str(text)

    async def recv(self) -> str | None:
        msg = await self._ws.receive()

        if msg.type == aiohttp.WSMsgType.TEXT:
            return str(msg.data)
        if msg.type == aiohttp.WSMsgType.BINARY:
            try:
                return bytes(msg.data).decode("utf-8")
            except UnicodeDecodeError:
                logger.debug("ws_binary_not_utf8 size=%d", len(msg.data))
                return ""

        # CLOSE, CLOSING, CLOSED, ERROR -> channel terminated
        if msg.type == aiohttp.WSMsgType.ERROR:
            self.close_reason = str(self._ws.exception() or msg.data or "")
        elif isinstance(msg.extra, str):
            self.close_reason = msg.extra
        self.close_code = self._ws.close_code
        await self._release()
        return None

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the socket and its session with timeouts to prevent hanging."""
        # aiohttp can raise ClientError, ServerDisconnectedError, etc. during
        # close; teardown must not propagate them.
        with contextlib.suppress(Exception):
            await asyncio.wait_for(
                self._ws.close(code=code, message=reason.encode()),
                timeout=self._close_timeout,
            )
        if self.close_code is None:
            self.close_code = code
            self.close_reason = reason
        await self._release()

    async def _release(self) -> None:
        with contextlib.suppress(Exception):
            await asyncio.wait_for(self._session.close(), timeout=self._close_timeout)


class AiohttpTransport:
    """Production transport built on ``aiohttp.ClientSession.ws_connect``.

    Args:
        heartbeat: Seconds between WebSocket pings (``None`` disables them).
        verify_ssl: Verify TLS certificates of ``wss://`` relays.
        max_message_size: Largest accepted inbound frame in bytes.
    """

    def __init__(
        self,
        *,
        heartbeat: float | None = 30.0,
        verify_ssl: bool = True,
        max_message_size: int = _MAX_MESSAGE_SIZE,
    ) -> None:
        self._heartbeat = heartbeat
        self._verify_ssl = verify_ssl
        self._max_message_size = max_message_size

    def _ssl_context(self) -> ssl.SSLContext | bool:
        if self._verify_ssl:
            return True
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        return ctx

    async def connect(self, url: str, timeout: float = DEFAULT_TIMEOUT) -> AiohttpWebSocket:  # noqa: ASYNC109
        connector = aiohttp.TCPConnector(ssl=self._ssl_context())
        session = aiohttp.ClientSession(connector=connector)

        try:
            ws = await asyncio.wait_for(
                session.ws_connect(
                    url,
                    heartbeat=self._heartbeat,
                    max_msg_size=self._max_message_size,
                ),
                timeout=timeout,
            )
        except aiohttp.ClientError as e:
            await session.close()
            logger.debug("ws_connect_failed url=%s error=%s", url, str(e))
            raise OSError(f"Connection failed: {e}") from e
        except TimeoutError:
            await session.close()
            logger.debug("ws_connect_timeout url=%s", url)
            raise OSError(f"Connection timeout: {url}") from None
        except asyncio.CancelledError:
            await session.close()
            raise
        except (ssl.SSLError, OSError) as e:
            await session.close()
            logger.debug("ws_connect_error url=%s error=%s", url, str(e))
            raise OSError(f"Connection failed: {e}") from e

        logger.debug("ws_connected url=%s", url)
        return AiohttpWebSocket(ws, session)
