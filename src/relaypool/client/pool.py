"""Relay pool facade.

[RelayPool][relaypool.client.pool.RelayPool] owns one
[RelayConnection][relaypool.client.connection.RelayConnection] per relay and
wires every connection to the pool-wide collaborators:

```text
                      RelayPool
        +-----------+------+------+-------------+
        |           |             |             |
 SubscriptionRegistry  Deduplicator  PublishCoordinator  OfflineQueue
        ^                                 ^
        |  replay on OPEN                 |  OK replies
   RelayConnection (one consumer task per connection)
```

All mutation happens on the event loop, in the consumer task of each
connection or in the caller of a public method, so registry, deduplicator
and queue updates never interleave mid-operation. Reconnects are scheduled
with ``loop.call_later`` and never block other relays.

Examples:
    ```python
    async with RelayPool.from_yaml("config/relays.yaml") as pool:
        pool.on_event(lambda event, sub_id, relay: print(event.id, relay))
        sub_id = pool.subscribe([{"kinds": [1], "limit": 20}])
        result = await pool.publish(signed_event)
        print(result.success, result.accepted_by)
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from uuid import uuid4

from relaypool.core.exceptions import NotOpenError
from relaypool.core.logger import Logger
from relaypool.core.metrics import (
    PUBLISH_DURATION_SECONDS,
    PUBLISH_OUTCOMES,
    QUEUE_SIZE,
    RECEIVED_EVENTS,
    RECONNECTS,
    RELAY_CONNECTIONS,
    MetricsServer,
)
from relaypool.core.yaml import load_yaml
from relaypool.models.constants import ConnectionState
from relaypool.models.event import Event
from relaypool.models.filter import Filter
from relaypool.models.publish import FlushResult, OutboundEventRecord, PublishResult
from relaypool.models.relay import RelayEndpoint
from relaypool.models.stats import ConnectionSummary, RelayStats
from relaypool.utils.protocol import (
    AuthMessage,
    ClosedMessage,
    EoseMessage,
    EventMessage,
    NoticeMessage,
    OkMessage,
    RelayMessage,
    encode_close,
    encode_req,
)
from relaypool.utils.transport import AiohttpTransport, Transport

from .configs import RelayPoolConfig
from .connection import Closed, Errored, FrameReceived, Opened, RelayConnection, compute_backoff
from .dedup import Deduplicator
from .publisher import PublishCoordinator
from .queue import OfflineQueue
from .registry import SubscriptionRegistry, replay_subscriptions


EventCallback = Callable[[Event, str, RelayEndpoint], None]
EoseCallback = Callable[[str, RelayEndpoint], None]
StateCallback = Callable[[RelayEndpoint, ConnectionState], None]
PublishFailedCallback = Callable[[OutboundEventRecord], None]
SubscriptionClosedCallback = Callable[[str, RelayEndpoint, str], None]

FilterLike = Filter | Mapping[str, Any]


@dataclass(slots=True)
class _RelaySlot:
    """Pool-side state of one relay, surviving individual connections."""

    endpoint: RelayEndpoint
    connection: RelayConnection | None = None
    consumer: asyncio.Task[None] | None = None
    attempts: int = 0
    reconnect_handle: asyncio.TimerHandle | None = None
    next_reconnect_at: float | None = None
    gave_up: bool = False
    last_error: str | None = None
    last_connected_at: float | None = None
    last_disconnected_at: float | None = None
    sent_before: int = 0
    received_before: int = 0
    auth_challenge: str | None = None

    @property
    def state(self) -> ConnectionState:
        if self.connection is None:
            return ConnectionState.CLOSED
        return self.connection.state

    def cancel_reconnect(self) -> None:
        if self.reconnect_handle is not None:
            self.reconnect_handle.cancel()
        self.reconnect_handle = None
        self.next_reconnect_at = None


class RelayPool:
    """Application-facing API over a set of relays.

    Args:
        config: Pool configuration; defaults are used when omitted.
        registry: Subscription registry to use (a fresh one by default).
        deduplicator: Delivered-id filter to use.
        publisher: Publish coordinator to use.
        queue: Offline queue to use.
        transport: WebSocket transport; aiohttp by default.

    Note:
        Collaborators are explicit constructor dependencies so several pools
        can coexist in one process (and in tests) without sharing state.
    """

    def __init__(
        self,
        config: RelayPoolConfig | None = None,
        *,
        registry: SubscriptionRegistry | None = None,
        deduplicator: Deduplicator | None = None,
        publisher: PublishCoordinator | None = None,
        queue: OfflineQueue | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config or RelayPoolConfig()
        self.name = self._config.name

        self.registry = registry or SubscriptionRegistry()
        self.deduplicator = deduplicator or Deduplicator(
            max_size=self._config.dedup.max_size, max_age=self._config.dedup.max_age
        )
        self.queue = queue or OfflineQueue(
            capacity=self._config.queue.capacity,
            max_retries=self._config.queue.max_retries,
            max_age=self._config.queue.max_age,
        )
        self.publisher = publisher or PublishCoordinator(
            timeout=self._config.publish.timeout, queue=self.queue
        )
        self._transport: Transport = transport or AiohttpTransport(
            heartbeat=self._config.connection.heartbeat,
            verify_ssl=self._config.connection.verify_ssl,
        )

        self._downstream_drop = self.queue.on_drop
        self.queue.on_drop = self._handle_dropped_record

        self._slots: dict[RelayEndpoint, _RelaySlot] = {}
        self._event_callbacks: list[EventCallback] = []
        self._eose_callbacks: list[EoseCallback] = []
        self._state_callbacks: list[StateCallback] = []
        self._publish_failed_callbacks: list[PublishFailedCallback] = []
        self._subscription_closed_callbacks: list[SubscriptionClosedCallback] = []
        # Relays whose Opened event the pool has handled and whose Closed it has not.
        self._open_relays: set[RelayEndpoint] = set()
        self._flush_task: asyncio.Task[FlushResult] | None = None
        self._opened = asyncio.Event()
        self._metrics_server: MetricsServer | None = None
        self._closed = False
        self._logger = Logger("relaypool.pool")

    def __repr__(self) -> str:
        return f"RelayPool(name={self.name!r}, relays={len(self._slots)})"

    # -- Construction -------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> RelayPool:
        """Build a pool from a configuration mapping.

        Raises:
            pydantic.ValidationError: If the configuration is invalid.
        """
        return cls(RelayPoolConfig.model_validate(data), **kwargs)

    @classmethod
    def from_yaml(cls, config_path: str | Path, **kwargs: Any) -> RelayPool:
        """Build a pool from a YAML configuration file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the file is not a YAML mapping.
            pydantic.ValidationError: If the configuration is invalid.
        """
        return cls.from_dict(load_yaml(config_path), **kwargs)

    @property
    def config(self) -> RelayPoolConfig:
        return self._config

    # -- Lifecycle ----------------------------------------------------------

    async def start(self) -> None:
        """Connect to the configured relays and start the metrics endpoint."""
        if self._config.metrics.enabled and self._metrics_server is None:
            self._metrics_server = MetricsServer(self._config.metrics)
            await self._metrics_server.start()
        for endpoint in self._config.endpoints():
            await self.add_relay(endpoint)

    async def close(self) -> None:
        """Close every connection gracefully and stop reconnecting.

        The pool cannot be reused afterwards.
        """
        if self._closed:
            return
        self._closed = True

        slots = list(self._slots.values())
        self._slots.clear()
        for slot in slots:
            slot.cancel_reconnect()

        await asyncio.gather(
            *(slot.connection.close() for slot in slots if slot.connection is not None)
        )
        await asyncio.gather(
            *(slot.consumer for slot in slots if slot.consumer is not None),
            return_exceptions=True,
        )

        if self._flush_task is not None and not self._flush_task.done():
            self._flush_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._flush_task

        if self._metrics_server is not None:
            await self._metrics_server.stop()
            self._metrics_server = None

        self._update_connection_metrics()
        self._logger.info("pool_closed", pool=self.name, relays=len(slots))

    async def __aenter__(self) -> RelayPool:
        await self.start()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    # -- Relays -------------------------------------------------------------

    @property
    def relays(self) -> list[RelayEndpoint]:
        return list(self._slots)

    async def add_relay(self, endpoint: RelayEndpoint | str) -> RelayEndpoint:
        """Start connecting to ``endpoint``. Adding a known relay is a no-op.

        Raises:
            ValueError: If the URL is not a valid relay address.
            RuntimeError: If the pool is closed.
        """
        relay = RelayEndpoint.coerce(endpoint)
        if self._closed:
            raise RuntimeError(f"Pool {self.name!r} is closed")
        if relay in self._slots:
            return relay

        slot = _RelaySlot(relay)
        self._slots[relay] = slot
        self._logger.info("relay_added", pool=self.name, relay=relay.url)
        self._connect(slot)
        return relay

    async def remove_relay(self, endpoint: RelayEndpoint | str) -> bool:
        """Close ``endpoint`` without reconnecting and forget its state.

        Returns:
            False if the relay was not part of the pool.
        """
        relay = RelayEndpoint.coerce(endpoint)
        slot = self._slots.pop(relay, None)
        if slot is None:
            return False

        slot.cancel_reconnect()
        if slot.connection is not None:
            await slot.connection.close()
        if slot.consumer is not None:
            await asyncio.gather(slot.consumer, return_exceptions=True)
        self.registry.forget_relay(relay)
        self._update_connection_metrics()
        self._logger.info("relay_removed", pool=self.name, relay=relay.url)
        return True

    async def retry_relay(self, endpoint: RelayEndpoint | str) -> bool:
        """Reset backoff for ``endpoint`` and reconnect now.

        Returns:
            False if the relay is unknown or not closed.
        """
        slot = self._slots.get(RelayEndpoint.coerce(endpoint))
        if slot is None or self._closed:
            return False
        if slot.state is not ConnectionState.CLOSED:
            return False
        slot.cancel_reconnect()
        slot.attempts = 0
        slot.gave_up = False
        self._connect(slot)
        return True

    async def reset_connections(self) -> None:
        """Drop every connection and reconnect all relays with fresh backoff.

        Useful after the host's network changed. Relays that had given up
        are retried too.
        """
        if self._closed:
            return
        slots = list(self._slots.values())
        for slot in slots:
            slot.cancel_reconnect()
            slot.attempts = 0
            slot.gave_up = False

        await asyncio.gather(
            *(slot.connection.close() for slot in slots if slot.connection is not None)
        )
        await asyncio.gather(
            *(slot.consumer for slot in slots if slot.consumer is not None),
            return_exceptions=True,
        )

        for slot in slots:
            if self._closed or self._slots.get(slot.endpoint) is not slot:
                continue
            if slot.connection is not None:
                continue
            self._connect(slot)
        self._logger.info("connections_reset", pool=self.name, relays=len(slots))

    # -- Subscriptions ------------------------------------------------------

    def subscribe(
        self,
        filters: FilterLike | Iterable[FilterLike],
        subscription_id: str | None = None,
    ) -> str:
        """Register a subscription and send it to every open relay.

        Relays that open later receive it through replay.

        Returns:
            The subscription id (a fresh ``uuid4`` hex string by default).

        Raises:
            ValueError: If the id is already active or a filter is invalid.
        """
        if isinstance(filters, Filter | Mapping):
            filters = [filters]
        sub_id = subscription_id or uuid4().hex
        subscription = self.registry.add(sub_id, [Filter.coerce(f) for f in filters])
        frame = encode_req(sub_id, subscription.filters)

        sent = 0
        for slot in self._slots.values():
            connection = slot.connection
            if connection is None or sub_id in connection.subscriptions:
                continue
            try:
                connection.send(frame)
            except NotOpenError:
                continue
            connection.subscriptions.add(sub_id)
            sent += 1

        self._logger.debug("subscribed", pool=self.name, subscription=sub_id, relays=sent)
        return sub_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Close a subscription on every relay carrying it.

        Returns:
            False if the id was unknown (a no-op, not an error).
        """
        if self.registry.remove(subscription_id) is None:
            return False

        frame = encode_close(subscription_id)
        for slot in self._slots.values():
            connection = slot.connection
            if connection is None or subscription_id not in connection.subscriptions:
                continue
            connection.subscriptions.discard(subscription_id)
            with contextlib.suppress(NotOpenError):
                connection.send(frame)

        self._logger.debug("unsubscribed", pool=self.name, subscription=subscription_id)
        return True

    def is_subscribed(self, subscription_id: str) -> bool:
        return self.registry.is_active(subscription_id)

    def eose_relays(self, subscription_id: str) -> frozenset[RelayEndpoint]:
        return self.registry.eose_relays(subscription_id)

    # -- Publishing ---------------------------------------------------------

    async def publish(
        self,
        event: Event | Mapping[str, Any],
        targets: Iterable[RelayEndpoint | str] | None = None,
    ) -> PublishResult:
        """Publish a signed event and wait for relay acknowledgements.

        Args:
            event: The signed event.
            targets: Relays to publish to; defaults to every open relay.

        Returns:
            The aggregated result. When no relay accepted the event it has
            been queued for a later flush (``result.queued``).
        """
        event = Event.coerce(event)
        started = time.perf_counter()
        result = await self.publisher.publish(event, self._connections(), targets)
        PUBLISH_DURATION_SECONDS.labels(pool=self.name).observe(time.perf_counter() - started)
        self._record_publish(result)
        if result.queued:
            self._logger.warning("publish_queued", pool=self.name, event_id=event.id)
        return result

    async def flush_queue(self) -> FlushResult:
        """Retry every event in the offline queue once."""

        async def publish_record(record: OutboundEventRecord) -> bool:
            result = await self.publisher.publish(
                record.event,
                self._connections(),
                record.targets or None,
                enqueue_on_failure=False,
            )
            self._record_publish(result)
            return result.success

        result = await self.queue.flush(publish_record)
        QUEUE_SIZE.labels(pool=self.name).set(len(self.queue))
        return result

    # -- Callbacks ----------------------------------------------------------

    def on_event(self, callback: EventCallback) -> Callable[[], None]:
        """Register ``callback(event, subscription_id, relay)``.

        Called once per distinct event id. Returns a function that removes
        the callback again.
        """
        return self._register(self._event_callbacks, callback)

    def on_eose(self, callback: EoseCallback) -> Callable[[], None]:
        """Register ``callback(subscription_id, relay)`` for backlog completion.

        Fires at most once per subscription, for the first relay to answer.
        """
        return self._register(self._eose_callbacks, callback)

    def on_state_change(self, callback: StateCallback) -> Callable[[], None]:
        return self._register(self._state_callbacks, callback)

    def on_publish_failed(self, callback: PublishFailedCallback) -> Callable[[], None]:
        """Register ``callback(record)`` for events given up on by the queue."""
        return self._register(self._publish_failed_callbacks, callback)

    def on_subscription_closed(self, callback: SubscriptionClosedCallback) -> Callable[[], None]:
        """Register ``callback(subscription_id, relay, reason)``.

        Called when a relay ends an active subscription with ``CLOSED``. The
        subscription stays registered and is replayed to that relay after
        its next reconnect.
        """
        return self._register(self._subscription_closed_callbacks, callback)

    @staticmethod
    def _register(callbacks: list[Any], callback: Any) -> Callable[[], None]:
        callbacks.append(callback)

        def remove() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return remove

    def _dispatch(self, callbacks: list[Any], *args: Any) -> None:
        for callback in list(callbacks):
            try:
                callback(*args)
            except Exception:  # application callback boundary
                self._logger.exception("callback_failed", pool=self.name)

    # -- Status -------------------------------------------------------------

    def get_status(self) -> dict[RelayEndpoint, ConnectionState]:
        """Snapshot of every relay's connection state."""
        return {endpoint: slot.state for endpoint, slot in self._slots.items()}

    def get_relay_stats(self) -> dict[RelayEndpoint, RelayStats]:
        stats = {}
        for endpoint, slot in self._slots.items():
            connection = slot.connection
            sent = slot.sent_before + (connection.messages_sent if connection else 0)
            received = slot.received_before + (connection.messages_received if connection else 0)
            stats[endpoint] = RelayStats(
                endpoint=endpoint,
                state=slot.state,
                reconnect_attempts=slot.attempts,
                last_error=slot.last_error,
                last_connected_at=slot.last_connected_at,
                last_disconnected_at=slot.last_disconnected_at,
                next_reconnect_at=slot.next_reconnect_at,
                messages_sent=sent,
                messages_received=received,
                auth_challenge=slot.auth_challenge,
            )
        return stats

    def get_summary(self) -> ConnectionSummary:
        counts = dict.fromkeys(ConnectionState, 0)
        for slot in self._slots.values():
            counts[slot.state] += 1
        return ConnectionSummary(
            connecting=counts[ConnectionState.CONNECTING],
            open=counts[ConnectionState.OPEN],
            closing=counts[ConnectionState.CLOSING],
            closed=counts[ConnectionState.CLOSED],
        )

    def connected_relays(self) -> list[RelayEndpoint]:
        return [ep for ep, slot in self._slots.items() if slot.state is ConnectionState.OPEN]

    @property
    def is_connected(self) -> bool:
        return any(slot.state is ConnectionState.OPEN for slot in self._slots.values())

    @property
    def is_reconnecting(self) -> bool:
        """True while any relay is waiting out a backoff delay."""
        return any(slot.reconnect_handle is not None for slot in self._slots.values())

    async def wait_connected(self, timeout: float = 10.0) -> bool:  # noqa: ASYNC109
        """Wait until at least one relay is open.

        Returns:
            False if no relay opened within ``timeout`` seconds.
        """
        try:
            async with asyncio.timeout(timeout):
                while not self.is_connected:
                    self._opened.clear()
                    await self._opened.wait()
        except TimeoutError:
            return False
        return True

    # -- Connection handling ------------------------------------------------

    def _connections(self) -> dict[RelayEndpoint, RelayConnection]:
        return {ep: slot.connection for ep, slot in self._slots.items() if slot.connection}

    def _connect(self, slot: _RelaySlot) -> None:
        slot.reconnect_handle = None
        slot.next_reconnect_at = None
        connection = RelayConnection(
            slot.endpoint,
            self._transport,
            config=self._config.connection,
            reconnect_attempts=slot.attempts,
        )
        slot.connection = connection
        slot.consumer = asyncio.get_running_loop().create_task(
            self._consume(slot, connection), name=f"relay-consumer:{slot.endpoint.url}"
        )
        self._state_changed(slot.endpoint, ConnectionState.CONNECTING)
        connection.open()

    async def _consume(self, slot: _RelaySlot, connection: RelayConnection) -> None:
        async for event in connection.events():
            match event:
                case Opened():
                    self._handle_opened(slot, connection)
                case FrameReceived(message=message):
                    self._handle_message(slot, connection, message)
                case Errored(error=error):
                    slot.last_error = str(error)
                    self._logger.warning(
                        "relay_error", pool=self.name, relay=slot.endpoint.url, error=str(error)
                    )
                case Closed():
                    self._handle_closed(slot, connection, event)

    def _handle_opened(self, slot: _RelaySlot, connection: RelayConnection) -> None:
        was_disconnected = not self._open_relays
        self._open_relays.add(slot.endpoint)
        slot.attempts = 0
        slot.gave_up = False
        slot.last_connected_at = time.time()
        self._logger.info("relay_opened", pool=self.name, relay=slot.endpoint.url)
        self._state_changed(slot.endpoint, ConnectionState.OPEN)
        self._opened.set()

        for sub_id, frame in replay_subscriptions(connection, self.registry):
            try:
                connection.send(frame)
            except NotOpenError:
                break
            connection.subscriptions.add(sub_id)

        if was_disconnected and len(self.queue) and self._config.queue.flush_on_connect:
            self._schedule_flush()

    def _handle_message(
        self, slot: _RelaySlot, connection: RelayConnection, message: RelayMessage
    ) -> None:
        relay = slot.endpoint
        match message:
            case EventMessage(subscription_id=sub_id, event=event):
                if not self.registry.is_active(sub_id):
                    self._logger.debug(
                        "event_for_inactive_subscription", relay=relay.url, subscription=sub_id
                    )
                    return
                if not self.deduplicator.should_deliver(event.id, relay):
                    RECEIVED_EVENTS.labels(pool=self.name, outcome="duplicate").inc()
                    return
                RECEIVED_EVENTS.labels(pool=self.name, outcome="delivered").inc()
                self._dispatch(self._event_callbacks, event, sub_id, relay)

            case OkMessage():
                self.publisher.handle_ok(relay, message)

            case EoseMessage(subscription_id=sub_id):
                if self.registry.mark_eose(sub_id, relay):
                    self._logger.debug("backlog_complete", subscription=sub_id, relay=relay.url)
                    self._dispatch(self._eose_callbacks, sub_id, relay)

            case ClosedMessage(subscription_id=sub_id, reason=reason):
                connection.subscriptions.discard(sub_id)
                self._logger.warning(
                    "subscription_closed_by_relay",
                    relay=relay.url,
                    subscription=sub_id,
                    reason=reason,
                )
                if self.registry.is_active(sub_id):
                    self._dispatch(self._subscription_closed_callbacks, sub_id, relay, reason)

            case NoticeMessage(message=text):
                self._logger.info("relay_notice", relay=relay.url, notice=text)

            case AuthMessage(challenge=challenge):
                slot.auth_challenge = challenge
                self._logger.debug("relay_auth_challenge", relay=relay.url)

    def _handle_closed(self, slot: _RelaySlot, connection: RelayConnection, event: Closed) -> None:
        relay = slot.endpoint
        slot.sent_before += connection.messages_sent
        slot.received_before += connection.messages_received
        slot.last_disconnected_at = time.time()
        if slot.connection is connection:
            slot.connection = None
            self._open_relays.discard(relay)
        if connection.last_error:
            slot.last_error = connection.last_error

        self.publisher.relay_lost(relay)
        self.registry.forget_relay(relay)
        self._logger.info(
            "relay_closed",
            pool=self.name,
            relay=relay.url,
            code=event.code,
            reason=event.reason,
            requested=event.requested,
        )
        self._state_changed(relay, ConnectionState.CLOSED)

        if event.requested or self._closed or self._slots.get(relay) is not slot:
            return
        self._schedule_reconnect(slot)

    def _schedule_reconnect(self, slot: _RelaySlot) -> None:
        backoff = self._config.backoff
        slot.attempts += 1
        if backoff.max_attempts and slot.attempts > backoff.max_attempts:
            slot.gave_up = True
            self._logger.warning(
                "relay_gave_up", pool=self.name, relay=slot.endpoint.url, attempts=slot.attempts - 1
            )
            return

        delay = compute_backoff(
            slot.attempts,
            initial_delay=backoff.initial_delay,
            multiplier=backoff.multiplier,
            max_delay=backoff.max_delay,
            jitter=backoff.jitter,
        )
        slot.next_reconnect_at = time.time() + delay
        slot.reconnect_handle = asyncio.get_running_loop().call_later(
            delay, self._reconnect, slot
        )
        RECONNECTS.labels(pool=self.name).inc()
        self._logger.info(
            "reconnect_scheduled",
            pool=self.name,
            relay=slot.endpoint.url,
            attempt=slot.attempts,
            delay=round(delay, 3),
        )

    def _reconnect(self, slot: _RelaySlot) -> None:
        slot.reconnect_handle = None
        slot.next_reconnect_at = None
        if self._closed or self._slots.get(slot.endpoint) is not slot:
            return
        self._connect(slot)

    def _schedule_flush(self) -> None:
        if self._flush_task is not None and not self._flush_task.done():
            return
        self._flush_task = asyncio.get_running_loop().create_task(
            self.flush_queue(), name=f"relaypool-flush:{self.name}"
        )

    def _state_changed(self, relay: RelayEndpoint, state: ConnectionState) -> None:
        self._update_connection_metrics()
        self._dispatch(self._state_callbacks, relay, state)

    # -- Metrics ------------------------------------------------------------

    def _update_connection_metrics(self) -> None:
        summary = self.get_summary()
        for state in ConnectionState:
            RELAY_CONNECTIONS.labels(pool=self.name, state=state.value).set(
                getattr(summary, state.value)
            )

    def _record_publish(self, result: PublishResult) -> None:
        outcomes = PUBLISH_OUTCOMES
        outcomes.labels(pool=self.name, outcome="accepted").inc(len(result.accepted_by))
        outcomes.labels(pool=self.name, outcome="rejected").inc(len(result.rejected_by))
        outcomes.labels(pool=self.name, outcome="unreachable").inc(len(result.unreachable))
        if result.queued:
            outcomes.labels(pool=self.name, outcome="queued").inc()
        QUEUE_SIZE.labels(pool=self.name).set(len(self.queue))

    def _handle_dropped_record(self, record: OutboundEventRecord) -> None:
        if self._downstream_drop is not None:
            self._downstream_drop(record)
        PUBLISH_OUTCOMES.labels(pool=self.name, outcome="dropped").inc()
        self._logger.warning(
            "publish_failed", pool=self.name, event_id=record.event_id, attempts=record.attempts
        )
        self._dispatch(self._publish_failed_callbacks, record)
