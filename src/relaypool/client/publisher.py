"""Publish fan-out and acknowledgement fan-in.

[PublishCoordinator][relaypool.client.publisher.PublishCoordinator] writes one
``["EVENT", event]`` frame to every targeted open relay and waits for the
matching ``["OK", id, success, message]`` replies. It resolves as soon as
every awaited relay answered, or at the timeout, whichever comes first.

Outcome per relay:

```text
OK true                      -> accepted_by
OK false                     -> rejected_by (with message)
not open / send failed       -> unreachable
closed while waiting         -> unreachable
no OK before the timeout     -> unreachable
```

A publish succeeds when at least one relay accepted it. Total failure hands
the event to the [OfflineQueue][relaypool.client.queue.OfflineQueue].
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from relaypool.core.exceptions import NotOpenError
from relaypool.core.logger import Logger
from relaypool.models.event import Event
from relaypool.models.publish import PublishResult
from relaypool.models.relay import RelayEndpoint
from relaypool.utils.protocol import OkMessage, encode_event

from .connection import RelayConnection
from .queue import OfflineQueue


@dataclass(slots=True)
class _PendingPublish:
    event_id: str
    awaiting: set[RelayEndpoint] = field(default_factory=set)
    accepted: list[RelayEndpoint] = field(default_factory=list)
    rejected: list[RelayEndpoint] = field(default_factory=list)
    lost: list[RelayEndpoint] = field(default_factory=list)
    messages: dict[RelayEndpoint, str] = field(default_factory=dict)
    done: asyncio.Event = field(default_factory=asyncio.Event)

    def settle(self) -> None:
        if not self.awaiting:
            self.done.set()


class PublishCoordinator:
    """Aggregates per-relay ``OK`` replies into a [PublishResult][relaypool.models.publish.PublishResult].

    Args:
        timeout: Seconds to wait for ``OK`` replies.
        queue: Offline queue receiving totally failed events, if any.
    """

    def __init__(self, timeout: float = 2.0, queue: OfflineQueue | None = None) -> None:
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.timeout = timeout
        self.queue = queue
        self._pending: dict[str, list[_PendingPublish]] = {}
        self._logger = Logger("relaypool.publisher")

    @property
    def in_flight(self) -> int:
        return sum(len(waiters) for waiters in self._pending.values())

    async def publish(
        self,
        event: Event,
        connections: Mapping[RelayEndpoint, RelayConnection],
        targets: Iterable[RelayEndpoint | str] | None = None,
        *,
        enqueue_on_failure: bool = True,
    ) -> PublishResult:
        """Send ``event`` and wait for acknowledgements.

        Args:
            event: Signed event to publish.
            connections: Current connections by relay.
            targets: Relays to publish to; ``None`` means every open one.
            enqueue_on_failure: Queue the event if no relay accepts it.
        """
        if targets is None:
            target_list = [ep for ep, conn in connections.items() if conn.is_open]
        else:
            target_list = list(dict.fromkeys(RelayEndpoint.coerce(t) for t in targets))

        pending = _PendingPublish(event.id)
        self._pending.setdefault(event.id, []).append(pending)
        not_open: list[RelayEndpoint] = []
        frame = encode_event(event)

        try:
            for endpoint in target_list:
                connection = connections.get(endpoint)
                if connection is None:
                    not_open.append(endpoint)
                    continue
                try:
                    connection.send(frame)
                except NotOpenError:
                    not_open.append(endpoint)
                    continue
                pending.awaiting.add(endpoint)

            if pending.awaiting:
                try:
                    async with asyncio.timeout(self.timeout):
                        await pending.done.wait()
                except TimeoutError:
                    self._logger.debug(
                        "publish_timeout", event_id=event.id, missing=len(pending.awaiting)
                    )
        finally:
            waiters = self._pending.get(event.id, [])
            if pending in waiters:
                waiters.remove(pending)
            if not waiters:
                self._pending.pop(event.id, None)

        timed_out = [ep for ep in target_list if ep in pending.awaiting]
        result = PublishResult(
            event_id=event.id,
            accepted_by=tuple(pending.accepted),
            rejected_by=tuple(pending.rejected),
            unreachable=tuple(not_open + pending.lost + timed_out),
            messages=pending.messages,
        )

        # An explicitly empty target list has nothing to retry later.
        retryable = targets is None or bool(target_list)
        if not result.success and retryable and enqueue_on_failure and self.queue is not None:
            self.queue.enqueue(event, target_list if targets is not None else ())
            result = PublishResult(
                event_id=result.event_id,
                accepted_by=result.accepted_by,
                rejected_by=result.rejected_by,
                unreachable=result.unreachable,
                messages=result.messages,
                queued=True,
            )

        self._logger.debug(
            "publish_resolved",
            event_id=event.id,
            accepted=len(result.accepted_by),
            rejected=len(result.rejected_by),
            unreachable=len(result.unreachable),
            queued=result.queued,
        )
        return result

    def handle_ok(self, relay: RelayEndpoint, message: OkMessage) -> bool:
        """Route an ``OK`` reply to the publishes awaiting it.

        Duplicate replies and replies from relays that were not awaited are
        ignored.

        Returns:
            True if at least one pending publish consumed the reply.
        """
        handled = False
        for pending in self._pending.get(message.event_id, []):
            if relay not in pending.awaiting:
                continue
            pending.awaiting.discard(relay)
            if message.success:
                pending.accepted.append(relay)
            else:
                pending.rejected.append(relay)
            if message.message:
                pending.messages[relay] = message.message
            pending.settle()
            handled = True
        return handled

    def relay_lost(self, relay: RelayEndpoint) -> None:
        """Count ``relay`` as unreachable for every publish awaiting it."""
        for waiters in self._pending.values():
            for pending in waiters:
                if relay in pending.awaiting:
                    pending.awaiting.discard(relay)
                    pending.lost.append(relay)
                    pending.settle()
