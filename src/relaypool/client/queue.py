"""Offline queue for events no relay accepted.

A bounded FIFO of [OutboundEventRecord][relaypool.models.publish.OutboundEventRecord].
When full, the oldest record is evicted before the new one is appended:
newest data is never rejected. Each
[flush()][relaypool.client.queue.OfflineQueue.flush] works on a snapshot,
retries every record once, and drops records that have used up
``max_retries`` attempts.

Note:
    Eviction is not an error. It is logged and reported through the
    optional ``on_evict`` callback. Only records dropped after exhausting
    their retries (or expiring) reach ``on_drop``, which the pool surfaces
    to the application as "message not sent".
"""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Iterable

from relaypool.core.logger import Logger
from relaypool.models.event import Event
from relaypool.models.publish import FlushResult, OutboundEventRecord
from relaypool.models.relay import RelayEndpoint


PublishFn = Callable[[OutboundEventRecord], Awaitable[bool]]
RecordCallback = Callable[[OutboundEventRecord], None]


class OfflineQueue:
    """Bounded FIFO of unpublished events, keyed by event id.

    Args:
        capacity: Maximum number of queued records.
        max_retries: Flush attempts before a failing record is dropped.
        max_age: Seconds after which a record expires, or ``None``.
        on_evict: Called with a record evicted to make room.
        on_drop: Called with a record dropped after its last attempt or on
            expiry.
        clock: Wall-clock time source, injectable for tests.
    """

    def __init__(
        self,
        capacity: int = 100,
        max_retries: int = 3,
        max_age: float | None = 86400.0,
        *,
        on_evict: RecordCallback | None = None,
        on_drop: RecordCallback | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")
        self.capacity = capacity
        self.max_retries = max_retries
        self.max_age = max_age
        self.on_evict = on_evict
        self.on_drop = on_drop
        self._clock = clock
        self._records: OrderedDict[str, OutboundEventRecord] = OrderedDict()
        self._flush_lock = asyncio.Lock()
        self._logger = Logger("relaypool.queue")

    def __len__(self) -> int:
        return len(self._records)

    @property
    def size(self) -> int:
        return len(self._records)

    @property
    def is_flushing(self) -> bool:
        return self._flush_lock.locked()

    def enqueue(
        self, event: Event, targets: Iterable[RelayEndpoint] = ()
    ) -> OutboundEventRecord:
        """Append ``event``, evicting the oldest record if the queue is full.

        An event id that is already queued is not duplicated; its target set
        is widened instead. An empty target set means "every open relay".
        """
        target_set = frozenset(targets)
        existing = self._records.get(event.id)
        if existing is not None:
            if not existing.targets or not target_set:
                existing.targets = frozenset()
            else:
                existing.targets = existing.targets | target_set
            return existing

        if len(self._records) >= self.capacity:
            _, evicted = self._records.popitem(last=False)
            self._logger.info(
                "record_evicted", event_id=evicted.event_id, capacity=self.capacity
            )
            if self.on_evict is not None:
                self.on_evict(evicted)

        record = OutboundEventRecord(event=event, targets=target_set, queued_at=self._clock())
        self._records[event.id] = record
        self._logger.debug("record_queued", event_id=event.id, size=len(self._records))
        return record

    def has(self, event_id: str) -> bool:
        return event_id in self._records

    def remove(self, event_id: str) -> OutboundEventRecord | None:
        return self._records.pop(event_id, None)

    def clear(self) -> None:
        self._records.clear()

    def records(self) -> list[OutboundEventRecord]:
        """Snapshot of the queued records, oldest first."""
        return list(self._records.values())

    def oldest(self) -> OutboundEventRecord | None:
        return next(iter(self._records.values()), None)

    def newest(self) -> OutboundEventRecord | None:
        return next(reversed(self._records.values()), None)

    async def flush(self, publish_fn: PublishFn) -> FlushResult:
        """Try to publish every queued record once.

        Records enqueued while the flush runs wait for the next flush.
        Concurrent calls are serialized. An exception raised by
        ``publish_fn`` counts as a failed attempt.
        """
        async with self._flush_lock:
            expired = self._expire()
            sent: list[OutboundEventRecord] = []
            dropped: list[OutboundEventRecord] = []
            retained: list[OutboundEventRecord] = []

            for record in list(self._records.values()):
                if self._records.get(record.event_id) is not record:
                    continue

                record.attempts += 1
                record.last_attempt_at = self._clock()
                try:
                    ok = await publish_fn(record)
                except Exception as e:  # publish callback boundary
                    self._logger.warning(
                        "flush_publish_failed", event_id=record.event_id, error=str(e)
                    )
                    ok = False

                if ok:
                    self._discard(record)
                    sent.append(record)
                elif record.attempts >= self.max_retries:
                    self._discard(record)
                    dropped.append(record)
                    self._logger.warning(
                        "record_dropped", event_id=record.event_id, attempts=record.attempts
                    )
                    if self.on_drop is not None:
                        self.on_drop(record)
                else:
                    retained.append(record)

            if sent or dropped or expired:
                self._logger.info(
                    "queue_flushed",
                    sent=len(sent),
                    dropped=len(dropped),
                    expired=len(expired),
                    retained=len(retained),
                )
            return FlushResult(
                sent=tuple(sent),
                dropped=tuple(dropped),
                retained=tuple(retained),
                expired=tuple(expired),
            )

    def _discard(self, record: OutboundEventRecord) -> None:
        if self._records.get(record.event_id) is record:
            del self._records[record.event_id]

    def _expire(self) -> list[OutboundEventRecord]:
        if self.max_age is None:
            return []
        cutoff = self._clock() - self.max_age
        expired = [r for r in self._records.values() if r.queued_at <= cutoff]
        for record in expired:
            del self._records[record.event_id]
            self._logger.warning("record_expired", event_id=record.event_id)
            if self.on_drop is not None:
                self.on_drop(record)
        return expired
