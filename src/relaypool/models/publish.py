"""
Publish outcomes and offline queue records.

[PublishResult][relaypool.models.publish.PublishResult] is the aggregate of
per-relay acknowledgements for one publish call;
[OutboundEventRecord][relaypool.models.publish.OutboundEventRecord] is what
the offline queue holds for an event no relay accepted; and
[FlushResult][relaypool.models.publish.FlushResult] reports one pass over
that queue.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from time import time
from types import MappingProxyType

from .event import Event
from .relay import RelayEndpoint


@dataclass(frozen=True, slots=True)
class PublishResult:
    """Aggregate acknowledgement state for one published event.

    Attributes:
        event_id: Id of the published event.
        accepted_by: Relays that answered ``OK`` with ``success=true``.
        rejected_by: Relays that answered ``OK`` with ``success=false``.
        unreachable: Relays that were not open at send time, dropped while
            waiting, or did not answer before the timeout.
        messages: Relay-supplied ``OK`` messages, keyed by relay.
        queued: True if the event was handed to the offline queue.
    """

    event_id: str
    accepted_by: tuple[RelayEndpoint, ...] = ()
    rejected_by: tuple[RelayEndpoint, ...] = ()
    unreachable: tuple[RelayEndpoint, ...] = ()
    messages: Mapping[RelayEndpoint, str] = field(default_factory=dict)
    queued: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "messages", MappingProxyType(dict(self.messages)))

    @property
    def success(self) -> bool:
        """A publish succeeds as soon as one relay accepted it."""
        return bool(self.accepted_by)


@dataclass(slots=True)
class OutboundEventRecord:
    """An event waiting in the offline queue.

    Attributes:
        event: The signed event to publish.
        targets: Relays the event should go to (empty means "all open").
        queued_at: Unix timestamp of the first enqueue.
        attempts: Flush attempts made so far.
        last_attempt_at: Unix timestamp of the last flush attempt.
    """

    event: Event
    targets: frozenset[RelayEndpoint] = frozenset()
    queued_at: float = field(default_factory=time)
    attempts: int = 0
    last_attempt_at: float | None = None

    @property
    def event_id(self) -> str:
        return self.event.id


@dataclass(frozen=True, slots=True)
class FlushResult:
    """Outcome of one offline queue flush.

    Attributes:
        sent: Records published successfully and removed.
        dropped: Records removed after exhausting their retries.
        retained: Records that failed and stay queued for a later flush.
        expired: Records pruned for exceeding the maximum age.
    """

    sent: tuple[OutboundEventRecord, ...] = ()
    dropped: tuple[OutboundEventRecord, ...] = ()
    retained: tuple[OutboundEventRecord, ...] = ()
    expired: tuple[OutboundEventRecord, ...] = ()
