"""Relay wire protocol codec.

Frames are JSON arrays sent as WebSocket text messages. The first element
is a [MessageType][relaypool.models.constants.MessageType] tag.

Outbound (client to relay):

```text
["REQ", <subscription id>, <filter>, ...]
["CLOSE", <subscription id>]
["EVENT", <event>]
```

Inbound (relay to client):

```text
["EVENT", <subscription id>, <event>]
["OK", <event id>, <true|false>, <message>]
["EOSE", <subscription id>]
["CLOSED", <subscription id>, <reason>]
["NOTICE", <message>]
["AUTH", <challenge>]
```

Relays are untrusted peers, so
[parse_message()][relaypool.utils.protocol.parse_message] validates the
shape of every frame and raises
[ProtocolError][relaypool.core.exceptions.ProtocolError] on anything it does
not recognize. Callers log and drop those frames.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, TypeAlias

from relaypool.core.exceptions import ProtocolError
from relaypool.models.constants import MessageType
from relaypool.models.event import Event
from relaypool.models.filter import Filter


# ---------------------------------------------------------------------------
# Inbound messages
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EventMessage:
    subscription_id: str
    event: Event


@dataclass(frozen=True, slots=True)
class OkMessage:
    event_id: str
    success: bool
    message: str = ""


@dataclass(frozen=True, slots=True)
class EoseMessage:
    subscription_id: str


@dataclass(frozen=True, slots=True)
class ClosedMessage:
    subscription_id: str
    reason: str = ""


@dataclass(frozen=True, slots=True)
class NoticeMessage:
    message: str


@dataclass(frozen=True, slots=True)
class AuthMessage:
    challenge: str


RelayMessage: TypeAlias = (
    EventMessage | OkMessage | EoseMessage | ClosedMessage | NoticeMessage | AuthMessage
)


def _require_str(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise ProtocolError(f"{what} must be a string, got {type(value).__name__}")
    return value


def _optional_str(frame: list[Any], index: int, what: str) -> str:
    if len(frame) <= index:
        return ""
    return _require_str(frame[index], what)


def parse_message(raw: str | bytes) -> RelayMessage:
    """Decode one inbound frame.

    Extra trailing elements are tolerated; missing or wrongly-typed required
    elements are not.

    Raises:
        ProtocolError: If the frame is not JSON, not a non-empty array, has
            an unknown tag, or has the wrong shape for its tag.
    """
    try:
        frame = json.loads(raw)
    except (TypeError, ValueError, RecursionError) as e:
        raise ProtocolError(f"Frame is not valid JSON: {e}") from e

    if not isinstance(frame, list) or not frame:
        raise ProtocolError("Frame is not a non-empty JSON array")

    tag = frame[0]
    if not isinstance(tag, str) or tag not in MessageType.__members__:
        raise ProtocolError(f"Unknown frame tag: {tag!r}")

    match MessageType(tag):
        case MessageType.EVENT:
            if len(frame) < 3:
                raise ProtocolError("EVENT frame needs a subscription id and an event")
            subscription_id = _require_str(frame[1], "EVENT subscription id")
            try:
                event = Event.from_dict(frame[2])
            except (TypeError, ValueError) as e:
                raise ProtocolError(f"EVENT carries an invalid event: {e}") from e
            return EventMessage(subscription_id, event)

        case MessageType.OK:
            if len(frame) < 3:
                raise ProtocolError("OK frame needs an event id and a status")
            event_id = _require_str(frame[1], "OK event id")
            success = frame[2]
            if not isinstance(success, bool):
                raise ProtocolError(f"OK status must be a boolean, got {type(success).__name__}")
            return OkMessage(event_id, success, _optional_str(frame, 3, "OK message"))

        case MessageType.EOSE:
            if len(frame) < 2:
                raise ProtocolError("EOSE frame needs a subscription id")
            return EoseMessage(_require_str(frame[1], "EOSE subscription id"))

        case MessageType.CLOSED:
            if len(frame) < 2:
                raise ProtocolError("CLOSED frame needs a subscription id")
            return ClosedMessage(
                _require_str(frame[1], "CLOSED subscription id"),
                _optional_str(frame, 2, "CLOSED reason"),
            )

        case MessageType.NOTICE:
            if len(frame) < 2:
                raise ProtocolError("NOTICE frame needs a message")
            return NoticeMessage(_require_str(frame[1], "NOTICE message"))

        case MessageType.AUTH:
            if len(frame) < 2:
                raise ProtocolError("AUTH frame needs a challenge")
            return AuthMessage(_require_str(frame[1], "AUTH challenge"))

    raise ProtocolError(f"{tag} is not a relay-to-client frame")


# ---------------------------------------------------------------------------
# Outbound frames
# ---------------------------------------------------------------------------


def _dumps(frame: list[Any]) -> str:
    return json.dumps(frame, separators=(",", ":"), ensure_ascii=False)


def encode_req(subscription_id: str, filters: Iterable[Filter]) -> str:
    """Encode ``["REQ", subscription_id, filter, ...]``."""
    filter_dicts = [flt.to_dict() for flt in filters]
    if not filter_dicts:
        raise ValueError("REQ needs at least one filter")
    return _dumps([MessageType.REQ.value, subscription_id, *filter_dicts])


def encode_close(subscription_id: str) -> str:
    """Encode ``["CLOSE", subscription_id]``."""
    return _dumps([MessageType.CLOSE.value, subscription_id])


def encode_event(event: Event) -> str:
    """Encode ``["EVENT", event]`` reusing the event's canonical JSON."""
    return f'["{MessageType.EVENT.value}",{event.to_json()}]'
