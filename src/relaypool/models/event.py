"""
Opaque signed event record.

The relay core never interprets event content and never verifies
signatures; it only needs the content-derived ``id`` to correlate ``OK``
acknowledgements and to deduplicate deliveries. The original JSON mapping
is kept verbatim so it can be written back to the wire unchanged.

See Also:
    [Filter.matches()][relaypool.models.filter.Filter.matches]: Reads the
        optional standard fields exposed here.
    [KeysSigner][relaypool.utils.keys.KeysSigner]: Produces instances from
        an [EventPayload][relaypool.models.event.EventPayload].
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from time import time
from typing import Any, Final

from ._validation import (
    deep_freeze,
    thaw,
    validate_depth,
    validate_mapping,
    validate_str_not_empty,
    validate_timestamp,
)


# Standard events nest three levels deep (event, tags, tag).
MAX_EVENT_DEPTH: Final = 32


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable signed event as received from, or sent to, a relay.

    Only ``id`` is required. Standard fields (``pubkey``, ``created_at``,
    ``kind``, ``tags``, ``content``, ``sig``) are exposed read-only when
    present and well-typed; anything else in the mapping is carried along
    untouched.

    Args:
        data: The decoded event object.

    Raises:
        TypeError: If ``data`` is not a mapping.
        ValueError: If ``id`` is missing, empty, or contains null bytes, or
            the mapping nests deeper than ``MAX_EVENT_DEPTH`` or is not
            JSON-serializable.

    Examples:
        ```python
        event = Event.from_dict({"id": "ab" * 32, "kind": 1, "content": "hi"})
        event.id        # 'abab...'
        event.kind      # 1
        event.to_dict() # fresh, mutable copy of the original mapping
        ```
    """

    data: Mapping[str, Any] = field(repr=False, compare=False, hash=False)
    id: str = field(init=False)
    _json: str = field(init=False, repr=False, compare=False, hash=False)

    def __post_init__(self) -> None:
        validate_mapping(self.data, "data")
        event_id = self.data.get("id")
        validate_str_not_empty(event_id, "id")
        validate_depth(self.data, MAX_EVENT_DEPTH, "event")
        try:
            encoded = json.dumps(thaw(self.data), separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Event {event_id[:16]}... is not JSON-serializable: {e}") from e

        object.__setattr__(self, "_json", encoded)
        object.__setattr__(self, "data", deep_freeze(json.loads(encoded)))
        object.__setattr__(self, "id", event_id)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Event:
        return cls(data)

    @classmethod
    def from_json(cls, raw: str) -> Event:
        """Parse an event from its JSON text.

        Raises:
            ValueError: If ``raw`` is not valid JSON or not a valid event.
        """
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, RecursionError) as e:
            raise ValueError(f"Invalid event JSON: {e}") from e
        return cls(data)

    @classmethod
    def coerce(cls, value: Event | Mapping[str, Any]) -> Event:
        if isinstance(value, Event):
            return value
        return cls(value)

    def to_dict(self) -> dict[str, Any]:
        """Return a fresh, mutable copy of the event mapping."""
        result: dict[str, Any] = json.loads(self._json)
        return result

    def to_json(self) -> str:
        """Return the compact JSON encoding used on the wire."""
        return self._json

    def _get(self, key: str, expected: type | tuple[type, ...]) -> Any:
        value = self.data.get(key)
        if isinstance(value, bool) or not isinstance(value, expected):
            return None
        return value

    @property
    def pubkey(self) -> str | None:
        return self._get("pubkey", str)

    @property
    def created_at(self) -> int | None:
        return self._get("created_at", int)

    @property
    def kind(self) -> int | None:
        return self._get("kind", int)

    @property
    def content(self) -> str | None:
        return self._get("content", str)

    @property
    def sig(self) -> str | None:
        return self._get("sig", str)

    @property
    def tags(self) -> tuple[tuple[str, ...], ...]:
        """Well-formed tags only: non-empty sequences of strings."""
        raw = self.data.get("tags")
        if not isinstance(raw, tuple):
            return ()
        return tuple(
            tag
            for tag in raw
            if isinstance(tag, tuple) and tag and all(isinstance(v, str) for v in tag)
        )

    def tag_values(self, name: str) -> set[str]:
        """Return the first values of every tag named ``name``."""
        return {tag[1] for tag in self.tags if tag[0] == name and len(tag) > 1}


@dataclass(frozen=True, slots=True)
class EventPayload:
    """Unsigned event content handed to a signer.

    Attributes:
        kind: Event kind number.
        content: Event content string (opaque to the relay core).
        tags: Tag arrays, e.g. ``(("e", "<id>"), ("p", "<pubkey>"))``.
        created_at: Unix timestamp; defaults to now.
    """

    kind: int
    content: str = ""
    tags: tuple[tuple[str, ...], ...] = ()
    created_at: int = field(default_factory=lambda: int(time()))

    def __post_init__(self) -> None:
        validate_timestamp(self.kind, "kind")
        validate_timestamp(self.created_at, "created_at")
        if not isinstance(self.content, str):
            raise TypeError(f"content must be a str, got {type(self.content).__name__}")
        object.__setattr__(self, "tags", tuple(tuple(tag) for tag in self.tags))
        for tag in self.tags:
            if not tag or not all(isinstance(v, str) for v in tag):
                raise ValueError(f"Invalid tag: {list(tag)!r}")
