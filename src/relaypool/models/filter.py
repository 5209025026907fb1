"""
Immutable subscription filter.

A [Filter][relaypool.models.filter.Filter] is the structured query carried
in ``REQ`` frames. Matching is performed by the relays in production;
[Filter.matches()][relaypool.models.filter.Filter.matches] exists for
locally injected or mirrored events (tests, fixtures, relay mirrors).

Matching rules: every populated condition must hold (AND); each list
condition is satisfied by any one of its values (OR). ``limit`` only caps
the relay's stored-event backlog and never affects matching.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from ._validation import (
    freeze_int_tuple,
    freeze_str_tuple,
    validate_mapping,
    validate_timestamp,
)
from .event import Event


_KNOWN_KEYS = frozenset({"ids", "authors", "kinds", "since", "until", "limit"})


@dataclass(frozen=True, slots=True)
class Filter:
    """Structured relay query.

    Attributes:
        ids: Exact event ids.
        authors: Exact author public keys.
        kinds: Event kinds.
        tags: Tag constraints keyed by tag name without the ``#`` prefix,
            e.g. ``{"e": ("<event id>",), "t": ("nostr",)}``.
        since: Minimum ``created_at`` (inclusive).
        until: Maximum ``created_at`` (inclusive).
        limit: Maximum number of stored events the relay should return.

    Examples:
        ```python
        flt = Filter(kinds=[1], authors=["ab" * 32], tags={"t": ["nostr"]}, limit=50)
        flt.to_dict()
        # {'authors': ['abab...'], 'kinds': [1], '#t': ['nostr'], 'limit': 50}

        Filter.from_dict({"kinds": [1], "#p": ["cd" * 32]}).tags
        # mappingproxy({'p': ('cdcd...',)})
        ```
    """

    ids: tuple[str, ...] | None = None
    authors: tuple[str, ...] | None = None
    kinds: tuple[int, ...] | None = None
    tags: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "ids", freeze_str_tuple(self.ids, "ids"))
        object.__setattr__(self, "authors", freeze_str_tuple(self.authors, "authors"))
        object.__setattr__(self, "kinds", freeze_int_tuple(self.kinds, "kinds"))

        validate_mapping(self.tags, "tags")
        frozen_tags: dict[str, tuple[str, ...]] = {}
        for name, values in self.tags.items():
            if not isinstance(name, str) or not name or name.startswith("#"):
                raise ValueError(f"Tag filter name must be a bare tag name, got {name!r}")
            frozen_tags[name] = freeze_str_tuple(values, f"tags[{name}]") or ()
        object.__setattr__(self, "tags", MappingProxyType(frozen_tags))

        for name in ("since", "until", "limit"):
            value = getattr(self, name)
            if value is not None:
                validate_timestamp(value, name)
        if self.since is not None and self.until is not None and self.since > self.until:
            raise ValueError(f"since ({self.since}) must be <= until ({self.until})")

    def __hash__(self) -> int:
        return hash(
            (
                self.ids,
                self.authors,
                self.kinds,
                tuple(sorted(self.tags.items())),
                self.since,
                self.until,
                self.limit,
            )
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Filter:
        """Build a filter from its wire representation.

        Raises:
            TypeError: If a field has the wrong type.
            ValueError: If a key is unknown or a value is invalid.
        """
        validate_mapping(data, "filter")
        tags: dict[str, Iterable[str]] = {}
        for key, value in data.items():
            if isinstance(key, str) and key.startswith("#") and len(key) > 1:
                tags[key[1:]] = value
            elif key not in _KNOWN_KEYS:
                raise ValueError(f"Unknown filter key: {key!r}")
        return cls(
            ids=data.get("ids"),
            authors=data.get("authors"),
            kinds=data.get("kinds"),
            tags=tags,
            since=data.get("since"),
            until=data.get("until"),
            limit=data.get("limit"),
        )

    @classmethod
    def coerce(cls, value: Filter | Mapping[str, Any]) -> Filter:
        if isinstance(value, Filter):
            return value
        return cls.from_dict(value)

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation, omitting unset fields."""
        result: dict[str, Any] = {}
        if self.ids is not None:
            result["ids"] = list(self.ids)
        if self.authors is not None:
            result["authors"] = list(self.authors)
        if self.kinds is not None:
            result["kinds"] = list(self.kinds)
        for name, values in self.tags.items():
            result[f"#{name}"] = list(values)
        if self.since is not None:
            result["since"] = self.since
        if self.until is not None:
            result["until"] = self.until
        if self.limit is not None:
            result["limit"] = self.limit
        return result

    def matches(self, event: Event) -> bool:
        """Check whether ``event`` satisfies every populated condition."""
        if self.ids is not None and event.id not in self.ids:
            return False
        if self.authors is not None and event.pubkey not in self.authors:
            return False
        if self.kinds is not None and event.kind not in self.kinds:
            return False

        if self.since is not None or self.until is not None:
            created_at = event.created_at
            if created_at is None:
                return False
            if self.since is not None and created_at < self.since:
                return False
            if self.until is not None and created_at > self.until:
                return False

        for name, values in self.tags.items():
            if not event.tag_values(name) & set(values):
                return False
        return True


def match_any(filters: Iterable[Filter], event: Event) -> bool:
    """Return True if ``event`` matches at least one of ``filters``."""
    return any(flt.matches(event) for flt in filters)
