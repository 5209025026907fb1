"""Shared validation helpers for frozen dataclass models.

Private module -- not part of the public API. Used by ``__post_init__``
and ``from_dict`` methods in sibling model modules to enforce runtime type
constraints, null-byte safety, and deep immutability.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_timestamp(value: Any, name: str) -> None:
    """Raise if *value* is not a non-negative ``int`` (``bool`` excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")


def validate_mapping(value: Any, name: str) -> None:
    """Raise ``TypeError`` if *value* is not a ``Mapping``."""
    if not isinstance(value, Mapping):
        raise TypeError(f"{name} must be a Mapping, got {type(value).__name__}")


def thaw(obj: Any) -> Any:
    """Inverse of [deep_freeze()][relaypool.models._validation.deep_freeze]."""
    if isinstance(obj, Mapping):
        return {k: thaw(v) for k, v in obj.items()}
    if isinstance(obj, list | tuple):
        return [thaw(item) for item in obj]
    return obj


def validate_str_not_empty(value: Any, name: str) -> None:
    """Raise if *value* is not a non-empty ``str`` without null bytes."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")
    if not value:
        raise ValueError(f"{name} must not be empty")


def freeze_str_tuple(values: Iterable[Any] | None, name: str) -> tuple[str, ...] | None:
    """Validate a collection of non-empty strings and return it as a tuple.

    ``None`` passes through unchanged. A bare ``str`` is rejected because it
    would otherwise be iterated character by character.
    """
    if values is None:
        return None
    if isinstance(values, str):
        raise TypeError(f"{name} must be a list of str, not a str")
    result = tuple(values)
    for i, v in enumerate(result):
        validate_str_not_empty(v, f"{name}[{i}]")
    return result


def freeze_int_tuple(values: Iterable[Any] | None, name: str) -> tuple[int, ...] | None:
    """Validate a collection of non-negative ints and return it as a tuple."""
    if values is None:
        return None
    result = tuple(values)
    for i, v in enumerate(result):
        validate_timestamp(v, f"{name}[{i}]")
    return result


def deep_freeze(obj: Any) -> Any:
    """Recursively wrap dicts with ``MappingProxyType`` and lists as tuples."""
    if isinstance(obj, Mapping):
        return MappingProxyType({k: deep_freeze(v) for k, v in obj.items()})
    if isinstance(obj, list | tuple):
        return tuple(deep_freeze(item) for item in obj)
    return obj


def validate_depth(obj: Any, max_depth: int, name: str) -> None:
    """Raise ``ValueError`` if containers in *obj* nest deeper than *max_depth*.

    Walks iteratively so hostile input cannot exhaust the interpreter stack.
    """
    stack: list[tuple[Any, int]] = [(obj, 1)]
    while stack:
        value, depth = stack.pop()
        if isinstance(value, Mapping):
            children: Iterable[Any] = value.values()
        elif isinstance(value, list | tuple):
            children = value
        else:
            continue
        if depth > max_depth:
            raise ValueError(f"{name} nests deeper than {max_depth} levels")
        stack.extend((child, depth + 1) for child in children)
