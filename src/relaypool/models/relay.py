"""
Validated relay endpoint address.

Parses and normalizes WebSocket relay URLs (``ws://`` or ``wss://``) so that
two spellings of the same relay compare and hash equal. Unlike a crawler,
a client must be able to talk to development relays, so local and private
hosts are accepted and the scheme chosen by the user is kept.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator


@dataclass(frozen=True, slots=True)
class RelayEndpoint:
    """Immutable, normalized address of one relay.

    Equality and hashing use only the normalized ``url``, so
    ``RelayEndpoint("WSS://Relay.Example.com:443/")`` equals
    ``RelayEndpoint("wss://relay.example.com")``.

    Attributes:
        url: Fully normalized URL including scheme.
        scheme: URL scheme (``ws`` or ``wss``).
        host: Hostname or IP address (brackets stripped for IPv6).
        port: Explicit non-default port number, or ``None``.
        path: URL path component, or ``None``.

    Raises:
        ValueError: If the URL is malformed, uses an unsupported scheme,
            carries a query string or fragment, or contains null bytes.

    Examples:
        ```python
        relay = RelayEndpoint("wss://relay.damus.io/")
        relay.url       # 'wss://relay.damus.io'
        str(relay)      # 'wss://relay.damus.io'

        RelayEndpoint("ws://localhost:7777").port   # 7777
        ```
    """

    raw_url: str = field(repr=False, compare=False, hash=False)

    url: str = field(init=False)
    scheme: str = field(init=False, compare=False, hash=False)
    host: str = field(init=False, compare=False, hash=False)
    port: int | None = field(init=False, compare=False, hash=False)
    path: str | None = field(init=False, compare=False, hash=False)

    _PORT_WS: ClassVar[int] = 80
    _PORT_WSS: ClassVar[int] = 443

    def __post_init__(self) -> None:
        if not isinstance(self.raw_url, str):
            raise TypeError(f"raw_url must be a str, got {type(self.raw_url).__name__}")
        if "\x00" in self.raw_url:
            raise ValueError("Relay URL contains null bytes")

        parsed = self._parse(self.raw_url)

        # Bypass frozen restriction to set computed fields
        object.__setattr__(self, "url", parsed["url"])
        object.__setattr__(self, "scheme", parsed["scheme"])
        object.__setattr__(self, "host", parsed["host"])
        object.__setattr__(self, "port", parsed["port"])
        object.__setattr__(self, "path", parsed["path"])

    def __str__(self) -> str:
        return self.url

    @classmethod
    def coerce(cls, value: RelayEndpoint | str) -> RelayEndpoint:
        """Return *value* unchanged if it is an endpoint, otherwise parse it."""
        if isinstance(value, RelayEndpoint):
            return value
        return cls(value)

    @staticmethod
    def _parse(raw: str) -> dict[str, Any]:
        """Parse and normalize a raw relay URL string.

        Validates the URI structure using RFC 3986, collapses duplicate and
        trailing slashes, lower-cases scheme and host, and strips ports that
        match the scheme default.

        Raises:
            ValueError: If the scheme is not ``ws``/``wss`` or the URI is invalid.
        """
        uri = uri_reference(raw.strip()).normalize()

        validator = (
            Validator()
            .require_presence_of("scheme", "host")
            .allow_schemes("ws", "wss")
            .check_validity_of("scheme", "host", "port", "path")
        )

        try:
            validator.validate(uri)
        except UnpermittedComponentError:
            raise ValueError("Invalid scheme: must be ws or wss") from None
        except ValidationError as e:
            raise ValueError(f"Invalid URL: {e}") from None

        if uri.query:
            raise ValueError(f"Relay URL must not contain a query string: ?{uri.query}")
        if uri.fragment:
            raise ValueError(f"Relay URL must not contain a fragment: #{uri.fragment}")

        scheme = uri.scheme.lower()
        host = uri.host.strip("[]").lower()
        if not host:
            raise ValueError("Invalid URL: empty host")
        port = int(uri.port) if uri.port else None

        path = uri.path or ""
        while "//" in path:
            path = path.replace("//", "/")
        path = path.rstrip("/") or None

        default_port = RelayEndpoint._PORT_WSS if scheme == "wss" else RelayEndpoint._PORT_WS
        if port == default_port:
            port = None

        formatted_host = f"[{host}]" if ":" in host else host
        authority = f"{formatted_host}:{port}" if port else formatted_host

        return {
            "url": f"{scheme}://{authority}{path or ''}",
            "scheme": scheme,
            "host": host,
            "port": port,
            "path": path,
        }
