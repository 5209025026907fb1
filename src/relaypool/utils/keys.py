"""Nostr key loading and event signing for relaypool.

The relay core never signs anything itself; it consumes a
[Signer][relaypool.utils.keys.Signer] collaborator that turns an
[EventPayload][relaypool.models.event.EventPayload] into a signed
[Event][relaypool.models.event.Event]. [KeysSigner][relaypool.utils.keys.KeysSigner]
is the ``nostr-sdk`` backed implementation used by the CLI.

Warning:
    Private keys must **never** be stored in configuration files, source code,
    or logged to any output. Always load them from environment variables.

Examples:
    ```python
    import os

    os.environ["RELAYPOOL_PRIVATE_KEY"] = "nsec1..."  # pragma: allowlist secret
    signer = KeysSigner(load_keys_from_env("RELAYPOOL_PRIVATE_KEY"))
    event = signer.sign(EventPayload(kind=1, content="hello"))
    ```
"""

from __future__ import annotations

import os
from typing import Any, Protocol

from nostr_sdk import EventBuilder, Keys, Kind, Tag, Timestamp
from pydantic import BaseModel, Field, model_validator

from relaypool.models.event import Event, EventPayload


ENV_PRIVATE_KEY = "RELAYPOOL_PRIVATE_KEY"  # pragma: allowlist secret


def load_keys_from_env(env_var: str = ENV_PRIVATE_KEY) -> Keys:
    """Load Nostr keys from an environment variable.

    Accepts an nsec1 bech32 or 64-char hex private key.

    Raises:
        ValueError: If the environment variable is not set or is empty.
        nostr_sdk.NostrError: If the key value is malformed.
    """
    value = os.getenv(env_var)

    if not value:
        raise ValueError(
            f"{env_var} environment variable is required. Generate one with: openssl rand -hex 32"
        )

    return Keys.parse(value)


class KeysConfig(BaseModel):
    """Pydantic model that auto-loads Nostr keys from an environment variable.

    Warning:
        The ``keys`` field contains a live private key. Do not serialize
        this model to logs or persistent storage.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for private key",
    )
    keys: Keys = Field(description="Keys loaded from keys_env (required)")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        if isinstance(data, dict) and "keys" not in data:
            data["keys"] = load_keys_from_env(data.get("keys_env", ENV_PRIVATE_KEY))
        return data


class Signer(Protocol):
    """Turns an unsigned payload into a signed, content-addressed event."""

    def sign(self, payload: EventPayload) -> Event: ...


class KeysSigner:
    """[Signer][relaypool.utils.keys.Signer] backed by ``nostr_sdk.Keys``."""

    def __init__(self, keys: Keys) -> None:
        self._keys = keys

    @property
    def public_key(self) -> str:
        return str(self._keys.public_key().to_hex())

    def sign(self, payload: EventPayload) -> Event:
        builder = (
            EventBuilder(Kind(payload.kind), payload.content)
            .tags([Tag.parse(list(tag)) for tag in payload.tags])
            .custom_created_at(Timestamp.from_secs(payload.created_at))
        )
        signed = builder.sign_with_keys(self._keys)
        return Event.from_json(signed.as_json())
