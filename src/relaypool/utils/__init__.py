"""Wire codec, WebSocket transport and Nostr key handling.

Attributes:
    protocol: Parsing of inbound relay frames into tagged messages and
        encoding of ``REQ``/``CLOSE``/``EVENT`` frames.
    transport: ``Transport``/``WebSocket`` protocols and the aiohttp-backed
        implementation used by relay connections.
    keys: Key loading from environment variables and the ``nostr-sdk``
        backed event signer.

Note:
    The utils layer depends on [relaypool.models][relaypool.models] and, for
    [ProtocolError][relaypool.core.exceptions.ProtocolError] only, on
    [relaypool.core.exceptions][relaypool.core.exceptions]. It never imports
    ``relaypool.client``.
"""
