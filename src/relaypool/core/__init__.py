"""Infrastructure shared by every layer above the models.

Attributes:
    exceptions: The ``RelayPoolError`` hierarchy.
    logger: Structured key=value / JSON logging.
    metrics: Prometheus metrics and the aiohttp ``/metrics`` server.
    yaml: Safe YAML configuration loading.
"""

from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    HandshakeError,
    NotOpenError,
    ProtocolError,
    PublishingError,
    PublishRejectedError,
    RelayPoolError,
    SendWhileClosedError,
    TransportError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    PUBLISH_DURATION_SECONDS,
    PUBLISH_OUTCOMES,
    QUEUE_SIZE,
    RECEIVED_EVENTS,
    RECONNECTS,
    RELAY_CONNECTIONS,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .yaml import load_yaml


__all__ = [
    "PUBLISH_DURATION_SECONDS",
    "PUBLISH_OUTCOMES",
    "QUEUE_SIZE",
    "RECEIVED_EVENTS",
    "RECONNECTS",
    "RELAY_CONNECTIONS",
    "ConfigurationError",
    "ConnectivityError",
    "HandshakeError",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "NotOpenError",
    "ProtocolError",
    "PublishRejectedError",
    "PublishingError",
    "RelayPoolError",
    "SendWhileClosedError",
    "StructuredFormatter",
    "TransportError",
    "format_kv_pairs",
    "load_yaml",
    "start_metrics_server",
]
