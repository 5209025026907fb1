"""
Prometheus metrics for relay pools and HTTP exposition.

Metric objects are module-level singletons (``prometheus_client`` registers
them globally). Every sample carries a ``pool`` label so several
[RelayPool][relaypool.client.pool.RelayPool] instances in one process stay
distinguishable.

The ``MetricsServer`` provides an async HTTP endpoint (via aiohttp) for
Prometheus scraping, configured through ``MetricsConfig``.

Architecture:
    RELAY_CONNECTIONS:   Gauge of relays per connection state.
    RECEIVED_EVENTS:     Inbound events split by ``delivered`` / ``duplicate``.
    PUBLISH_OUTCOMES:    Per-relay publish outcomes plus ``queued`` events.
    RECONNECTS:          Scheduled reconnection attempts.
    QUEUE_SIZE:          Current offline queue length.
    PUBLISH_DURATION:    Histogram of publish round-trip durations.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint.

    The endpoint is only started when ``enabled`` is True.
    """

    enabled: bool = Field(default=False, description="Enable the /metrics endpoint")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Pool Metrics
# ---------------------------------------------------------------------------

RELAY_CONNECTIONS = Gauge(
    "relaypool_relay_connections",
    "Number of relays per connection state",
    ["pool", "state"],
)

RECEIVED_EVENTS = Counter(
    "relaypool_received_events",
    "Inbound events by deduplication outcome",
    ["pool", "outcome"],
)

PUBLISH_OUTCOMES = Counter(
    "relaypool_publish_outcomes",
    "Publish outcomes (accepted/rejected/unreachable per relay, queued per event)",
    ["pool", "outcome"],
)

RECONNECTS = Counter(
    "relaypool_reconnects",
    "Scheduled relay reconnection attempts",
    ["pool"],
)

QUEUE_SIZE = Gauge(
    "relaypool_offline_queue_size",
    "Events waiting in the offline queue",
    ["pool"],
)

PUBLISH_DURATION_SECONDS = Histogram(
    "relaypool_publish_duration_seconds",
    "Time from sending an event until the publish resolved",
    ["pool"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible /metrics endpoint.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... pool runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening for scrape requests (no-op when disabled).

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()

    async def stop(self) -> None:
        """Stop the HTTP server. Safe to call if it never started."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )


async def start_metrics_server(config: MetricsConfig | None = None) -> MetricsServer:
    """Create and start a metrics server.

    Returns:
        A running MetricsServer. Callers must ``stop()`` it on shutdown.
    """
    server = MetricsServer(config or MetricsConfig())
    await server.start()
    return server
