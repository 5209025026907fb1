"""
Unit tests for client.configs module.

Tests:
- Default values of every configuration model
- Field bounds and cross-field validation
- Relay URL normalization and de-duplication in RelayPoolConfig
"""

import pytest
from pydantic import ValidationError

from relaypool.client.configs import (
    BackoffConfig,
    ConnectionConfig,
    DedupConfig,
    PublishConfig,
    QueueConfig,
    RelayPoolConfig,
)
from relaypool.models import RelayEndpoint


class TestDefaults:
    """Reference defaults."""

    def test_backoff(self) -> None:
        config = BackoffConfig()
        assert config.initial_delay == 1.0
        assert config.multiplier == 2.0
        assert config.max_delay == 300.0
        assert config.jitter == 0.0

    def test_publish_and_queue(self) -> None:
        assert PublishConfig().timeout == 2.0
        assert QueueConfig().capacity == 100
        assert QueueConfig().max_retries == 3
        assert QueueConfig().flush_on_connect is True

    def test_connection(self) -> None:
        config = ConnectionConfig()
        assert config.connect_timeout == 10.0
        assert config.verify_ssl is True

    def test_pool(self) -> None:
        config = RelayPoolConfig()
        assert config.name == "default"
        assert config.relays == []
        assert config.metrics.enabled is False
        assert config.dedup == DedupConfig()


class TestValidation:
    """Bounds and cross-field checks."""

    def test_max_delay_below_initial(self) -> None:
        with pytest.raises(ValidationError, match="max_delay"):
            BackoffConfig(initial_delay=10.0, max_delay=5.0)

    @pytest.mark.parametrize(
        ("model", "kwargs"),
        [
            (BackoffConfig, {"initial_delay": 0}),
            (BackoffConfig, {"multiplier": 0.5}),
            (BackoffConfig, {"max_attempts": -1}),
            (PublishConfig, {"timeout": 0}),
            (QueueConfig, {"capacity": 0}),
            (QueueConfig, {"max_retries": 0}),
            (DedupConfig, {"max_size": 0}),
            (ConnectionConfig, {"connect_timeout": -1}),
            (RelayPoolConfig, {"name": ""}),
        ],
    )
    def test_out_of_bounds(self, model, kwargs) -> None:
        with pytest.raises(ValidationError):
            model(**kwargs)

    def test_optional_ages(self) -> None:
        assert QueueConfig(max_age=None).max_age is None
        assert DedupConfig(max_age=None).max_age is None


class TestRelayList:
    """RelayPoolConfig.relays normalization."""

    def test_normalized_and_deduplicated(self) -> None:
        config = RelayPoolConfig(
            relays=[
                "wss://relay.example.com/",
                "WSS://RELAY.EXAMPLE.COM",
                "ws://localhost:7777",
            ]
        )
        assert config.relays == ["wss://relay.example.com", "ws://localhost:7777"]
        assert config.endpoints() == [
            RelayEndpoint("wss://relay.example.com"),
            RelayEndpoint("ws://localhost:7777"),
        ]

    def test_invalid_url(self) -> None:
        with pytest.raises(ValidationError):
            RelayPoolConfig(relays=["http://relay.example.com"])

    def test_nested_from_dict(self) -> None:
        config = RelayPoolConfig.model_validate(
            {"backoff": {"initial_delay": 0.5, "max_delay": 30}, "queue": {"capacity": 5}}
        )
        assert config.backoff.initial_delay == 0.5
        assert config.backoff.max_delay == 30.0
        assert config.queue.capacity == 5
