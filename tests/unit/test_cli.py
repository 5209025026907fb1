"""
Unit tests for the relaypool CLI (__main__ module).

Tests:
- Argument parsing for every sub-command
- build_config() merging YAML relays with --relay flags
- build_filter() from subscribe flags
- main() exit codes for bad input, publish, subscribe and status
"""

import json
from pathlib import Path

import pytest

from relaypool.__main__ import build_config, build_filter, main, parse_args
from relaypool.client import RelayPool
from relaypool.core.exceptions import ConfigurationError
from relaypool.models import Filter


URL_A = "wss://relay-a.example.com"
URL_B = "wss://relay-b.example.com"


@pytest.fixture
def empty_config(tmp_path: Path) -> Path:
    path = tmp_path / "relays.yaml"
    path.write_text("name: cli\npublish:\n  timeout: 0.2\n")
    return path


@pytest.fixture
def fake_pool(monkeypatch, transport):
    """Route the CLI's RelayPool through the in-memory transport."""

    def factory(config):
        return RelayPool(config, transport=transport)

    monkeypatch.setattr("relaypool.__main__.RelayPool", factory)
    return transport


# ============================================================================
# Argument Tests
# ============================================================================


class TestParseArgs:
    """parse_args()."""

    def test_subscribe(self) -> None:
        args = parse_args(["--relay", URL_A, "subscribe", "--kind", "1", "--kind", "7", "--once"])
        assert args.command == "subscribe"
        assert args.relay == [URL_A]
        assert args.kinds == [1, 7]
        assert args.once is True
        assert args.log_level == "WARNING"

    def test_publish_requires_source(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["publish"])

    def test_publish_sources_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["publish", "--content", "hi", "--event", "e.json"])

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            parse_args([])


class TestBuildConfig:
    """build_config() / build_filter()."""

    def test_merges_relays(self, tmp_path: Path) -> None:
        path = tmp_path / "relays.yaml"
        path.write_text(f"name: main\nrelays:\n  - {URL_A}\n")
        args = parse_args(["--config", str(path), "--relay", URL_B, "status"])

        config = build_config(args)

        assert config.name == "main"
        assert config.relays == [URL_A, URL_B]

    def test_missing_explicit_config(self, tmp_path: Path) -> None:
        args = parse_args(["--config", str(tmp_path / "nope.yaml"), "status"])
        with pytest.raises(FileNotFoundError):
            build_config(args)

    def test_invalid_yaml_document(self, tmp_path: Path) -> None:
        path = tmp_path / "relays.yaml"
        path.write_text("- just a list\n")
        args = parse_args(["--config", str(path), "status"])
        with pytest.raises(ConfigurationError):
            build_config(args)

    def test_build_filter(self) -> None:
        args = parse_args(["subscribe", "--kind", "1", "--since", "10", "--limit", "5"])
        assert build_filter(args) == Filter(kinds=[1], since=10, limit=5)


# ============================================================================
# main() Tests
# ============================================================================


class TestMain:
    """main() exit codes."""

    async def test_no_relays(self, empty_config: Path) -> None:
        assert await main(["--config", str(empty_config), "status"]) == 2

    async def test_invalid_relay_url(self, empty_config: Path) -> None:
        code = await main(["--config", str(empty_config), "--relay", "https://x.io", "status"])
        assert code == 2

    async def test_unreadable_event_file(self, empty_config: Path, tmp_path: Path) -> None:
        code = await main(
            [
                "--config", str(empty_config),
                "--relay", URL_A,
                "publish", "--event", str(tmp_path / "missing.json"),
            ]
        )
        assert code == 2

    async def test_publish_event_file(
        self, empty_config, tmp_path, fake_pool, make_event, make_ok_responder, capsys
    ) -> None:
        fake_pool.responders[URL_A] = make_ok_responder(True)
        event_file = tmp_path / "event.json"
        event = make_event(1)
        event_file.write_text(event.to_json())

        code = await main(
            ["--config", str(empty_config), "--relay", URL_A, "publish", "--event", str(event_file)]
        )

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["id"] == event.id
        assert output["success"] is True
        assert output["accepted"] == [URL_A]

    async def test_publish_rejected(
        self, empty_config, tmp_path, fake_pool, make_event, make_ok_responder, capsys
    ) -> None:
        fake_pool.responders[URL_A] = make_ok_responder(False, "blocked: spam")
        event_file = tmp_path / "event.json"
        event_file.write_text(make_event(1).to_json())

        code = await main(
            ["--config", str(empty_config), "--relay", URL_A, "publish", "--event", str(event_file)]
        )

        assert code == 1
        output = json.loads(capsys.readouterr().out)
        assert output["rejected"] == {URL_A: "blocked: spam"}

    async def test_subscribe_once(
        self, empty_config, fake_pool, make_event, capsys
    ) -> None:
        event = make_event(1)

        def respond(ws, text):
            frame = json.loads(text)
            if frame[0] == "REQ":
                ws.feed("EVENT", frame[1], event.to_dict())
                ws.feed("EOSE", frame[1])

        fake_pool.responders[URL_A] = respond

        code = await main(
            ["--config", str(empty_config), "--relay", URL_A, "subscribe", "--kind", "1", "--once"]
        )

        assert code == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert [json.loads(line)["id"] for line in lines] == [event.id]

    async def test_status(self, empty_config, fake_pool, capsys) -> None:
        fake_pool.refuse.add(URL_B)

        code = await main(
            [
                "--config", str(empty_config),
                "--relay", URL_A,
                "--relay", URL_B,
                "--connect-timeout", "1",
                "status",
            ]
        )

        assert code == 0
        lines = dict(line.split("\t")[:2] for line in capsys.readouterr().out.splitlines())
        assert lines[URL_A] == "open"
        assert lines[URL_B] == "closed"

    async def test_no_relay_reachable(self, empty_config, fake_pool) -> None:
        fake_pool.refuse.add(URL_A)
        code = await main(
            [
                "--config", str(empty_config),
                "--relay", URL_A,
                "--connect-timeout", "0.1",
                "subscribe", "--kind", "1",
            ]
        )
        assert code == 1
