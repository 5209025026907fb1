"""CLI entry point for relaypool.

Examples:
    ```bash
    python -m relaypool status --relay wss://relay.damus.io --relay wss://nos.lol
    python -m relaypool subscribe --config config/relays.yaml --kind 1 --limit 20 --once
    RELAYPOOL_PRIVATE_KEY=... python -m relaypool publish --content "hello"
    python -m relaypool publish --event signed_event.json
    ```
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from relaypool.client import RelayPool, RelayPoolConfig
from relaypool.core.exceptions import ConfigurationError
from relaypool.core.logger import Logger, StructuredFormatter
from relaypool.core.yaml import load_yaml
from relaypool.models import Event, EventPayload, Filter, RelayEndpoint
from relaypool.utils.keys import ENV_PRIVATE_KEY, KeysSigner, load_keys_from_env


DEFAULT_CONFIG = Path("config") / "relays.yaml"

logger = Logger("cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(prog="relaypool", description="Nostr relay pool client")

    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Pool config path (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--relay",
        action="append",
        default=[],
        help="Relay URL to use (repeatable; added to the configured relays)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log level (default: WARNING)",
    )
    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=10.0,
        help="Seconds to wait for a first relay (default: 10)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    sub = commands.add_parser("subscribe", help="Print matching events as JSON lines")
    sub.add_argument("--kind", type=int, action="append", dest="kinds", help="Event kind")
    sub.add_argument("--author", action="append", dest="authors", help="Author pubkey (hex)")
    sub.add_argument("--since", type=int, help="Minimum created_at")
    sub.add_argument("--limit", type=int, help="Max stored events per relay")
    sub.add_argument(
        "--once", action="store_true", help="Exit after the stored backlog (first EOSE)"
    )

    pub = commands.add_parser("publish", help="Publish one event")
    source = pub.add_mutually_exclusive_group(required=True)
    source.add_argument("--event", type=Path, help="JSON file with a signed event")
    source.add_argument(
        "--content", help=f"Text note content, signed with the key in ${ENV_PRIVATE_KEY}"
    )
    pub.add_argument("--kind", type=int, default=1, help="Kind for --content (default: 1)")

    commands.add_parser("status", help="Connect and print each relay's state")

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Install a ``StructuredFormatter`` on the root handler (stderr)."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def build_config(args: argparse.Namespace) -> RelayPoolConfig:
    """Merge the YAML config (if present) with ``--relay`` flags."""
    data: dict[str, Any] = {}
    if args.config.exists():
        data = load_yaml(str(args.config))
    elif args.config != DEFAULT_CONFIG:
        raise FileNotFoundError(f"Config file not found: {args.config}")
    data["relays"] = [*data.get("relays", []), *args.relay]
    return RelayPoolConfig.model_validate(data)


def build_filter(args: argparse.Namespace) -> Filter:
    return Filter(kinds=args.kinds, authors=args.authors, since=args.since, limit=args.limit)


async def run_subscribe(pool: RelayPool, flt: Filter, *, once: bool) -> int:
    done = asyncio.Event()

    def print_event(event: Event, _sub_id: str, _relay: RelayEndpoint) -> None:
        print(event.to_json(), flush=True)

    pool.on_event(print_event)
    if once:
        pool.on_eose(lambda _sub_id, _relay: done.set())

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, done.set)

    pool.subscribe(flt)
    await done.wait()
    return 0


async def run_publish(pool: RelayPool, event: Event) -> int:
    result = await pool.publish(event)
    print(
        json.dumps(
            {
                "id": result.event_id,
                "success": result.success,
                "accepted": [str(r) for r in result.accepted_by],
                "rejected": {str(r): result.messages.get(r, "") for r in result.rejected_by},
                "unreachable": [str(r) for r in result.unreachable],
            }
        )
    )
    return 0 if result.success else 1


async def run_status(pool: RelayPool, timeout: float) -> int:  # noqa: ASYNC109
    try:
        async with asyncio.timeout(timeout):
            while pool.get_summary().connecting:
                await asyncio.sleep(0.1)
    except TimeoutError:
        pass
    for endpoint, stats in pool.get_relay_stats().items():
        line = f"{endpoint.url}\t{stats.state.value}"
        if stats.last_error:
            line += f"\t{stats.last_error}"
        print(line)
    return 0 if pool.is_connected else 1


def load_event(args: argparse.Namespace) -> Event:
    if args.event is not None:
        return Event.from_json(args.event.read_text(encoding="utf-8"))
    signer = KeysSigner(load_keys_from_env(ENV_PRIVATE_KEY))
    return signer.sign(EventPayload(kind=args.kind, content=args.content))


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, build the pool, run the command."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = build_config(args)
        event = load_event(args) if args.command == "publish" else None
        flt = build_filter(args) if args.command == "subscribe" else None
    except (ConfigurationError, OSError, ValueError) as e:
        logger.error("invalid_input", error=str(e))
        return 2

    if not config.relays:
        logger.error("no_relays", hint="pass --relay or set relays in the config file")
        return 2

    try:
        async with RelayPool(config) as pool:
            if args.command == "status":
                return await run_status(pool, args.connect_timeout)
            if not await pool.wait_connected(args.connect_timeout):
                logger.error("no_relay_reachable", relays=len(config.relays))
                return 1
            if event is not None:
                return await run_publish(pool, event)
            if flt is not None:
                return await run_subscribe(pool, flt, once=args.once)
            return 2
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
