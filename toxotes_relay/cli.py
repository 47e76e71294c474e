"""Command-line interface for toxotes-relay."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from . import constants
from .adapters import SqliteDeviceStore
from .app import RelayStateApp
from .config import RelayConfig, load_config
from .core.models import PowerState
from .errors import RelayStateError
from .logging import configure_logging

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toxotes-relay", description="Relay state reconciliation for toxotes things"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("start", help="Start the relay service and HTTP API")

    send_parser = subparsers.add_parser("send", help="Apply a single relay command")
    send_parser.add_argument("payload", help="1, 0, true, false, on or off")
    target = send_parser.add_mutually_exclusive_group()
    target.add_argument("--unique-id", help="Target a single thing, e.g. relay_ABCDEF")
    target.add_argument("--friendly-name", help="Target every thing with this name")
    send_parser.add_argument("--qos", help="MQTT QoS level (default: 2)")
    send_parser.add_argument("--retain", action="store_true", help="Retain the command")
    send_parser.add_argument(
        "--manual", action="store_true", help="Send as a manual (human) command"
    )

    subparsers.add_parser("init-db", help="Create the things table if missing")

    add_parser = subparsers.add_parser("add-thing", help="Register or update a thing")
    add_parser.add_argument("unique_id")
    add_parser.add_argument("--friendly-name", required=True)
    add_parser.add_argument("--host-id", required=True)
    add_parser.add_argument(
        "--manual-minutes",
        type=int,
        help="Length of the manual control window in minutes (new things default to 0)",
    )
    add_parser.add_argument("--current-value", choices=["on", "off"])

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    return parser


def build_message(args: argparse.Namespace) -> Dict[str, Any]:
    message: Dict[str, Any] = {"payload": args.payload}
    if args.unique_id:
        message["unique_id"] = args.unique_id
    if args.friendly_name:
        message["friendly_name"] = args.friendly_name
    if args.qos is not None:
        message["qos"] = args.qos
    if args.retain:
        message["retain"] = True
    if args.manual:
        message["manual"] = True
    return message


async def _send(config: RelayConfig, message: Dict[str, Any]) -> int:
    app = RelayStateApp(config)
    ready = await app.start_services(with_api=False)
    try:
        if not ready:
            LOGGER.error("Services unavailable; command not sent")
            return 1
        try:
            result = await app.send(message)
        except RelayStateError as exc:
            LOGGER.error("Command failed: %s", exc)
            return 1
        print(result.status.text)
        return 0 if result.persisted else 1
    finally:
        await app.stop_services()


async def _add_thing(config: RelayConfig, args: argparse.Namespace) -> None:
    store = SqliteDeviceStore(config.database.path)
    await store.connect()
    await store.upsert_device(
        args.unique_id,
        friendly_name=args.friendly_name,
        host_id=args.host_id,
        manual_control_for=args.manual_minutes,
        current_value=PowerState.parse(args.current_value),
    )


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.command == "start":
        RelayStateApp.start(config)
        return 0

    configure_logging(config.logging.level, log_network=config.logging.log_network)

    if args.command == "send":
        return asyncio.run(_send(config, build_message(args)))

    if args.command == "init-db":
        store = SqliteDeviceStore(config.database.path)
        try:
            asyncio.run(store.connect())
        except RelayStateError as exc:
            LOGGER.error("Database initialisation failed: %s", exc)
            return 1
        print(f"Things table ready in {config.database.path!s}")
        return 0

    if args.command == "add-thing":
        try:
            asyncio.run(_add_thing(config, args))
        except RelayStateError as exc:
            LOGGER.error("Registering %s failed: %s", args.unique_id, exc)
            return 1
        return 0

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
