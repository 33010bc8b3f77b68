from __future__ import annotations

import argparse
import asyncio
import logging
from contextlib import suppress

from backlight_control import __version__
from backlight_control.config import ConfigError, load_or_default
from backlight_control.controller import Controller, build_channel
from backlight_control.dbus_client import BacklightDbusClient
from backlight_control.paths import default_config_path
from backlight_control.system.backlight import discover

_CLIENT_COMMANDS = ("wake", "on", "off", "hold", "rediscover", "status", "watch")


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="backlight-control")
    ap.add_argument("--version", action="version", version=__version__)
    ap.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")

    sub = ap.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Run the backlight controller")
    run.add_argument("-c", "--config", default=str(default_config_path()))

    disc = sub.add_parser("discover", help="Find the backlight device once and print it")
    disc.add_argument("-c", "--config", default=str(default_config_path()))

    sub.add_parser("wake", help="Report user activity to the running controller")
    sub.add_parser("on", help="Force the screen on")
    sub.add_parser("off", help="Force the screen off (dimmed)")
    sub.add_parser("hold", help="Pause the idle timer until the next activity")
    sub.add_parser("rediscover", help="Retry backlight discovery")
    sub.add_parser("status", help="Show screen state and backlight path")
    sub.add_parser("watch", help="Print status lines as they arrive")

    return ap


def _setup_logging(level: str, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _discover_once(cfg: dict) -> int:
    channel = build_channel(cfg["shell"])
    try:
        if not channel.ensure_session():
            print("Root access failed")
            return 1
        device = discover(channel, str(cfg["backlight"]["base_dir"]))
    finally:
        channel.close()

    if device is None:
        print("No backlight path found")
        return 1
    print(f"Backlight path: {device.brightness_path}")
    print(f"Max brightness: {device.max_brightness}")
    return 0


async def _client(cmd: str) -> None:
    client = await BacklightDbusClient.connect()
    try:
        if cmd == "wake":
            await client.user_activity()
        elif cmd == "on":
            await client.screen_on()
        elif cmd == "off":
            await client.screen_off()
        elif cmd == "hold":
            await client.hold()
        elif cmd == "rediscover":
            await client.rediscover()
        elif cmd == "status":
            on = await client.is_screen_on()
            path = await client.backlight_path()
            print(f"Screen: {'on' if on else 'off'}")
            print(f"Backlight path: {path or 'not found'}")
        elif cmd == "watch":
            client.on_status_line(print)
            await asyncio.Event().wait()
    finally:
        await client.close()


def main() -> None:
    args = _build_parser().parse_args()

    if args.cmd in _CLIENT_COMMANDS:
        _setup_logging("WARNING", args.verbose)
        with suppress(KeyboardInterrupt):
            asyncio.run(_client(args.cmd))
        return

    try:
        cfg = load_or_default(args.config)
    except ConfigError as e:
        raise SystemExit(f"Invalid config {args.config}: {e}") from e
    _setup_logging(str(cfg["logging"]["level"]), args.verbose)

    if args.cmd == "discover":
        raise SystemExit(_discover_once(cfg))
    if args.cmd == "run":
        ctl = Controller(cfg)
        asyncio.run(ctl.run())
