#!/usr/bin/env python3
"""
DACP Remote - command-line interface

Commands:
  status                  - Show what is playing
  watch                   - Live monitoring (keeps the session alive)
  play / pause / playpause
  next / previous         - Skip tracks
  volume [0-100]          - Show or set the volume

Examples:
  dacp-remote status --host 192.168.1.20 --pairing 0123456789ABCDEF
  dacp-remote watch --config living_room.yaml --json
  dacp-remote volume 40 --config living_room.yaml
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

import voluptuous as vol

from .client import DacpClient
from .config import AccessoryConfig, load_config
from .const import DEFAULT_PORT
from .exceptions import DacpError
from .models import NowPlayingState, PlayerState
from .projection import get_status, now_playing
from .projectors import JsonLinesProjector, LoggingProjector
from .session import SessionLifecycleManager

COMMANDS = ["status", "watch", "play", "pause", "playpause", "next", "previous", "volume"]

logger = logging.getLogger("dacp_remote.cli")


def _format_time(milliseconds: Optional[int]) -> str:
    if milliseconds is None:
        return "--:--"
    seconds = max(milliseconds, 0) // 1000
    return f"{seconds // 60}:{seconds % 60:02d}"


def print_now_playing(state: Optional[NowPlayingState], name: str) -> None:
    """Print now-playing state for humans."""
    print("\n" + "=" * 60)
    print(f"{name}")
    print("=" * 60)

    if state is None or state.player_state is PlayerState.STOPPED:
        print("  Nothing playing")
        print()
        return

    print(f"  Track:    {state.track or '-'}")
    print(f"  Artist:   {state.artist or '-'}")
    print(f"  Album:    {state.album or '-'}")
    print(f"  Position: {_format_time(state.position)} / {_format_time(state.duration)}")
    print(f"  State:    {state.player_state.name.lower()}")
    print()


def print_error_json(message: str) -> None:
    error = {"error": message, "timestamp": datetime.now(timezone.utc).isoformat()}
    print(json.dumps(error, ensure_ascii=False))


def resolve_config(args: argparse.Namespace) -> AccessoryConfig:
    """
    Merge --config file and command-line overrides.

    Raises:
        ValueError: If the result is invalid or has no host
    """
    data = {}
    if args.config:
        data = {key: value for key, value in vars(load_config(args.config)).items()
                if value is not None}

    for key in ("name", "pairing", "host", "port"):
        value = getattr(args, key)
        if value is not None:
            data[key] = value
    data.setdefault("name", data.get("host") or "DACP")

    try:
        config = AccessoryConfig.from_dict(data)
    except vol.Invalid as err:
        raise ValueError(f"Invalid configuration: {err}") from err

    if config.endpoint is None:
        raise ValueError("No host given (use --host or set host in --config)")
    return config


async def run_status(client: DacpClient, config: AccessoryConfig, as_json: bool) -> int:
    """Log in, fetch one status update and print it."""
    await client.login(config.endpoint, config.pairing)
    server_info = await client.get_server_info()
    status = get_status(await client.get_update())
    state = now_playing(status) if status is not None else None

    volume = None
    if config.volume_control:
        volume = await client.get_volume()

    if as_json:
        output = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "host": str(config.endpoint),
            "server": server_info.name,
            "now_playing": state.as_dict() if state else None,
            "volume": volume,
        }
        print(json.dumps(output, ensure_ascii=False, indent=2))
    else:
        print_now_playing(state, server_info.name or config.name)
        if volume is not None:
            print(f"  Volume:   {volume}")
            print()
    return 0


async def run_watch(client: DacpClient, config: AccessoryConfig, as_json: bool) -> int:
    """Keep a session alive and report every update until interrupted."""
    if as_json:
        projector = JsonLinesProjector(str(config.endpoint))
    else:
        projector = LoggingProjector(config.name, logger)

    stopped = asyncio.Event()

    manager = SessionLifecycleManager(
        client,
        config.name,
        config.pairing,
        projector,
        projector,
        projector if config.volume_control else None,
        connect_policy=config.connect_policy,
        failure_policy=config.failure_policy,
        reset_failures_on_success=config.reset_failures_on_success,
        on_give_up=lambda cause: stopped.set(),
    )
    manager.service_up(config.endpoint)

    try:
        await stopped.wait()
    finally:
        await manager.shutdown()

    return 1


async def run_command(client: DacpClient, config: AccessoryConfig, command: str,
                      value: Optional[int], as_json: bool) -> int:
    """Log in, run one transport or volume command, log out."""
    await client.login(config.endpoint, config.pairing)

    if command == "play":
        # The first update returns at once and tells play() the current state
        await client.get_update()
        await client.play()
    elif command == "pause":
        await client.pause()
    elif command == "playpause":
        await client.play_pause()
    elif command == "next":
        await client.next_item()
    elif command == "previous":
        await client.previous_item()
    elif command == "volume":
        if value is not None:
            await client.set_volume(value)
        volume = await client.get_volume()
        if as_json:
            print(json.dumps({"volume": volume}))
        else:
            print(f"Volume: {volume}")
        return 0

    if not as_json:
        print(f"✔ {command}")
    return 0


async def async_main(args: argparse.Namespace) -> int:
    config = resolve_config(args)
    client = DacpClient(debug=args.debug)

    try:
        if args.command == "status":
            return await run_status(client, config, args.json)
        if args.command == "watch":
            return await run_watch(client, config, args.json)
        return await run_command(client, config, args.command, args.value, args.json)
    finally:
        await client.close()


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="DACP Remote - control and monitor iTunes / Music.app",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s status --host 192.168.1.20 --pairing 0123456789ABCDEF
  %(prog)s watch --config living_room.yaml --json
  %(prog)s next --config living_room.yaml
  %(prog)s volume 40 --config living_room.yaml
        """
    )

    parser.add_argument('command', choices=COMMANDS, help='Command to execute')
    parser.add_argument('value', nargs='?', type=int, help='Volume (0-100) for the volume command')
    parser.add_argument('--config', help='Path to a YAML accessory configuration')
    parser.add_argument('--host', help='DACP server host')
    parser.add_argument('--port', type=int, help=f'DACP server port (default: {DEFAULT_PORT})')
    parser.add_argument('--pairing', help='Pairing GUID (16 hex characters)')
    parser.add_argument('--name', help='Device name used in output and logs')
    parser.add_argument('--json', action='store_true', help='Output in JSON format')
    parser.add_argument('--debug', action='store_true', help='Enable debug output')

    args = parser.parse_args(argv)

    # JSON mode keeps stdout machine readable
    if args.json:
        logging.basicConfig(level=logging.CRITICAL + 1)
    elif args.debug:
        logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    if args.value is not None and args.command != "volume":
        parser.error(f"{args.command} does not take a value")

    try:
        return asyncio.run(async_main(args))

    except KeyboardInterrupt:
        if not args.json:
            print("\n\n✔ Interrupted by user")
        return 0

    except (DacpError, ValueError, FileNotFoundError) as e:
        if args.json:
            print_error_json(str(e))
        else:
            print(f"❌ Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
