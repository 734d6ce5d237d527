#!/usr/bin/env python3
"""
Remote PC Power Control Client - Main Entry Point

Command-line remote for a PC running the power service, over:
- WiFi (HTTP)
- Bluetooth (RFCOMM serial)

Usage:
    python main_client.py scan
    python main_client.py subnet 192.168.1
    python main_client.py --host 192.168.43.5 --secret KEY status
    python main_client.py --host 192.168.43.5 --secret KEY action shutdown --delay 30
    python main_client.py --mode serial --peer AA:BB:CC:DD:EE:FF --secret KEY action sleep
    python main_client.py paired

Pressing Ctrl+C during a countdown cancels the action before anything is sent.
"""

import argparse
import asyncio
import logging
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from client.main_client import PowerControlClient
from client.utils.config import ClientConfig, MODE_SERIAL, MODE_WIFI
from client.utils.logger import logger
from common.constants import Actions
from common.errors import RemotePowerError


def print_devices(devices):
    if not devices:
        print("No PCs found")
        return
    for device in devices:
        print(f"{device.ip}:{device.port}  {device.hostname or 'unknown'}  "
              f"{device.response_time * 1000:.0f} ms")


def print_progress(fraction, found):
    print(f"\rScanning... {fraction * 100:3.0f}%  ({len(found)} found)", end='', flush=True)
    if fraction >= 1.0:
        print()


def print_tick(action, remaining):
    print(f"{action.capitalize()} in {remaining}s (Ctrl+C to cancel)")


async def run(args, config: ClientConfig) -> int:
    client = PowerControlClient(config, on_tick=print_tick)
    try:
        if args.command == 'scan':
            print_devices(await client.discover(on_progress=print_progress))
            return 0

        if args.command == 'subnet':
            devices = await client.scan_subnet(args.prefix, on_progress=print_progress)
            print_devices(devices)
            return 0 if devices else 1

        if args.command == 'paired':
            for device in await client.list_paired_devices():
                print(f"{device.address}  {device.name}")
            return 0

        if config.mode == MODE_SERIAL:
            await client.connect_serial()

        if args.command == 'ping':
            alive = await client.ping()
            print("Host is up" if alive else "Host did not answer")
            return 0 if alive else 1

        if args.command == 'status':
            status = await client.status()
            for key, value in status.to_dict().items():
                print(f"{key:16} {value}")
            return 0

        result = await client.press(args.name, delay=args.delay, force=args.force or None)
        print(f"[{result.outcome.name}] {result.message}")
        return 0 if result.success else 1
    except (RemotePowerError, ValueError) as e:
        print(f"[ERROR] {e}")
        return 1
    finally:
        await client.close()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Remote PC Power Control Client')
    parser.add_argument('--host', type=str, default=None,
                        help='PC address (default: $POWER_HOST or localhost)')
    parser.add_argument('--port', type=int, default=None,
                        help='Service port (default: 3000)')
    parser.add_argument('--secret', type=str, default=None,
                        help='Shared secret key (default: $SHARED_SECRET_KEY)')
    parser.add_argument('--mode', choices=[MODE_WIFI, MODE_SERIAL], default=None,
                        help='Transport to use (default: wifi)')
    parser.add_argument('--peer', type=str, default=None,
                        help='Bluetooth address of the PC for serial mode')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')

    commands = parser.add_subparsers(dest='command', required=True)
    commands.add_parser('scan', help='Find PCs running the power service')
    subnet = commands.add_parser('subnet', help='Scan one /24 subnet')
    subnet.add_argument('prefix', help='Subnet, e.g. 192.168.1 or 192.168.1.0/24')
    commands.add_parser('status', help='Show PC status')
    commands.add_parser('ping', help='Check that the PC answers')
    commands.add_parser('paired', help='List paired Bluetooth devices')
    action = commands.add_parser('action', help='Send a power action')
    action.add_argument('name', choices=[a for a in Actions.ALL if a != Actions.STATUS])
    action.add_argument('--delay', type=int, default=None,
                        help='Countdown in seconds before the action is sent')
    action.add_argument('--force', action='store_true',
                        help='Skip close prompts on the PC')

    args = parser.parse_args()

    if args.debug:
        logger.set_level(logging.DEBUG)

    config = ClientConfig.from_env()
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.secret is not None:
        config.secret_key = args.secret
    if args.mode:
        config.mode = args.mode
    if args.peer:
        config.peer_address = args.peer

    try:
        sys.exit(asyncio.run(run(args, config)))
    except KeyboardInterrupt:
        print("\n[INFO] Interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
