#!/usr/bin/env python3
"""
Remote PC Power Control Server - Main Entry Point

Listens for power commands from the phone app over:
- WiFi (HTTP), on all interfaces
- Bluetooth (RFCOMM serial), when the system supports it

Usage:
    python main_server.py --secret KEY

Optional arguments:
    --host HOST           Bind address (default: 0.0.0.0)
    --port PORT           HTTP port (default: 3000)
    --secret KEY          Shared secret (default: $SHARED_SECRET_KEY)
    --no-bluetooth        Do not start the Bluetooth serial server
    --channel N           RFCOMM channel (default: 1)
    --dry-run             Log power commands instead of running them
    --debug               Verbose logging
"""

import argparse
import asyncio
import logging
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from server.main_server import PowerControlServer
from server.utils.config import ServerConfig
from server.utils.logger import logger


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Remote PC Power Control Server')
    parser.add_argument('--host', type=str, default=None,
                        help='Host to bind to (default: 0.0.0.0)')
    parser.add_argument('--port', type=int, default=None,
                        help='HTTP port (default: 3000)')
    parser.add_argument('--secret', type=str, default=None,
                        help='Shared secret key (default: $SHARED_SECRET_KEY)')
    parser.add_argument('--no-bluetooth', action='store_true',
                        help='Disable the Bluetooth serial server')
    parser.add_argument('--channel', type=int, default=None,
                        help='RFCOMM channel for the Bluetooth server (default: 1)')
    parser.add_argument('--dry-run', action='store_true',
                        help='Log power commands instead of executing them')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')

    args = parser.parse_args()

    if args.debug:
        logger.set_level(logging.DEBUG)

    config = ServerConfig.from_env()
    config.update(
        host=args.host,
        port=args.port,
        secret_key=args.secret,
        enable_bluetooth=False if args.no_bluetooth else None,
        bluetooth_channel=args.channel,
        dry_run=True if args.dry_run else None
    )

    try:
        server = PowerControlServer(config)
    except ValueError as e:
        logger.error(f"[ERROR] {e}")
        sys.exit(2)

    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        logger.info("Server shutting down...")


if __name__ == "__main__":
    main()
