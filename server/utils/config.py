"""
Server configuration module.

This module handles server-side configuration settings.
"""

import os
from typing import Optional

from common.constants import DEFAULT_SERVER_HOST, DEFAULT_PORT, BT_CHANNEL, LOG_DIR

_TRUTHY = ('1', 'true', 'yes', 'on')


class ServerConfig:
    """Server configuration class."""

    def __init__(self, host: str = DEFAULT_SERVER_HOST, port: int = DEFAULT_PORT,
                 secret_key: str = '', enable_bluetooth: bool = True,
                 bluetooth_channel: int = BT_CHANNEL, dry_run: bool = False,
                 logs_dir: str = LOG_DIR):
        self.host = host
        self.port = port
        self.secret_key = secret_key

        # Serial (Bluetooth RFCOMM) server
        self.enable_bluetooth = enable_bluetooth
        self.bluetooth_channel = bluetooth_channel

        # Log power commands instead of running them
        self.dry_run = dry_run

        # Logging configuration
        self.logs_dir = logs_dir

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Build a configuration from environment variables."""
        return cls(
            host=os.getenv('POWER_SERVER_HOST', DEFAULT_SERVER_HOST),
            port=int(os.getenv('POWER_SERVER_PORT', os.getenv('PORT', str(DEFAULT_PORT)))),
            secret_key=os.getenv('SHARED_SECRET_KEY', ''),
            # Enabled unless explicitly switched off
            enable_bluetooth=os.getenv('ENABLE_BLUETOOTH', 'true').lower() != 'false',
            bluetooth_channel=int(os.getenv('POWER_BT_CHANNEL', str(BT_CHANNEL))),
            dry_run=os.getenv('POWER_DRY_RUN', '0').lower() in _TRUTHY,
            logs_dir=os.getenv('POWER_LOG_DIR', LOG_DIR)
        )

    def update(self, host: Optional[str] = None, port: Optional[int] = None,
               secret_key: Optional[str] = None, enable_bluetooth: Optional[bool] = None,
               bluetooth_channel: Optional[int] = None, dry_run: Optional[bool] = None):
        """Override settings that were given explicitly (e.g. on the command line)."""
        if host is not None:
            self.host = host
        if port is not None:
            self.port = port
        if secret_key is not None:
            self.secret_key = secret_key
        if enable_bluetooth is not None:
            self.enable_bluetooth = enable_bluetooth
        if bluetooth_channel is not None:
            self.bluetooth_channel = bluetooth_channel
        if dry_run is not None:
            self.dry_run = dry_run

    def validate(self):
        """Reject configurations the server cannot run with."""
        if not self.secret_key or not self.secret_key.strip():
            raise ValueError("A shared secret key is required (set SHARED_SECRET_KEY or pass --secret)")
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}")
