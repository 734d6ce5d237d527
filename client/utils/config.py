"""
Client configuration module.

This module handles client-side configuration settings.
"""

import os
from typing import Optional

from common.constants import (
    DEFAULT_HOST, DEFAULT_PORT, BT_CHANNEL, COMMAND_TIMEOUT, LIVENESS_TIMEOUT,
    SERIAL_REPLY_TIMEOUT, COUNTDOWN_TICK
)

MODE_WIFI = 'wifi'
MODE_SERIAL = 'serial'


class ClientConfig:
    """Client configuration class."""

    def __init__(self, host: Optional[str] = DEFAULT_HOST, port: int = DEFAULT_PORT,
                 secret_key: str = '', mode: str = MODE_WIFI,
                 peer_address: Optional[str] = None):
        self.host = host
        self.port = port
        self.secret_key = secret_key

        # Transport selection
        self.mode = mode
        self.peer_address = peer_address
        self.bluetooth_channel = BT_CHANNEL

        # Action defaults
        self.default_delay = 0
        self.force = False

        # Timeouts (seconds)
        self.command_timeout = COMMAND_TIMEOUT
        self.liveness_timeout = LIVENESS_TIMEOUT
        self.serial_timeout = SERIAL_REPLY_TIMEOUT
        self.countdown_tick = COUNTDOWN_TICK

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build a configuration from environment variables."""
        config = cls(
            host=os.getenv('POWER_HOST', DEFAULT_HOST),
            port=int(os.getenv('POWER_PORT', str(DEFAULT_PORT))),
            secret_key=os.getenv('SHARED_SECRET_KEY', ''),
            mode=os.getenv('POWER_CLIENT_MODE', MODE_WIFI),
            peer_address=os.getenv('POWER_BT_PEER') or None
        )
        config.default_delay = int(os.getenv('POWER_DEFAULT_DELAY', '0'))
        return config
