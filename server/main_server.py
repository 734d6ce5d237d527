"""
Remote PC Power Control Server.

Integrates the HTTP server and the optional Bluetooth serial server around
one authentication guard and one action executor.
"""

import asyncio
from typing import Optional

from common.bluetooth import BluetoothCapability, bluetooth
from server.auth.guard import AuthGuard
from server.executor.action_executor import ActionExecutor
from server.executor.host_info import HostInfo, get_local_ip
from server.executor.power_control import DryRunPowerControl, PowerControlSurface, SystemPowerControl
from server.serial.serial_server import SerialServer
from server.utils.config import ServerConfig
from server.utils.logger import logger
from server.web.http_server import HttpServer


class PowerControlServer:
    """Main server class that integrates both transports."""

    def __init__(self, config: ServerConfig, power_control: Optional[PowerControlSurface] = None,
                 capability: Optional[BluetoothCapability] = None, host_info: Optional[HostInfo] = None):
        config.validate()
        self.config = config
        logger.set_logs_dir(config.logs_dir)

        if power_control is None:
            power_control = DryRunPowerControl() if config.dry_run else SystemPowerControl()
        self.host_info = host_info or HostInfo()
        self.guard = AuthGuard(config.secret_key)
        self.executor = ActionExecutor(power_control, self.host_info)

        self.serial_server = SerialServer(self.guard, self.executor, capability or bluetooth,
                                          channel=config.bluetooth_channel, host_info=self.host_info)
        self.http_server = HttpServer(self.guard, self.executor, config.host, config.port,
                                      host_info=self.host_info, serial_info=self.serial_info)

        secret = config.secret_key.strip()
        logger.info(f"[AUTH] Expected key starts with: \"{secret[:3]}...\" (length: {len(secret)})")

    def serial_info(self):
        """Serial transport state reported by the health endpoint."""
        status = self.serial_server.get_status()
        status["enabled"] = self.config.enable_bluetooth
        return status

    async def start(self):
        """Start all servers."""
        await self.http_server.start()
        local_ip = get_local_ip()
        logger.info(f"WiFi (HTTP) server: http://{local_ip}:{self.config.port}")

        if self.config.enable_bluetooth:
            if await self.serial_server.start():
                logger.info("Bluetooth server: running")
            else:
                logger.info("Bluetooth server: not available (HTTP still works)")
        else:
            logger.info("Bluetooth server: disabled (ENABLE_BLUETOOTH=false)")

        if self.config.dry_run:
            logger.warning("Dry run: power commands are logged, not executed")

    async def stop(self):
        """Stop all servers."""
        await self.serial_server.stop()
        await self.http_server.stop()

    async def serve_forever(self):
        """Start and run until cancelled."""
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()
