"""
Remote PC Power Control Client.

Integrates discovery, both transports and the command dispatcher behind
one object the entry script (or a UI) drives.
"""

from typing import List, Optional

from common.bluetooth import BluetoothCapability, PairedDevice
from common.constants import Actions
from common.errors import MalformedResponseError, RemotePowerError, TransportDisconnectedError
from common.protocol_definitions import DeviceDescriptor, HostStatus
from client.discovery.scanner import DiscoveryScanner, ProgressCallback
from client.dispatcher.command_dispatcher import CommandDispatcher, DispatchResult, TickCallback
from client.transport.base import Transport
from client.transport.network_transport import NetworkTransport
from client.transport.serial_transport import SerialTransport
from client.utils.config import ClientConfig, MODE_SERIAL, MODE_WIFI
from client.utils.logger import logger


class PowerControlClient:
    """Main client class that integrates all functionality."""

    def __init__(self, config: ClientConfig, capability: Optional[BluetoothCapability] = None,
                 scanner: Optional[DiscoveryScanner] = None, on_tick: Optional[TickCallback] = None):
        self.config = config
        self.scanner = scanner or DiscoveryScanner(port=config.port)
        self.network = NetworkTransport(config.host, config.port,
                                        command_timeout=config.command_timeout,
                                        liveness_timeout=config.liveness_timeout)
        self.serial = SerialTransport(capability, channel=config.bluetooth_channel,
                                      reply_timeout=config.serial_timeout)
        self.dispatcher = CommandDispatcher(
            self.transport_for(config.mode),
            credential=config.secret_key,
            tick=config.countdown_tick,
            on_tick=on_tick,
            command_timeout=config.command_timeout
        )

    @property
    def transport(self) -> Transport:
        return self.dispatcher.transport

    def transport_for(self, mode: str) -> Transport:
        if mode == MODE_WIFI:
            return self.network
        if mode == MODE_SERIAL:
            return self.serial
        raise ValueError(f"Unknown mode: {mode} (expected {MODE_WIFI} or {MODE_SERIAL})")

    async def use_mode(self, mode: str):
        """Switch between WiFi and Bluetooth."""
        await self.dispatcher.set_transport(self.transport_for(mode))
        self.config.mode = mode

    async def discover(self, on_progress: Optional[ProgressCallback] = None) -> List[DeviceDescriptor]:
        """Find hosts and select the fastest one."""
        found = await self.scanner.discover(on_progress)
        if found:
            await self.select(found[0].ip, found[0].port)
        return found

    async def scan_subnet(self, prefix: str,
                          on_progress: Optional[ProgressCallback] = None) -> List[DeviceDescriptor]:
        return await self.scanner.scan_subnet(prefix, on_progress)

    async def select(self, ip: str, port: Optional[int] = None) -> bool:
        """Select a host for the WiFi transport; returns whether it answered."""
        self.config.host = ip
        self.config.port = port or self.config.port
        return await self.network.connect((ip, self.config.port))

    async def connect_serial(self, peer_address: Optional[str] = None) -> bool:
        """Connect the Bluetooth transport to a paired peer."""
        peer = peer_address or self.config.peer_address
        if not peer:
            raise TransportDisconnectedError("No Bluetooth device selected")
        self.config.peer_address = peer
        return await self.serial.connect(peer)

    async def press(self, action: str, delay: Optional[int] = None,
                    force: Optional[bool] = None) -> DispatchResult:
        """Press an action button with the configured defaults."""
        if delay is None:
            delay = self.config.default_delay if action in Actions.TIMED else 0
        if force is None:
            force = self.config.force
        return await self.dispatcher.press(action, delay=delay, force=force)

    async def status(self) -> HostStatus:
        """Fetch host status over the active transport."""
        result = await self.dispatcher.press(Actions.STATUS)
        if result.error is not None:
            raise result.error
        if not result.success:
            raise MalformedResponseError(result.message)
        if result.response is None or result.response.status is None:
            raise MalformedResponseError("Status reply carried no host information")
        return result.response.status

    async def ping(self) -> bool:
        """Liveness check over the active transport."""
        if self.transport is self.serial:
            try:
                response = await self.serial.ping()
            except RemotePowerError as e:
                logger.log_error("ping", e)
                return False
            return response.success
        return await self.network.check_connection()

    async def list_paired_devices(self) -> List[PairedDevice]:
        return await self.serial.list_paired_devices()

    async def close(self):
        await self.transport.disconnect()
