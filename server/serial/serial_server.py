"""
Serial server for the Bluetooth transport.

Reads newline-terminated commands from each connected peer, authenticates
and executes them one at a time, and writes exactly one reply line per
command.
"""

import asyncio
from typing import Dict, Optional

from common.bluetooth import BluetoothCapability, bluetooth
from common.constants import Actions, BT_CHANNEL, BT_SERVICE_NAME, BT_SPP_UUID
from common.errors import ExecutorFailureError, MalformedCommandError, UnknownEndpointError
from common.protocol_definitions import create_ping_message
from common.serial_codec import decode_command, encode_error, encode_ok, encode_payload
from server.auth.guard import AuthGuard, RejectReason
from server.executor.action_executor import ActionExecutor
from server.executor.host_info import HostInfo
from server.utils.logger import logger

TRANSPORT_NAME = 'bluetooth'


class SerialServer:
    """Bluetooth RFCOMM command server."""

    def __init__(self, guard: AuthGuard, executor: ActionExecutor,
                 capability: Optional[BluetoothCapability] = None, channel: int = BT_CHANNEL,
                 host_info: Optional[HostInfo] = None):
        self.guard = guard
        self.executor = executor
        self.capability = capability or bluetooth
        self.channel = channel
        self.host_info = host_info or executor.host_info
        self.server: Optional[asyncio.AbstractServer] = None

    def is_available(self) -> bool:
        return self.capability.is_available()

    def is_running(self) -> bool:
        return self.server is not None

    def get_status(self) -> Dict[str, bool]:
        """Get server status."""
        return {
            "available": self.is_available(),
            "running": self.is_running()
        }

    async def start(self) -> bool:
        """Start listening; returns False when Bluetooth cannot be used."""
        if not self.is_available():
            logger.warning("[BT] Bluetooth sockets not available on this system, serial server disabled")
            return False

        try:
            self.server = await self.capability.start_server(self.handle_client, self.channel)
        except OSError as e:
            logger.log_error("bluetooth server start", e)
            self.server = None
            return False

        paired = await self.capability.list_paired_devices()
        for device in paired:
            logger.info(f"[BT] Paired device: {device.name} ({device.address})")

        logger.info(f"[BT] Bluetooth server started: {BT_SERVICE_NAME} on RFCOMM channel {self.channel}")
        logger.info(f"[BT] SPP UUID {BT_SPP_UUID}; waiting for connections...")
        return True

    async def stop(self):
        """Stop the Bluetooth server."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
            logger.info("[BT] Bluetooth server stopped")

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """Serve one connected peer until it hangs up."""
        peer = writer.get_extra_info('peername')
        address = str(peer[0]) if isinstance(peer, tuple) else str(peer)
        logger.log_serial_connection(address, True)

        try:
            while True:
                try:
                    data = await reader.readline()
                except ValueError:
                    # Line exceeded the stream limit; the oversized data was discarded
                    writer.write(encode_error("Command too long").encode('utf-8'))
                    await writer.drain()
                    continue
                if not data:
                    break

                line = data.decode('utf-8', errors='replace').strip()
                if not line:
                    continue

                reply = await self.process_line(line, address)
                writer.write(reply.encode('utf-8'))
                await writer.drain()

        except asyncio.CancelledError:
            logger.info(f"[BT] Connection cancelled for {address}")
            raise
        except ConnectionError as e:
            logger.error(f"[BT] Socket error for {address}: {e}")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass
            logger.log_serial_connection(address, False)

    async def process_line(self, line: str, source: str = 'unknown') -> str:
        """Authenticate and execute one command line, returning the reply line."""
        try:
            command = decode_command(line)
        except MalformedCommandError:
            logger.warning(f"[BT] Malformed command from {source}")
            return encode_error("Invalid command format. Use: action:key:options")

        if command.action == Actions.PING:
            return encode_payload(create_ping_message(self.host_info.hostname()))

        result = self.guard.authenticate(command.credential, source=source)
        if not result.allowed:
            if result.reason is RejectReason.AUTH_REQUIRED:
                return encode_error("Authentication required")
            return encode_error("Authentication failed: Invalid key")

        if command.action not in Actions.ALL:
            return encode_error(f"Unknown action: {command.action}")

        try:
            options = command.to_options()
        except MalformedCommandError as e:
            return encode_error(str(e))

        logger.log_action(command.action, TRANSPORT_NAME, source, options.delay, options.force)
        try:
            response = await self.executor.execute(command.action, options)
        except UnknownEndpointError as e:
            return encode_error(str(e))
        except ExecutorFailureError as e:
            reason = e.__cause__ or e
            logger.log_action_result(command.action, TRANSPORT_NAME, source, False, str(reason))
            return encode_error(f"Action failed: {reason}")

        logger.log_action_result(command.action, TRANSPORT_NAME, source, True, response.message)
        if response.status is not None:
            return encode_payload(response.to_dict())
        return encode_ok(response.message)
