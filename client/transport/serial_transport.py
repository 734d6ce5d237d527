"""
Serial (Bluetooth RFCOMM) transport.

At most one connection is alive per transport. Each request writes one
command line and waits for exactly one reply line; a second request on the
same connection while one is outstanding is refused rather than queued.
"""

import asyncio
from typing import List, Optional

from common.bluetooth import BluetoothCapability, PairedDevice, bluetooth
from common.constants import Actions, BT_CHANNEL, SERIAL_REPLY_TIMEOUT
from common.errors import (
    AuthRequiredError, ExecutorFailureError, InvalidCredentialError, RemotePowerError,
    RequestTimeoutError, TransportBusyError, TransportDisconnectedError, UnknownEndpointError,
    UnreachableError
)
from common.protocol_definitions import ActionOptions, ActionResponse
from common.serial_codec import decode_response, encode_command
from client.transport.base import ConnectionState, Transport
from client.utils.logger import logger


class SerialConnection:
    """An open link to one peer."""

    def __init__(self, peer: str, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.peer = peer
        self.reader = reader
        self.writer = writer
        self.lock = asyncio.Lock()
        self.closed = False

    async def request(self, line: str, timeout: float) -> str:
        """Write one line and read one reply line."""
        if self.lock.locked():
            raise TransportBusyError()
        async with self.lock:
            try:
                self.writer.write(line.encode('utf-8'))
                await self.writer.drain()
                reply = await asyncio.wait_for(self.reader.readline(), timeout=timeout)
            except asyncio.TimeoutError as e:
                # A late reply would be read as the answer to the next command
                self.closed = True
                raise RequestTimeoutError() from e
            except (ConnectionError, OSError) as e:
                self.closed = True
                raise TransportDisconnectedError("Connection lost") from e

            if not reply:
                self.closed = True
                raise TransportDisconnectedError("Connection lost")
            return reply.decode('utf-8', errors='replace')

    async def close(self):
        self.closed = True
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            pass


def error_for_reply(response: ActionResponse) -> RemotePowerError:
    """Typed error for a failure reply, matching the HTTP mapping."""
    message = response.message
    lowered = message.lower()
    if lowered.startswith('authentication required'):
        return AuthRequiredError(message)
    if lowered.startswith('authentication failed'):
        return InvalidCredentialError(message)
    if lowered.startswith('unknown action'):
        return UnknownEndpointError(message)
    return ExecutorFailureError(message or None)


class SerialTransport(Transport):
    """Sends actions over a Bluetooth serial link."""

    name = 'serial'

    def __init__(self, capability: Optional[BluetoothCapability] = None,
                 channel: int = BT_CHANNEL, reply_timeout: float = SERIAL_REPLY_TIMEOUT):
        super().__init__()
        self.capability = capability or bluetooth
        self.channel = channel
        self.reply_timeout = reply_timeout
        self.connection: Optional[SerialConnection] = None

    def is_available(self) -> bool:
        return self.capability.is_available()

    def has_target(self) -> bool:
        return self.is_connected()

    def is_connected(self) -> bool:
        return (self.connection is not None and not self.connection.closed
                and self.state == ConnectionState.CONNECTED)

    def describe_target(self) -> str:
        return self.connection.peer if self.connection else 'nothing'

    async def connect(self, target: str) -> bool:
        """Connect to a peer address, dropping any existing connection first."""
        await self.disconnect()
        self.state = ConnectionState.CONNECTING
        try:
            reader, writer = await self.capability.open_connection(target, self.channel)
        except RemotePowerError:
            self.state = ConnectionState.ERROR
            raise
        except OSError as e:
            self.state = ConnectionState.ERROR
            logger.log_connection(target, False)
            raise UnreachableError(f"Could not connect to {target}: {e}") from e

        self.connection = SerialConnection(target, reader, writer)
        self.state = ConnectionState.CONNECTED
        logger.log_connection(target, True)
        return True

    async def disconnect(self):
        await self._drop(ConnectionState.DISCONNECTED)

    async def _drop(self, state: ConnectionState):
        connection, self.connection = self.connection, None
        self.state = state
        if connection is not None:
            await connection.close()
            logger.info(f"Disconnected from {connection.peer}")

    async def send_action(self, action: str, credential: str,
                          options: Optional[ActionOptions] = None,
                          timeout: Optional[float] = None) -> ActionResponse:
        """Send one command line and decode the reply line."""
        if not self.is_connected():
            raise TransportDisconnectedError()

        if action in Actions.TIMED:
            line = encode_command(action, credential, options or ActionOptions())
        else:
            line = encode_command(action, credential)

        connection = self.connection
        logger.log_action_sent(action, f"{self.name} ({connection.peer})")
        try:
            reply = await connection.request(line, timeout or self.reply_timeout)
        except TransportDisconnectedError:
            await self.disconnect()
            raise
        except RequestTimeoutError:
            logger.warning(f"No reply to {action} from {connection.peer}; reconnect to continue")
            await self._drop(ConnectionState.ERROR)
            raise

        response = decode_response(reply)
        logger.log_action_result(action, response.success, response.message)
        if not response.success:
            raise error_for_reply(response)
        return response

    async def ping(self) -> ActionResponse:
        """Liveness check; the host answers without authentication."""
        return await self.send_action(Actions.PING, '')

    async def list_paired_devices(self) -> List[PairedDevice]:
        return await self.capability.list_paired_devices()
