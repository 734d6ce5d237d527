"""
Bluetooth RFCOMM capability.

Serial transport support depends on the interpreter having been built with
Bluetooth sockets. The capability is detected once at import time and
exposed through ``bluetooth``; callers ask ``is_available()`` instead of
trying and catching.
"""

import asyncio
import re
import socket
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Tuple

from common.constants import BT_CHANNEL, MAX_LINE_LENGTH
from common.errors import TransportUnavailableError

ClientConnectedCallback = Callable[[asyncio.StreamReader, asyncio.StreamWriter], Awaitable[None]]

_PAIRED_LINE = re.compile(r'^Device\s+([0-9A-Fa-f:]{17})\s*(.*)$')


@dataclass(frozen=True)
class PairedDevice:
    """A bonded Bluetooth peer."""
    address: str
    name: str = 'Unknown Device'


class BluetoothCapability(ABC):
    """Stream connections over a serial-style Bluetooth link."""

    name = 'bluetooth'

    @abstractmethod
    def is_available(self) -> bool:
        ...

    @abstractmethod
    async def open_connection(self, address: str, channel: int = BT_CHANNEL
                              ) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        ...

    @abstractmethod
    async def start_server(self, client_connected_cb: ClientConnectedCallback,
                           channel: int = BT_CHANNEL) -> asyncio.AbstractServer:
        ...

    @abstractmethod
    async def list_paired_devices(self) -> List[PairedDevice]:
        ...


class RfcommCapability(BluetoothCapability):
    """RFCOMM sockets from the standard library."""

    name = 'rfcomm'

    def is_available(self) -> bool:
        return True

    def _new_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_BLUETOOTH, socket.SOCK_STREAM, socket.BTPROTO_RFCOMM)
        sock.setblocking(False)
        return sock

    async def open_connection(self, address: str, channel: int = BT_CHANNEL
                              ) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        """Connect to a paired peer."""
        sock = self._new_socket()
        loop = asyncio.get_running_loop()
        try:
            await loop.sock_connect(sock, (address, channel))
        except BaseException:
            sock.close()
            raise
        return await asyncio.open_connection(sock=sock, limit=MAX_LINE_LENGTH)

    async def start_server(self, client_connected_cb: ClientConnectedCallback,
                           channel: int = BT_CHANNEL) -> asyncio.AbstractServer:
        """Listen for paired peers on a channel."""
        sock = self._new_socket()
        try:
            sock.bind((socket.BDADDR_ANY, channel))
            sock.listen(1)
        except OSError:
            sock.close()
            raise
        return await asyncio.start_server(client_connected_cb, sock=sock, limit=MAX_LINE_LENGTH)

    async def list_paired_devices(self) -> List[PairedDevice]:
        """List bonded peers via bluetoothctl, or nothing when it is missing."""
        try:
            proc = await asyncio.create_subprocess_exec(
                'bluetoothctl', 'devices', 'Paired',
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL
            )
        except OSError:
            return []
        stdout, _ = await proc.communicate()
        return parse_paired_devices(stdout.decode('utf-8', errors='replace'))


class UnavailableCapability(BluetoothCapability):
    """Stand-in used when the interpreter has no Bluetooth sockets."""

    name = 'unavailable'

    def is_available(self) -> bool:
        return False

    async def open_connection(self, address: str, channel: int = BT_CHANNEL):
        raise TransportUnavailableError()

    async def start_server(self, client_connected_cb: ClientConnectedCallback, channel: int = BT_CHANNEL):
        raise TransportUnavailableError()

    async def list_paired_devices(self) -> List[PairedDevice]:
        return []


def parse_paired_devices(output: str) -> List[PairedDevice]:
    """Parse `bluetoothctl devices` output lines."""
    devices = []
    for line in output.splitlines():
        match = _PAIRED_LINE.match(line.strip())
        if match:
            devices.append(PairedDevice(match.group(1).upper(), match.group(2).strip() or 'Unknown Device'))
    return devices


def detect_capability() -> BluetoothCapability:
    """Pick the capability this interpreter supports."""
    if hasattr(socket, 'AF_BLUETOOTH') and hasattr(socket, 'BTPROTO_RFCOMM'):
        return RfcommCapability()
    return UnavailableCapability()


# Selected once at startup
bluetooth = detect_capability()
