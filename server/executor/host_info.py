"""
Host introspection for the status action.
"""

import platform
import socket
import time
from typing import Dict, List, Optional

import psutil

from common.protocol_definitions import HostStatus, utc_timestamp

# Interfaces tried first when looking for the address a phone would reach
PRIORITY_INTERFACES = ['wi-fi', 'wifi', 'wireless', 'wlan', 'wlp', 'eth', 'enp', 'ethernet']


def format_uptime(seconds: float) -> str:
    """Format seconds as e.g. '1d 2h 3m'."""
    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    return ' '.join(parts) or '< 1m'


def format_bytes(num_bytes: int) -> str:
    """Format a byte count in gigabytes."""
    return f"{num_bytes / (1024 ** 3):.2f} GB"


def get_local_ip(interfaces: Optional[Dict[str, List]] = None) -> str:
    """Return the host's most likely LAN IPv4 address."""
    if interfaces is None:
        interfaces = psutil.net_if_addrs()

    def ipv4_addresses(addrs):
        for addr in addrs:
            if addr.family == socket.AF_INET and not addr.address.startswith('127.'):
                yield addr.address

    for priority in PRIORITY_INTERFACES:
        for name, addrs in interfaces.items():
            if priority in name.lower():
                for address in ipv4_addresses(addrs):
                    return address

    for addrs in interfaces.values():
        for address in ipv4_addresses(addrs):
            return address

    return '127.0.0.1'


class HostInfo:
    """Reads host name, platform, uptime, memory and address."""

    def collect(self) -> HostStatus:
        uptime = max(0.0, time.time() - psutil.boot_time())
        memory = psutil.virtual_memory()
        return HostStatus(
            hostname=socket.gethostname(),
            platform=platform.system().lower(),
            release=platform.release(),
            uptime=int(uptime),
            uptime_formatted=format_uptime(uptime),
            total_memory=format_bytes(memory.total),
            free_memory=format_bytes(memory.available),
            cpus=psutil.cpu_count() or 0,
            local_ip=get_local_ip(),
            timestamp=utc_timestamp()
        )

    def hostname(self) -> str:
        return socket.gethostname()
