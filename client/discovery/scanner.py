"""
Discovery scanner.

Finds hosts running the power service by probing ``/health`` on every
address of a few likely /24 ranges. Addresses are probed in batches: all
probes of a batch run concurrently, batches run one after another, so at
most ``batch_size`` probes are ever in flight. Progress is reported after
every batch so callers can show partial results during long scans.
"""

import asyncio
import inspect
import ipaddress
import socket
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Tuple

import aiohttp

from common.constants import (
    DEFAULT_PORT, HOTSPOT_PREFIXES, LIVENESS_TIMEOUT,
    QUICK_SCAN_HOST_LIMIT, QUICK_SCAN_BATCH_SIZE, QUICK_SCAN_TIMEOUT,
    BROAD_SCAN_BATCH_SIZE, BROAD_SCAN_TIMEOUT,
    SUBNET_SCAN_BATCH_SIZE, SUBNET_SCAN_TIMEOUT
)
from common.errors import ScanExhaustedError
from common.protocol_definitions import DeviceDescriptor
from client.utils.logger import logger

ProbeFunc = Callable[[aiohttp.ClientSession, str, int, float], Awaitable[Optional[DeviceDescriptor]]]
ProgressCallback = Callable[[float, List[DeviceDescriptor]], Any]


@dataclass(frozen=True)
class ScanPolicy:
    """Which ranges to scan and how hard."""
    name: str
    ranges: Tuple[str, ...]
    timeout: float
    batch_size: int
    host_limit: Optional[int] = None


@dataclass
class ScanSession:
    """State of one scan invocation."""
    ranges: List[str]
    timeout: float
    batch_size: int
    port: int
    addresses: List[str] = field(default_factory=list)
    probed: int = 0
    found: List[DeviceDescriptor] = field(default_factory=list)
    cancel_event: Optional[asyncio.Event] = None

    @property
    def total(self) -> int:
        return len(self.addresses)

    @property
    def fraction(self) -> float:
        return self.probed / self.total if self.total else 1.0

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def batches(self) -> Iterable[List[str]]:
        for start in range(0, self.total, self.batch_size):
            yield self.addresses[start:start + self.batch_size]

    def result(self) -> List[DeviceDescriptor]:
        return sorted(self.found, key=lambda device: device.response_time)


def expand_range(candidate: str, host_limit: Optional[int] = None) -> List[str]:
    """
    Host addresses of a /24-sized block.

    Accepts CIDR notation (``192.168.43.0/24``) or a three-octet prefix
    (``192.168.43``).
    """
    text = candidate.strip()
    if '/' not in text and text.count('.') == 2:
        text = f"{text}.0/24"
    network = ipaddress.ip_network(text, strict=False)
    if network.version != 4 or network.prefixlen < 24:
        raise ValueError(f"Scan ranges must be IPv4 blocks of /24 or smaller: {candidate}")
    hosts = [str(host) for host in network.hosts()]
    return hosts[:host_limit] if host_limit else hosts


def get_primary_local_ip() -> Optional[str]:
    """Address of the interface holding the default route, if any."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            # No packet is sent; connect() only selects the outgoing interface
            s.connect(('8.8.8.8', 80))
            return s.getsockname()[0]
    except OSError:
        return None


def local_subnet_prefix(local_ip: Optional[str]) -> Optional[str]:
    """Three-octet prefix of a private IPv4 address, else None."""
    if not local_ip:
        return None
    try:
        address = ipaddress.ip_address(local_ip)
    except ValueError:
        return None
    if address.version != 4 or not address.is_private or address.is_loopback:
        return None
    return local_ip.rsplit('.', 1)[0]


def quick_policy() -> ScanPolicy:
    """Likely hotspot ranges, low addresses only."""
    return ScanPolicy('quick', tuple(HOTSPOT_PREFIXES), QUICK_SCAN_TIMEOUT,
                      QUICK_SCAN_BATCH_SIZE, QUICK_SCAN_HOST_LIMIT)


def broad_policy(local_ip: Optional[str] = None) -> ScanPolicy:
    """Full hotspot ranges plus the client's own subnet."""
    ranges = list(HOTSPOT_PREFIXES)
    prefix = local_subnet_prefix(local_ip)
    if prefix and prefix not in ranges:
        ranges.append(prefix)
    return ScanPolicy('broad', tuple(ranges), BROAD_SCAN_TIMEOUT, BROAD_SCAN_BATCH_SIZE)


async def probe_health(session: aiohttp.ClientSession, ip: str, port: int,
                       timeout: float) -> Optional[DeviceDescriptor]:
    """Probe one address; only a reply carrying the service signature counts."""
    started = time.monotonic()
    try:
        async with session.get(f"http://{ip}:{port}/health",
                               timeout=aiohttp.ClientTimeout(total=timeout)) as response:
            if response.status != 200:
                return None
            data = await response.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError):
        return None

    if not isinstance(data, dict) or data.get('status') != 'ok':
        return None
    hostname = data.get('hostname')
    return DeviceDescriptor(
        ip=ip,
        port=port,
        hostname=hostname if isinstance(hostname, str) else None,
        response_time=time.monotonic() - started,
        has_service=True
    )


class DiscoveryScanner:
    """Finds hosts running the power service."""

    def __init__(self, port: int = DEFAULT_PORT, probe: Optional[ProbeFunc] = None,
                 local_ip_resolver: Callable[[], Optional[str]] = get_primary_local_ip):
        self.port = port
        self.probe = probe or probe_health
        self.local_ip_resolver = local_ip_resolver

    async def scan(self, candidate_ranges: Iterable[str], per_probe_timeout: float, batch_size: int,
                   on_progress: Optional[ProgressCallback] = None, host_limit: Optional[int] = None,
                   cancel_event: Optional[asyncio.Event] = None, port: Optional[int] = None
                   ) -> List[DeviceDescriptor]:
        """
        Scan the given ranges and return matching hosts sorted by latency.

        Args:
            candidate_ranges: /24 blocks as CIDR or three-octet prefixes
            per_probe_timeout: seconds to wait for each probe
            batch_size: number of probes in flight at once
            on_progress: called after every batch with (fraction, findings so far);
                may be a coroutine function
            host_limit: only probe the first N addresses of each range
            cancel_event: when set, the scan stops before the next batch
            port: service port (default: the scanner's port)
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if per_probe_timeout <= 0:
            raise ValueError("per_probe_timeout must be positive")

        ranges = list(candidate_ranges)
        session = ScanSession(ranges=ranges, timeout=per_probe_timeout, batch_size=batch_size,
                              port=port or self.port, cancel_event=cancel_event)
        for candidate in ranges:
            session.addresses.extend(expand_range(candidate, host_limit))

        connector = aiohttp.TCPConnector(limit=batch_size)
        async with aiohttp.ClientSession(connector=connector) as http:
            for batch in session.batches():
                if session.cancelled:
                    logger.info(f"[SCAN] Cancelled after {session.probed}/{session.total} address(es)")
                    break

                results = await asyncio.gather(
                    *(self.probe(http, ip, session.port, session.timeout) for ip in batch)
                )
                session.found.extend(device for device in results if device is not None)
                session.probed += len(batch)

                logger.log_scan_progress(session.fraction, session.found)
                if on_progress is not None:
                    outcome = on_progress(session.fraction, list(session.found))
                    if inspect.isawaitable(outcome):
                        await outcome

        return session.result()

    async def scan_policy(self, policy: ScanPolicy, on_progress: Optional[ProgressCallback] = None,
                          cancel_event: Optional[asyncio.Event] = None) -> List[DeviceDescriptor]:
        """Scan with the ranges, timeout and batch size of a policy."""
        total = sum(len(expand_range(r, policy.host_limit)) for r in policy.ranges)
        logger.log_scan_start(policy.name, total)
        return await self.scan(policy.ranges, policy.timeout, policy.batch_size, on_progress,
                               host_limit=policy.host_limit, cancel_event=cancel_event)

    async def discover(self, on_progress: Optional[ProgressCallback] = None,
                       cancel_event: Optional[asyncio.Event] = None) -> List[DeviceDescriptor]:
        """
        Quick scan first, broad scan only if the quick one found nothing.

        Raises:
            ScanExhaustedError: neither policy found a host.
        """
        found = await self.scan_policy(quick_policy(), on_progress, cancel_event)
        if found or (cancel_event is not None and cancel_event.is_set()):
            logger.log_scan_result(found)
            return found

        logger.info("[SCAN] Quick scan found nothing, trying broader scan...")
        found = await self.scan_policy(broad_policy(self.local_ip_resolver()), on_progress, cancel_event)
        if found or (cancel_event is not None and cancel_event.is_set()):
            logger.log_scan_result(found)
            return found

        logger.warning("[SCAN] No PCs found with the power service")
        raise ScanExhaustedError()

    async def scan_subnet(self, prefix: str, on_progress: Optional[ProgressCallback] = None,
                          cancel_event: Optional[asyncio.Event] = None) -> List[DeviceDescriptor]:
        """Scan one specified range."""
        return await self.scan([prefix], SUBNET_SCAN_TIMEOUT, SUBNET_SCAN_BATCH_SIZE, on_progress,
                               cancel_event=cancel_event)

    async def test_connection(self, ip: str, port: Optional[int] = None) -> Optional[DeviceDescriptor]:
        """Probe a single address with the liveness timeout."""
        async with aiohttp.ClientSession() as http:
            return await self.probe(http, ip, port or self.port, LIVENESS_TIMEOUT)
