"""
Protocol definitions for the Remote PC Power Control system.

This module defines the message structures and data formats used in communication
between client and server components, over both the HTTP and the serial transport.
"""

from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone

from common.constants import Actions, SECRET_BODY_FIELD
from common.errors import InvalidRequestError, MalformedResponseError


def utc_timestamp(when: Optional[datetime] = None) -> str:
    """Return an ISO-8601 UTC timestamp with a trailing Z."""
    when = when or datetime.now(timezone.utc)
    return when.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


@dataclass(frozen=True)
class DeviceDescriptor:
    """A discovered host running the power service."""
    ip: str
    port: int
    hostname: Optional[str] = None
    response_time: float = 0.0  # seconds
    has_service: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ip": self.ip,
            "port": self.port,
            "hostname": self.hostname,
            "responseTime": round(self.response_time * 1000),
            "hasService": self.has_service
        }


@dataclass
class ActionOptions:
    """Options carried with an action request."""
    delay: int = 0
    force: bool = False

    def __post_init__(self):
        if isinstance(self.delay, bool) or not isinstance(self.delay, int) or self.delay < 0:
            raise InvalidRequestError(f"delay must be a non-negative integer, got {self.delay!r}")
        if not isinstance(self.force, bool):
            raise InvalidRequestError(f"force must be a boolean, got {self.force!r}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionOptions":
        """Build options from a JSON request body, validating types."""
        delay = data.get('delay', 0)
        force = data.get('force', False)
        if delay is None:
            delay = 0
        if force is None:
            force = False
        return cls(delay=delay, force=force)

    def to_wire(self) -> Dict[str, str]:
        """Options as string pairs for the serial command line."""
        return {
            "delay": str(self.delay),
            "force": "true" if self.force else "false"
        }


@dataclass
class ActionRequest:
    """A single action addressed to the host."""
    action: str
    credential: str
    options: ActionOptions = field(default_factory=ActionOptions)

    def __post_init__(self):
        if self.action not in Actions.ALL and self.action != Actions.PING:
            raise InvalidRequestError(f"Unknown action: {self.action}")


@dataclass
class HostStatus:
    """Introspection data returned by the status action."""
    hostname: str
    platform: str
    release: str = ''
    uptime: int = 0
    uptime_formatted: str = ''
    total_memory: str = ''
    free_memory: str = ''
    cpus: int = 0
    local_ip: str = ''
    timestamp: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hostname": self.hostname,
            "platform": self.platform,
            "release": self.release,
            "uptime": self.uptime,
            "uptimeFormatted": self.uptime_formatted,
            "totalMemory": self.total_memory,
            "freeMemory": self.free_memory,
            "cpus": self.cpus,
            "localIP": self.local_ip,
            "timestamp": self.timestamp
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HostStatus":
        return cls(
            hostname=str(data.get('hostname', '')),
            platform=str(data.get('platform', '')),
            release=str(data.get('release', '')),
            uptime=int(data.get('uptime', 0) or 0),
            uptime_formatted=str(data.get('uptimeFormatted', '')),
            total_memory=str(data.get('totalMemory', '')),
            free_memory=str(data.get('freeMemory', '')),
            cpus=int(data.get('cpus', 0) or 0),
            local_ip=str(data.get('localIP', '')),
            timestamp=str(data.get('timestamp', ''))
        )


@dataclass
class ActionResponse:
    """Outcome of an action, identical for both transports."""
    success: bool
    message: str
    scheduled_time: Optional[str] = None
    status: Optional[HostStatus] = None

    def __post_init__(self):
        # A failed action is never scheduled
        if not self.success:
            self.scheduled_time = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": self.success,
            "message": self.message
        }
        if self.scheduled_time:
            body["scheduledTime"] = self.scheduled_time
        if self.status is not None:
            body.update(self.status.to_dict())
        return body

    @classmethod
    def from_dict(cls, data: Any) -> "ActionResponse":
        """Decode a JSON response body from either transport."""
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Expected a JSON object, got {type(data).__name__}")
        success = data.get('success', True)
        if not isinstance(success, bool):
            raise MalformedResponseError(f"Invalid success flag: {success!r}")
        message = data.get('message') or data.get('error') or ''
        status = HostStatus.from_dict(data) if 'hostname' in data and 'platform' in data else None
        return cls(
            success=success,
            message=str(message),
            scheduled_time=data.get('scheduledTime'),
            status=status
        )


def create_action_body(action: str, credential: str, options: Optional[ActionOptions] = None) -> Dict[str, Any]:
    """Create the JSON request body for an action."""
    body: Dict[str, Any] = {SECRET_BODY_FIELD: credential}
    if action in Actions.TIMED:
        options = options or ActionOptions()
        body["delay"] = options.delay
        body["force"] = options.force
    return body


def create_error_response(message: str, code: str) -> Dict[str, Any]:
    """Create an error response body."""
    return {
        "success": False,
        "message": message,
        "code": code
    }


def create_health_message(hostname: str, serial_info: Dict[str, bool]) -> Dict[str, Any]:
    """Create the unauthenticated liveness reply."""
    return {
        "status": "ok",
        "message": "Remote power service is running",
        "hostname": hostname,
        "timestamp": utc_timestamp(),
        "serial": serial_info
    }


def create_ping_message(hostname: str) -> Dict[str, Any]:
    """Create the serial liveness reply."""
    return {
        "success": True,
        "message": "pong",
        "hostname": hostname
    }
