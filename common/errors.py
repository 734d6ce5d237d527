"""
Error taxonomy for the Remote PC Power Control system.

Transport and network failures are caught at the transport boundary and
re-raised as one of these types, so callers never see raw socket or HTTP
library errors. Each type carries a machine-readable ``code`` and a
``user_message`` that distinguishes it from the other kinds.
"""

from typing import Optional

from common.constants import ErrorCodes


class RemotePowerError(Exception):
    """Base class for all typed errors."""

    code = 'ERROR'
    user_message = 'Something went wrong.'

    def __init__(self, detail: Optional[str] = None, code: Optional[str] = None):
        self.detail = detail
        if code is not None:
            self.code = code
        super().__init__(detail or self.user_message)

    def to_dict(self) -> dict:
        """Serialize as an error response body."""
        return {
            "success": False,
            "message": self.detail or self.user_message,
            "code": self.code
        }


class AuthRequiredError(RemotePowerError):
    code = ErrorCodes.AUTH_REQUIRED
    user_message = 'Authentication required. Please check your secret key.'


class InvalidCredentialError(RemotePowerError):
    code = ErrorCodes.INVALID_KEY
    user_message = 'Invalid secret key. Access denied.'


class UnreachableError(RemotePowerError):
    code = ErrorCodes.UNREACHABLE
    user_message = ("Cannot reach host. Make sure the service is running "
                    "and you're on the same network.")


class RequestTimeoutError(RemotePowerError):
    code = ErrorCodes.TIMEOUT
    user_message = 'Connection timed out. Check the address and that the host is reachable.'


class TransportDisconnectedError(RemotePowerError):
    code = ErrorCodes.DISCONNECTED
    user_message = 'Not connected to any device. Please connect first.'


class TransportBusyError(RemotePowerError):
    code = ErrorCodes.BUSY
    user_message = 'Another command is still in progress on this connection.'


class TransportUnavailableError(RemotePowerError):
    code = ErrorCodes.UNAVAILABLE
    user_message = 'Bluetooth serial is not available on this system.'


class MalformedResponseError(RemotePowerError):
    code = ErrorCodes.MALFORMED_RESPONSE
    user_message = 'The host sent a reply that could not be understood.'


class MalformedCommandError(RemotePowerError):
    code = ErrorCodes.MALFORMED_COMMAND
    user_message = 'Invalid command format. Use: action:key:options'


class InvalidRequestError(RemotePowerError):
    code = ErrorCodes.INVALID_REQUEST
    user_message = 'The request was rejected as invalid.'


class UnknownEndpointError(RemotePowerError):
    code = ErrorCodes.NOT_FOUND
    user_message = 'Endpoint not found. Make sure the service is running the correct version.'


class ExecutorFailureError(RemotePowerError):
    code = 'ACTION_FAILED'
    user_message = 'Host rejected the command.'


class ScanExhaustedError(RemotePowerError):
    code = ErrorCodes.SCAN_EXHAUSTED
    user_message = ("Could not find any PC running the power service. Make sure "
                    "the PC is on the same network and the service is running.")
