"""
Networked (HTTP) transport.

Connectionless: every action is one self-contained request to the selected
host. ``connect`` only records the target and checks liveness.
"""

import asyncio
from typing import Optional, Tuple, Union

import aiohttp

from common.constants import (
    Actions, COMMAND_TIMEOUT, DEFAULT_PORT, LIVENESS_TIMEOUT, SECRET_HEADER
)
from common.errors import (
    AuthRequiredError, ExecutorFailureError, InvalidCredentialError, InvalidRequestError,
    MalformedResponseError, RemotePowerError, RequestTimeoutError, TransportDisconnectedError,
    UnknownEndpointError, UnreachableError
)
from common.protocol_definitions import ActionOptions, ActionResponse, HostStatus, create_action_body
from client.transport.base import ConnectionState, Transport
from client.utils.logger import logger

ERRORS_BY_STATUS = {
    400: InvalidRequestError,
    401: AuthRequiredError,
    403: InvalidCredentialError,
    404: UnknownEndpointError,
    500: ExecutorFailureError,
}


def error_for_status(status: int, body: Optional[dict]) -> RemotePowerError:
    """Typed error for a non-2xx reply."""
    error_cls = ERRORS_BY_STATUS.get(status)
    message = None
    code = None
    if isinstance(body, dict):
        message = body.get('message') or body.get('error')
        code = body.get('code')
    if error_cls is None:
        if status >= 500:
            error_cls = ExecutorFailureError
        else:
            return MalformedResponseError(f"Unexpected HTTP status {status}")
    if error_cls is ExecutorFailureError:
        return ExecutorFailureError(message, code=code)
    return error_cls(message)


class NetworkTransport(Transport):
    """Sends actions as HTTP requests."""

    name = 'wifi'

    def __init__(self, host: Optional[str] = None, port: int = DEFAULT_PORT,
                 command_timeout: float = COMMAND_TIMEOUT, liveness_timeout: float = LIVENESS_TIMEOUT):
        super().__init__()
        self.host = host
        self.port = port
        self.command_timeout = command_timeout
        self.liveness_timeout = liveness_timeout
        self.reachable = False

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def has_target(self) -> bool:
        return bool(self.host)

    def describe_target(self) -> str:
        return f"{self.host}:{self.port}" if self.host else 'nothing'

    async def connect(self, target: Union[str, Tuple[str, int]]) -> bool:
        """Select a host (``ip`` or ``(ip, port)``) and check that it answers."""
        if isinstance(target, tuple):
            self.host, self.port = target
        else:
            self.host = target
        self.state = ConnectionState.CONNECTING
        reachable = await self.check_connection()
        logger.log_connection(self.describe_target(), reachable)
        return reachable

    async def disconnect(self):
        self.reachable = False
        self.state = ConnectionState.DISCONNECTED

    async def check_connection(self) -> bool:
        """Liveness query against ``/health``."""
        if not self.has_target():
            return False
        try:
            data = await self._request('GET', '/health', timeout=self.liveness_timeout)
            self.reachable = isinstance(data, dict) and data.get('status') == 'ok'
        except RemotePowerError as e:
            logger.debug(f"Liveness check failed: {e}")
            self.reachable = False
        self.state = ConnectionState.CONNECTED if self.reachable else ConnectionState.ERROR
        return self.reachable

    async def send_action(self, action: str, credential: str,
                          options: Optional[ActionOptions] = None,
                          timeout: Optional[float] = None) -> ActionResponse:
        """Send one action and decode the reply."""
        if not self.has_target():
            raise TransportDisconnectedError("No PC selected")

        timeout = timeout or self.command_timeout
        logger.log_action_sent(action, f"{self.name} ({self.describe_target()})")
        if action == Actions.STATUS:
            data = await self._request('GET', '/api/status', timeout=timeout,
                                       headers={SECRET_HEADER: credential})
        else:
            data = await self._request('POST', f'/api/{action}', timeout=timeout,
                                       json=create_action_body(action, credential, options))

        response = ActionResponse.from_dict(data)
        logger.log_action_result(action, response.success, response.message)
        return response

    async def get_status(self, credential: str) -> HostStatus:
        """Fetch host status; raises MalformedResponseError if no status came back."""
        response = await self.send_action(Actions.STATUS, credential)
        if response.status is None:
            raise MalformedResponseError("Status reply carried no host information")
        return response.status

    async def _request(self, method: str, path: str, timeout: float, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
                async with session.request(method, url, **kwargs) as response:
                    try:
                        body = await response.json(content_type=None)
                    except ValueError:
                        body = None
                    if response.status >= 400:
                        raise error_for_status(response.status, body)
                    if body is None:
                        raise MalformedResponseError(f"Undecodable reply from {path}")
                    return body
        except asyncio.TimeoutError as e:
            self.reachable = False
            raise RequestTimeoutError() from e
        except aiohttp.ClientConnectorError as e:
            self.reachable = False
            raise UnreachableError() from e
        except aiohttp.ClientResponseError as e:
            raise MalformedResponseError(str(e)) from e
        except aiohttp.ClientError as e:
            self.reachable = False
            raise UnreachableError() from e
