"""
HTTP server for the networked transport.

Routes:
    GET  /health          liveness, no authentication
    POST /api/<action>    shutdown, restart, sleep, hibernate, logout, cancel
    GET  /api/status      host status (credential usually in X-Shared-Secret)
"""

import json
from typing import Callable, Dict, Optional

from aiohttp import web

from common.constants import Actions, ErrorCodes
from common.errors import (
    AuthRequiredError, ExecutorFailureError, InvalidCredentialError,
    InvalidRequestError, RemotePowerError, UnknownEndpointError
)
from common.protocol_definitions import ActionOptions, create_error_response, create_health_message
from server.auth.guard import AuthGuard
from server.executor.action_executor import ActionExecutor
from server.executor.host_info import HostInfo
from server.utils.logger import logger

TRANSPORT_NAME = 'http'

STATUS_CODES = {
    AuthRequiredError: 401,
    InvalidCredentialError: 403,
    UnknownEndpointError: 404,
    InvalidRequestError: 400,
    ExecutorFailureError: 500,
}


def status_for(error: RemotePowerError) -> int:
    """HTTP status code for a typed error."""
    for error_type, status in STATUS_CODES.items():
        if isinstance(error, error_type):
            return status
    return 500


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Turn every failure into a JSON error body."""
    try:
        return await handler(request)
    except (web.HTTPNotFound, web.HTTPMethodNotAllowed):
        return web.json_response(create_error_response("Endpoint not found", ErrorCodes.NOT_FOUND), status=404)
    except RemotePowerError as e:
        return web.json_response(e.to_dict(), status=status_for(e))
    except web.HTTPException:
        raise
    except Exception as e:
        logger.log_error(f"{request.method} {request.path}", e)
        return web.json_response(create_error_response("Internal server error", 'INTERNAL_ERROR'), status=500)


class HttpServer:
    """Networked transport server."""

    def __init__(self, guard: AuthGuard, executor: ActionExecutor, host: str = '0.0.0.0', port: int = 3000,
                 host_info: Optional[HostInfo] = None,
                 serial_info: Optional[Callable[[], Dict[str, bool]]] = None):
        self.guard = guard
        self.executor = executor
        self.host = host
        self.port = port
        self.host_info = host_info or executor.host_info
        self.serial_info = serial_info or (lambda: {"available": False, "enabled": False, "running": False})
        self.runner: Optional[web.AppRunner] = None

    def create_app(self) -> web.Application:
        """Build the aiohttp application."""
        app = web.Application(middlewares=[error_middleware])
        app.add_routes([web.get('/health', self.handle_health)])
        app.add_routes([web.post(f'/api/{action}', self.handle_action) for action in Actions.POWER])
        app.add_routes([web.get(f'/api/{Actions.STATUS}', self.handle_action)])
        return app

    async def handle_health(self, request: web.Request) -> web.Response:
        """Unauthenticated liveness probe used by discovery."""
        return web.json_response(create_health_message(self.host_info.hostname(), self.serial_info()))

    async def handle_action(self, request: web.Request) -> web.Response:
        """Authenticate, then execute the action named by the route."""
        action = request.path.rsplit('/', 1)[-1]
        source = request.remote or 'unknown'
        body = await self._read_body(request)

        result = self.guard.authenticate_request(body, request.headers, source=source)
        if not result.allowed:
            raise result.to_error()

        options = ActionOptions.from_dict(body) if action in Actions.TIMED else ActionOptions()
        logger.log_action(action, TRANSPORT_NAME, source, options.delay, options.force)

        try:
            response = await self.executor.execute(action, options)
        except ExecutorFailureError as e:
            logger.log_action_result(action, TRANSPORT_NAME, source, False, f"{e}: {e.__cause__}")
            raise

        logger.log_action_result(action, TRANSPORT_NAME, source, True, response.message)
        return web.json_response(response.to_dict())

    async def _read_body(self, request: web.Request) -> dict:
        if not request.can_read_body:
            return {}
        raw = await request.read()
        if not raw.strip():
            return {}
        try:
            body = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise InvalidRequestError("Malformed JSON")
        if not isinstance(body, dict):
            raise InvalidRequestError("Request body must be a JSON object")
        return body

    async def start(self):
        """Start listening."""
        self.runner = web.AppRunner(self.create_app())
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info(f"HTTP server listening on http://{self.host}:{self.port}")

    async def stop(self):
        """Stop listening and release the port."""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("HTTP server stopped")
