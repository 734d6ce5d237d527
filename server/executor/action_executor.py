"""
Action executor.

Maps each authenticated action to exactly one power control call and
produces the structured response shared by both transports. Failures are
reported, never retried: a retried shutdown could be scheduled twice.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from common.constants import Actions, ErrorCodes
from common.errors import ExecutorFailureError, UnknownEndpointError
from common.protocol_definitions import ActionOptions, ActionResponse, utc_timestamp
from server.executor.host_info import HostInfo
from server.executor.power_control import PowerControlSurface
from server.utils.logger import logger

FAILURE_MESSAGES = {
    Actions.SHUTDOWN: "Failed to initiate shutdown",
    Actions.RESTART: "Failed to initiate restart",
    Actions.SLEEP: "Failed to initiate sleep mode",
    Actions.HIBERNATE: "Failed to initiate hibernate mode",
    Actions.LOGOUT: "Failed to logout",
    Actions.STATUS: "Failed to get system status",
}


class ActionExecutor:
    """Runs authenticated actions against the power control surface."""

    def __init__(self, power_control: PowerControlSurface, host_info: Optional[HostInfo] = None,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.power_control = power_control
        self.host_info = host_info or HostInfo()
        self.clock = clock

    async def execute(self, action: str, options: Optional[ActionOptions] = None) -> ActionResponse:
        """
        Execute one action.

        Raises:
            UnknownEndpointError: the action is not one of the supported actions.
            ExecutorFailureError: the power call or introspection failed; the
                original exception is chained as ``__cause__``.
        """
        options = options or ActionOptions()

        if action == Actions.CANCEL:
            return await self._cancel()
        if action not in Actions.ALL:
            raise UnknownEndpointError(f"Unknown action: {action}")

        try:
            if action == Actions.SHUTDOWN:
                await self.power_control.shutdown(options.delay, options.force)
                return self._timed_response("Shutdown", options.delay)
            if action == Actions.RESTART:
                await self.power_control.restart(options.delay, options.force)
                return self._timed_response("Restart", options.delay)
            if action == Actions.SLEEP:
                await self.power_control.suspend('sleep')
                return ActionResponse(True, "Sleep mode initiated")
            if action == Actions.HIBERNATE:
                await self.power_control.suspend('hibernate')
                return ActionResponse(True, "Hibernate mode initiated")
            if action == Actions.LOGOUT:
                await self.power_control.logout()
                return ActionResponse(True, "Logging out...")
            return ActionResponse(True, "Status retrieved", status=self.host_info.collect())
        except Exception as e:
            logger.log_error(action, e)
            raise ExecutorFailureError(FAILURE_MESSAGES[action],
                                       code=ErrorCodes.action_failed(action)) from e

    async def _cancel(self) -> ActionResponse:
        # Cancelling with nothing scheduled fails on most platforms; cancel is idempotent
        try:
            await self.power_control.cancel()
        except Exception as e:
            logger.info(f"[CANCEL] Cancel returned an error (probably nothing scheduled): {e}")
        return ActionResponse(True, "Scheduled shutdown/restart cancelled")

    def _timed_response(self, label: str, delay: int) -> ActionResponse:
        if delay > 0:
            scheduled = utc_timestamp(self.clock() + timedelta(seconds=delay))
            return ActionResponse(True, f"{label} scheduled in {delay} seconds", scheduled_time=scheduled)
        return ActionResponse(True, f"{label} initiated immediately")
