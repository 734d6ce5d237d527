"""
Command dispatcher.

Each action has its own slot that moves IDLE -> COUNTING_DOWN -> EXECUTING
-> IDLE. Pressing an action that is counting down cancels it; nothing is
sent for a cancelled countdown. ``cancel`` never counts down.
"""

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from common.constants import Actions, COUNTDOWN_TICK
from common.errors import RemotePowerError
from common.protocol_definitions import ActionOptions, ActionRequest, ActionResponse
from client.transport.base import Transport
from client.utils.logger import logger

TickCallback = Callable[[str, int], Any]
# Returns a rejection message, or None when the action may proceed
Validator = Callable[[str, Transport, str], Optional[str]]


class SlotState(Enum):
    IDLE = 'idle'
    COUNTING_DOWN = 'counting_down'
    EXECUTING = 'executing'


class Outcome(Enum):
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    FAILED = 'failed'
    REJECTED = 'rejected'
    IN_PROGRESS = 'in_progress'


@dataclass
class DispatchResult:
    action: str
    outcome: Outcome
    message: str
    request: Optional[ActionRequest] = None
    response: Optional[ActionResponse] = None
    error: Optional[RemotePowerError] = None

    @property
    def success(self) -> bool:
        return self.outcome == Outcome.COMPLETED


class CountdownHandle:
    """A running countdown; invalidated by ``cancel``."""

    def __init__(self, action: str, seconds: int):
        self.action = action
        self.remaining = seconds
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self):
        self._cancelled.set()

    async def run(self, tick: float, on_tick: Optional[TickCallback] = None) -> bool:
        """Count down to zero; False if cancelled first."""
        while self.remaining > 0:
            if on_tick is not None:
                outcome = on_tick(self.action, self.remaining)
                if inspect.isawaitable(outcome):
                    await outcome
            if self.cancelled:
                return False
            try:
                await asyncio.wait_for(self._cancelled.wait(), timeout=tick)
                return False
            except asyncio.TimeoutError:
                self.remaining -= 1
        return not self.cancelled


def default_validator(action: str, transport: Transport, credential: str) -> Optional[str]:
    if not transport.has_target():
        if transport.name == 'serial':
            return "Please connect to a Bluetooth device first"
        return "Please select a PC first"
    if not credential or not credential.strip():
        return "Please enter the secret key"
    return None


class CommandDispatcher:
    """Turns button presses into transport requests."""

    def __init__(self, transport: Transport, credential: str = '',
                 tick: float = COUNTDOWN_TICK, on_tick: Optional[TickCallback] = None,
                 validator: Optional[Validator] = None, command_timeout: Optional[float] = None):
        self.transport = transport
        self.credential = credential
        self.tick = tick
        self.on_tick = on_tick
        self.validator = validator or default_validator
        self.command_timeout = command_timeout
        self._states: Dict[str, SlotState] = {}
        self._countdowns: Dict[str, CountdownHandle] = {}

    def state_of(self, action: str) -> SlotState:
        return self._states.get(action, SlotState.IDLE)

    def set_credential(self, credential: str):
        self.credential = credential

    async def set_transport(self, transport: Transport):
        """Switch transports, tearing down the old one's connection."""
        if transport is self.transport:
            return
        await self.transport.disconnect()
        logger.info(f"Switched transport: {self.transport.name} -> {transport.name}")
        self.transport = transport

    def cancel_countdown(self, action: str) -> bool:
        handle = self._countdowns.get(action)
        if handle is None:
            return False
        handle.cancel()
        return True

    async def press(self, action: str, delay: int = 0, force: bool = False) -> DispatchResult:
        """
        Handle one press of an action button.

        Args:
            action: one of the known actions
            delay: countdown length in seconds before the action is sent
            force: ask the host to skip application close prompts

        Returns:
            DispatchResult describing what happened; errors are reported in
            the result, never raised.
        """
        action = action.strip().lower()
        if action not in Actions.ALL:
            return DispatchResult(action, Outcome.REJECTED, f"Unknown action: {action}")

        state = self.state_of(action)
        if state == SlotState.COUNTING_DOWN:
            self.cancel_countdown(action)
            logger.info(f"[COUNTDOWN] {action} cancelled")
            return DispatchResult(action, Outcome.CANCELLED, f"{action.capitalize()} cancelled")
        if state == SlotState.EXECUTING:
            return DispatchResult(action, Outcome.IN_PROGRESS, f"{action.capitalize()} already in progress")

        rejection = self.validator(action, self.transport, self.credential)
        if rejection is None and (not isinstance(delay, int) or isinstance(delay, bool) or delay < 0):
            rejection = f"Invalid delay: {delay!r}"
        if rejection is not None:
            logger.warning(f"[REJECTED] {action}: {rejection}")
            return DispatchResult(action, Outcome.REJECTED, rejection)

        if action == Actions.CANCEL or delay == 0:
            return await self._execute(action, force)

        handle = CountdownHandle(action, delay)
        self._countdowns[action] = handle
        self._states[action] = SlotState.COUNTING_DOWN
        try:
            finished = await handle.run(self.tick, self._report_tick)
        finally:
            if self._countdowns.get(action) is handle:
                del self._countdowns[action]
                self._states[action] = SlotState.IDLE

        if not finished:
            return DispatchResult(action, Outcome.CANCELLED, f"{action.capitalize()} cancelled")
        return await self._execute(action, force)

    async def _report_tick(self, action: str, remaining: int):
        logger.log_countdown(action, remaining)
        if self.on_tick is not None:
            outcome = self.on_tick(action, remaining)
            if inspect.isawaitable(outcome):
                await outcome

    async def _execute(self, action: str, force: bool) -> DispatchResult:
        # Delay already elapsed on this side
        request = ActionRequest(action, self.credential, ActionOptions(delay=0, force=force))
        self._states[action] = SlotState.EXECUTING
        try:
            response = await self.transport.send_action(
                request.action, request.credential, request.options, self.command_timeout
            )
        except RemotePowerError as e:
            logger.error(f"[FAILED] {action}: {e}")
            return DispatchResult(action, Outcome.FAILED, str(e), request=request, error=e)
        finally:
            self._states[action] = SlotState.IDLE

        if not response.success:
            return DispatchResult(action, Outcome.FAILED, response.message, request=request, response=response)
        return DispatchResult(action, Outcome.COMPLETED, response.message, request=request, response=response)
