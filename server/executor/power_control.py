"""
Power control surface.

The executor drives the host through five operations: shutdown, restart,
suspend, logout and cancel. ``SystemPowerControl`` runs the platform's own
power commands; ``DryRunPowerControl`` only records and logs the calls.
"""

import asyncio
import getpass
import math
import platform
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from server.utils.logger import logger

SUSPEND_MODES = ('sleep', 'hibernate')


class PowerCommandError(Exception):
    """A platform power command could not be run or exited non-zero."""

    def __init__(self, command: List[str], returncode: Optional[int] = None, stderr: str = ''):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or (f"exit code {returncode}" if returncode is not None else "not run")
        super().__init__(f"{' '.join(command)}: {detail}")


class PowerControlSurface(ABC):
    """Operations that change the host's power state."""

    @abstractmethod
    async def shutdown(self, delay: int = 0, force: bool = False):
        ...

    @abstractmethod
    async def restart(self, delay: int = 0, force: bool = False):
        ...

    @abstractmethod
    async def suspend(self, mode: str):
        ...

    @abstractmethod
    async def logout(self):
        ...

    @abstractmethod
    async def cancel(self):
        ...


class SystemPowerControl(PowerControlSurface):
    """Runs the native power commands of Windows, Linux or macOS."""

    def __init__(self, system: Optional[str] = None):
        self.system = system or platform.system()

    def build_command(self, operation: str, delay: int = 0, force: bool = False) -> List[str]:
        """Return the argument list for an operation on this platform."""
        if self.system == 'Windows':
            return self._windows_command(operation, delay, force)
        if self.system == 'Linux':
            return self._linux_command(operation, delay, force)
        if self.system == 'Darwin':
            return self._macos_command(operation, delay)
        raise PowerCommandError([operation], stderr=f"Unsupported platform: {self.system}")

    def _windows_command(self, operation: str, delay: int, force: bool) -> List[str]:
        force_flag = ['/f'] if force else []
        if operation == 'shutdown':
            return ['shutdown', '/s', '/t', str(delay)] + force_flag
        if operation == 'restart':
            return ['shutdown', '/r', '/t', str(delay)] + force_flag
        # SetSuspendState(Hibernate, Force, DisableWakeEvent)
        if operation == 'sleep':
            return ['rundll32.exe', 'powrprof.dll,SetSuspendState', '0,1,0']
        if operation == 'hibernate':
            return ['rundll32.exe', 'powrprof.dll,SetSuspendState', '1,1,0']
        if operation == 'logout':
            return ['shutdown', '/l']
        if operation == 'cancel':
            return ['shutdown', '/a']
        raise PowerCommandError([operation], stderr="Unknown operation")

    def _linux_command(self, operation: str, delay: int, force: bool) -> List[str]:
        # shutdown(8) schedules in whole minutes
        when = f"+{math.ceil(delay / 60)}" if delay > 0 else 'now'
        if operation == 'shutdown':
            if force and delay == 0:
                return ['systemctl', 'poweroff', '--ignore-inhibitors']
            return ['shutdown', '-h', when]
        if operation == 'restart':
            if force and delay == 0:
                return ['systemctl', 'reboot', '--ignore-inhibitors']
            return ['shutdown', '-r', when]
        if operation == 'sleep':
            return ['systemctl', 'suspend']
        if operation == 'hibernate':
            return ['systemctl', 'hibernate']
        if operation == 'logout':
            return ['loginctl', 'terminate-user', getpass.getuser()]
        if operation == 'cancel':
            return ['shutdown', '-c']
        raise PowerCommandError([operation], stderr="Unknown operation")

    def _macos_command(self, operation: str, delay: int) -> List[str]:
        when = f"+{math.ceil(delay / 60)}" if delay > 0 else 'now'
        if operation == 'shutdown':
            return ['shutdown', '-h', when]
        if operation == 'restart':
            return ['shutdown', '-r', when]
        if operation in SUSPEND_MODES:
            return ['pmset', 'sleepnow']
        if operation == 'logout':
            return ['osascript', '-e', 'tell application "System Events" to log out']
        if operation == 'cancel':
            return ['killall', 'shutdown']
        raise PowerCommandError([operation], stderr="Unknown operation")

    async def _run(self, args: List[str]):
        """Run a command and raise PowerCommandError on failure."""
        logger.info(f"[SYSTEM] Running: {' '.join(args)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise PowerCommandError(args, stderr=str(e)) from e

        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise PowerCommandError(args, proc.returncode, stderr.decode('utf-8', errors='replace'))
        logger.info("[SYSTEM] Command executed successfully")

    async def shutdown(self, delay: int = 0, force: bool = False):
        await self._run(self.build_command('shutdown', delay, force))

    async def restart(self, delay: int = 0, force: bool = False):
        await self._run(self.build_command('restart', delay, force))

    async def suspend(self, mode: str):
        if mode not in SUSPEND_MODES:
            raise ValueError(f"Unknown suspend mode: {mode}")
        await self._run(self.build_command(mode))

    async def logout(self):
        await self._run(self.build_command('logout'))

    async def cancel(self):
        await self._run(self.build_command('cancel'))


class DryRunPowerControl(PowerControlSurface):
    """Records power operations without touching the host."""

    def __init__(self):
        self.calls: List[Tuple] = []

    def _record(self, *call):
        self.calls.append(call)
        logger.info(f"[DRY RUN] {call[0]}{call[1:] if len(call) > 1 else ''}")

    async def shutdown(self, delay: int = 0, force: bool = False):
        self._record('shutdown', delay, force)

    async def restart(self, delay: int = 0, force: bool = False):
        self._record('restart', delay, force)

    async def suspend(self, mode: str):
        if mode not in SUSPEND_MODES:
            raise ValueError(f"Unknown suspend mode: {mode}")
        self._record('suspend', mode)

    async def logout(self):
        self._record('logout')

    async def cancel(self):
        self._record('cancel')
