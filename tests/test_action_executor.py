#!/usr/bin/env python3
"""
Unit tests for the action executor and the power control surfaces.

Covers:
- Messages and scheduled times for every action
- Idempotent cancel
- Failure chaining without retries
- Platform command construction
- Host introspection formatting
"""

import socket
import unittest
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.errors import ExecutorFailureError, UnknownEndpointError
from common.protocol_definitions import ActionOptions, HostStatus
from server.executor.action_executor import ActionExecutor
from server.executor.host_info import format_bytes, format_uptime, get_local_ip
from server.executor.power_control import DryRunPowerControl, PowerCommandError, SystemPowerControl

FIXED_NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FailingPowerControl(DryRunPowerControl):
    """Dry run surface whose every call fails."""

    async def _fail(self, *call):
        self._record(*call)
        raise PowerCommandError(['shutdown'], 1, 'not permitted')

    async def shutdown(self, delay=0, force=False):
        await self._fail('shutdown', delay, force)

    async def suspend(self, mode):
        await self._fail('suspend', mode)

    async def cancel(self):
        await self._fail('cancel')


class TestActionExecutor(unittest.IsolatedAsyncioTestCase):
    """Test cases for action execution."""

    def setUp(self):
        self.power = DryRunPowerControl()
        self.host_info = Mock()
        self.host_info.collect.return_value = HostStatus(hostname='desk', platform='linux')
        self.executor = ActionExecutor(self.power, self.host_info, clock=lambda: FIXED_NOW)

    async def test_immediate_shutdown(self):
        response = await self.executor.execute('shutdown', ActionOptions())
        self.assertTrue(response.success)
        self.assertEqual(response.message, 'Shutdown initiated immediately')
        self.assertIsNone(response.scheduled_time)
        self.assertEqual(self.power.calls, [('shutdown', 0, False)])

    async def test_delayed_restart_is_scheduled(self):
        response = await self.executor.execute('restart', ActionOptions(delay=30, force=True))
        self.assertEqual(response.message, 'Restart scheduled in 30 seconds')
        self.assertEqual(response.scheduled_time, '2026-01-01T12:00:30.000Z')
        self.assertEqual(self.power.calls, [('restart', 30, True)])

    async def test_suspend_and_logout_messages(self):
        self.assertEqual((await self.executor.execute('sleep')).message, 'Sleep mode initiated')
        self.assertEqual((await self.executor.execute('hibernate')).message, 'Hibernate mode initiated')
        self.assertEqual((await self.executor.execute('logout')).message, 'Logging out...')
        self.assertEqual(self.power.calls, [('suspend', 'sleep'), ('suspend', 'hibernate'), ('logout',)])

    async def test_status_carries_host_status(self):
        response = await self.executor.execute('status')
        self.assertEqual(response.message, 'Status retrieved')
        self.assertEqual(response.status.hostname, 'desk')
        self.assertEqual(self.power.calls, [])

    async def test_unknown_action(self):
        with self.assertRaises(UnknownEndpointError):
            await self.executor.execute('explode')

    async def test_cancel_twice_succeeds_both_times(self):
        for _ in range(2):
            response = await self.executor.execute('cancel')
            self.assertTrue(response.success)
            self.assertEqual(response.message, 'Scheduled shutdown/restart cancelled')

    async def test_cancel_failure_is_reported_as_success(self):
        executor = ActionExecutor(FailingPowerControl(), self.host_info)
        response = await executor.execute('cancel')
        self.assertTrue(response.success)

    async def test_failure_is_chained_and_not_retried(self):
        power = FailingPowerControl()
        executor = ActionExecutor(power, self.host_info)
        with self.assertRaises(ExecutorFailureError) as ctx:
            await executor.execute('shutdown', ActionOptions(delay=10))
        self.assertIsInstance(ctx.exception.__cause__, PowerCommandError)
        self.assertEqual(ctx.exception.code, 'SHUTDOWN_FAILED')
        self.assertEqual(str(ctx.exception), 'Failed to initiate shutdown')
        self.assertEqual(len(power.calls), 1)

    async def test_status_failure_is_chained(self):
        self.host_info.collect.side_effect = OSError('no /proc')
        with self.assertRaises(ExecutorFailureError) as ctx:
            await self.executor.execute('status')
        self.assertIsInstance(ctx.exception.__cause__, OSError)


class TestSystemPowerControl(unittest.TestCase):
    """Test cases for platform command construction."""

    def test_windows_commands(self):
        control = SystemPowerControl('Windows')
        self.assertEqual(control.build_command('shutdown', 30, True), ['shutdown', '/s', '/t', '30', '/f'])
        self.assertEqual(control.build_command('restart', 0), ['shutdown', '/r', '/t', '0'])
        self.assertEqual(control.build_command('cancel'), ['shutdown', '/a'])
        self.assertEqual(control.build_command('logout'), ['shutdown', '/l'])

    def test_linux_rounds_delay_up_to_minutes(self):
        control = SystemPowerControl('Linux')
        self.assertEqual(control.build_command('shutdown', 30), ['shutdown', '-h', '+1'])
        self.assertEqual(control.build_command('restart', 0), ['shutdown', '-r', 'now'])
        self.assertEqual(control.build_command('shutdown', 0, True),
                         ['systemctl', 'poweroff', '--ignore-inhibitors'])
        self.assertEqual(control.build_command('sleep'), ['systemctl', 'suspend'])
        self.assertEqual(control.build_command('cancel'), ['shutdown', '-c'])

    def test_macos_commands(self):
        control = SystemPowerControl('Darwin')
        self.assertEqual(control.build_command('hibernate'), ['pmset', 'sleepnow'])
        self.assertEqual(control.build_command('shutdown', 120), ['shutdown', '-h', '+2'])

    def test_unsupported_platform(self):
        with self.assertRaises(PowerCommandError):
            SystemPowerControl('Plan9').build_command('shutdown')


class TestSystemPowerControlRun(unittest.IsolatedAsyncioTestCase):
    """Test cases for running platform commands."""

    async def test_missing_binary_raises_power_command_error(self):
        control = SystemPowerControl('Linux')
        with patch('asyncio.create_subprocess_exec', side_effect=FileNotFoundError('shutdown')):
            with self.assertRaises(PowerCommandError):
                await control.cancel()


class TestHostInfo(unittest.TestCase):
    """Test cases for host introspection helpers."""

    def test_format_uptime(self):
        self.assertEqual(format_uptime(93780), '1d 2h 3m')
        self.assertEqual(format_uptime(3600), '1h')
        self.assertEqual(format_uptime(59), '< 1m')

    def test_format_bytes(self):
        self.assertEqual(format_bytes(8 * 1024 ** 3), '8.00 GB')

    def test_local_ip_prefers_wireless(self):
        def addr(address):
            return Mock(family=socket.AF_INET, address=address)

        interfaces = {
            'lo': [addr('127.0.0.1')],
            'docker0': [addr('172.17.0.1')],
            'wlan0': [addr('192.168.43.20')],
        }
        self.assertEqual(get_local_ip(interfaces), '192.168.43.20')
        self.assertEqual(get_local_ip({'docker0': [addr('172.17.0.1')]}), '172.17.0.1')
        self.assertEqual(get_local_ip({'lo': [addr('127.0.0.1')]}), '127.0.0.1')


if __name__ == '__main__':
    unittest.main()
