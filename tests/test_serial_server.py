#!/usr/bin/env python3
"""
Tests for the Bluetooth serial server's line handling.
"""

import asyncio
import json
import shutil
import tempfile
import unittest
from unittest.mock import AsyncMock, Mock

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.bluetooth import UnavailableCapability
from common.protocol_definitions import HostStatus
from server.auth.guard import AuthGuard
from server.executor.action_executor import ActionExecutor
from server.executor.power_control import DryRunPowerControl, PowerCommandError
from server.serial.serial_server import SerialServer
from server.utils.logger import logger


class HibernateDisabledPowerControl(DryRunPowerControl):

    async def suspend(self, mode):
        if mode == 'hibernate':
            raise PowerCommandError(['systemctl', 'hibernate'], 1, 'Sleep verb not supported')
        await super().suspend(mode)


class TestSerialServer(unittest.IsolatedAsyncioTestCase):
    """Test cases for command line processing."""

    def setUp(self):
        logs_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, logs_dir, ignore_errors=True)
        logger.set_logs_dir(logs_dir)

        host_info = Mock()
        host_info.hostname.return_value = 'DESKTOP-A'
        host_info.collect.return_value = HostStatus(hostname='DESKTOP-A', platform='windows')
        self.power = HibernateDisabledPowerControl()
        executor = ActionExecutor(self.power, host_info)
        self.server = SerialServer(AuthGuard('xyz'), executor, UnavailableCapability(), host_info=host_info)

    async def test_mismatched_secret(self):
        reply = await self.server.process_line('status:abc:\n')
        self.assertEqual(reply, 'ERROR:Authentication failed: Invalid key\n')

    async def test_missing_secret(self):
        self.assertEqual(await self.server.process_line('shutdown:'), 'ERROR:Authentication required\n')

    async def test_malformed_command(self):
        reply = await self.server.process_line('shutdown')
        self.assertEqual(reply, 'ERROR:Invalid command format. Use: action:key:options\n')

    async def test_unknown_action(self):
        self.assertEqual(await self.server.process_line('explode:xyz'), 'ERROR:Unknown action: explode\n')

    async def test_ping_needs_no_auth(self):
        payload = json.loads(await self.server.process_line('ping:'))
        self.assertEqual(payload, {'success': True, 'message': 'pong', 'hostname': 'DESKTOP-A'})

    async def test_shutdown_with_options(self):
        reply = await self.server.process_line('shutdown:xyz:delay=30,force=true')
        self.assertEqual(reply, 'OK:Shutdown scheduled in 30 seconds\n')
        self.assertEqual(self.power.calls, [('shutdown', 30, True)])

    async def test_invalid_delay_option(self):
        reply = await self.server.process_line('restart:xyz:delay=soon')
        self.assertTrue(reply.startswith('ERROR:Invalid delay'))
        self.assertEqual(self.power.calls, [])

    async def test_status_is_json_payload(self):
        payload = json.loads(await self.server.process_line('status:xyz'))
        self.assertTrue(payload['success'])
        self.assertEqual(payload['platform'], 'windows')

    async def test_executor_failure_reports_cause(self):
        reply = await self.server.process_line('hibernate:xyz')
        self.assertTrue(reply.startswith('ERROR:Action failed: systemctl hibernate: Sleep verb not supported'))

    async def test_unavailable_capability_does_not_start(self):
        self.assertFalse(await self.server.start())
        self.assertEqual(self.server.get_status(), {'available': False, 'running': False})

    async def test_connection_is_fully_closed_on_hangup(self):
        reader = asyncio.StreamReader()
        reader.feed_eof()
        writer = Mock()
        writer.get_extra_info.return_value = ('127.0.0.1', 50000)
        writer.wait_closed = AsyncMock()
        await self.server.handle_client(reader, writer)
        writer.close.assert_called_once()
        writer.wait_closed.assert_awaited_once()


class TestSerialServerConnection(unittest.IsolatedAsyncioTestCase):
    """Test cases for a connected peer, over a loopback TCP stream."""

    async def asyncSetUp(self):
        logs_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, logs_dir, ignore_errors=True)
        logger.set_logs_dir(logs_dir)

        self.power = DryRunPowerControl()
        host_info = Mock()
        host_info.hostname.return_value = 'DESKTOP-A'
        server = SerialServer(AuthGuard('abc'), ActionExecutor(self.power, host_info), UnavailableCapability())
        self.tcp = await asyncio.start_server(server.handle_client, '127.0.0.1', 0)
        port = self.tcp.sockets[0].getsockname()[1]
        self.reader, self.writer = await asyncio.open_connection('127.0.0.1', port)

    async def asyncTearDown(self):
        self.writer.close()
        self.tcp.close()
        await self.tcp.wait_closed()

    async def test_one_reply_per_line(self):
        self.writer.write(b'sleep:abc\nlogout:abc\n\ncancel:abc\n')
        await self.writer.drain()
        replies = [await asyncio.wait_for(self.reader.readline(), 2) for _ in range(3)]
        self.assertEqual(replies, [b'OK:Sleep mode initiated\n', b'OK:Logging out...\n',
                                   b'OK:Scheduled shutdown/restart cancelled\n'])
        self.assertEqual(self.power.calls, [('suspend', 'sleep'), ('logout',), ('cancel',)])


if __name__ == '__main__':
    unittest.main()
