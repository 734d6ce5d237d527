#!/usr/bin/env python3
"""
End-to-end tests: a dry-run server on localhost driven by the client.
"""

import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from aiohttp.test_utils import unused_port

from client.dispatcher.command_dispatcher import Outcome
from client.main_client import PowerControlClient
from client.utils.config import ClientConfig, MODE_SERIAL
from common.bluetooth import UnavailableCapability
from common.errors import InvalidCredentialError, TransportUnavailableError
from server.main_server import PowerControlServer
from server.utils.config import ServerConfig


class TestServerConfig(unittest.TestCase):
    """Test cases for server configuration."""

    def test_from_env(self):
        env = {'SHARED_SECRET_KEY': 'abc', 'POWER_SERVER_PORT': '3100',
               'ENABLE_BLUETOOTH': 'false', 'POWER_DRY_RUN': 'true'}
        with patch.dict(os.environ, env, clear=True):
            config = ServerConfig.from_env()
        self.assertEqual(config.port, 3100)
        self.assertEqual(config.secret_key, 'abc')
        self.assertFalse(config.enable_bluetooth)
        self.assertTrue(config.dry_run)

    def test_update_only_overrides_given_values(self):
        config = ServerConfig(secret_key='abc')
        config.update(port=4000, secret_key=None)
        self.assertEqual(config.port, 4000)
        self.assertEqual(config.secret_key, 'abc')

    def test_empty_secret_is_rejected(self):
        with self.assertRaises(ValueError):
            ServerConfig(secret_key='   ').validate()
        with self.assertRaises(ValueError):
            PowerControlServer(ServerConfig(secret_key=''))


class TestClientConfig(unittest.TestCase):

    def test_from_env(self):
        env = {'POWER_HOST': '192.168.43.5', 'POWER_CLIENT_MODE': 'serial',
               'POWER_BT_PEER': 'AA:BB:CC:DD:EE:FF', 'POWER_DEFAULT_DELAY': '30'}
        with patch.dict(os.environ, env, clear=True):
            config = ClientConfig.from_env()
        self.assertEqual(config.host, '192.168.43.5')
        self.assertEqual(config.mode, MODE_SERIAL)
        self.assertEqual(config.peer_address, 'AA:BB:CC:DD:EE:FF')
        self.assertEqual(config.default_delay, 30)


class TestEndToEnd(unittest.IsolatedAsyncioTestCase):
    """Test cases for a client talking to a running server."""

    async def asyncSetUp(self):
        logs_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, logs_dir, ignore_errors=True)

        port = unused_port()
        server_config = ServerConfig(host='127.0.0.1', port=port, secret_key='abc',
                                     dry_run=True, logs_dir=logs_dir)
        self.server = PowerControlServer(server_config, capability=UnavailableCapability())
        await self.server.start()

        client_config = ClientConfig(host='127.0.0.1', port=port, secret_key='abc')
        client_config.countdown_tick = 0.01
        self.client = PowerControlClient(client_config, capability=UnavailableCapability())

    async def asyncTearDown(self):
        await self.client.close()
        await self.server.stop()

    async def test_delayed_shutdown(self):
        self.assertTrue(await self.client.ping())
        result = await self.client.press('shutdown', delay=3)
        self.assertEqual(result.outcome, Outcome.COMPLETED)
        self.assertEqual(result.message, 'Shutdown initiated immediately')
        self.assertEqual(self.server.executor.power_control.calls, [('shutdown', 0, False)])

    async def test_status(self):
        status = await self.client.status()
        self.assertTrue(status.hostname)
        self.assertGreater(status.cpus, 0)

    async def test_wrong_secret(self):
        self.client.dispatcher.set_credential('xyz')
        result = await self.client.press('sleep')
        self.assertEqual(result.outcome, Outcome.FAILED)
        self.assertIsInstance(result.error, InvalidCredentialError)
        self.assertEqual(self.server.executor.power_control.calls, [])

    async def test_health_reports_serial_state(self):
        info = self.server.serial_info()
        self.assertEqual(info, {'available': False, 'running': False, 'enabled': True})

    async def test_serial_mode_without_bluetooth(self):
        await self.client.use_mode(MODE_SERIAL)
        result = await self.client.press('sleep')
        self.assertEqual(result.outcome, Outcome.REJECTED)
        with self.assertRaises(TransportUnavailableError):
            await self.client.connect_serial('AA:BB:CC:DD:EE:FF')


if __name__ == '__main__':
    unittest.main()
