#!/usr/bin/env python3
"""
Tests for the HTTP server routes, authentication and error bodies.
"""

import shutil
import tempfile
from unittest.mock import Mock

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from aiohttp.test_utils import AioHTTPTestCase

from common.protocol_definitions import HostStatus
from server.auth.guard import AuthGuard
from server.executor.action_executor import ActionExecutor
from server.executor.power_control import DryRunPowerControl, PowerCommandError
from server.utils.logger import logger
from server.web.http_server import HttpServer

SECRET = 'abc'


class BrokenPowerControl(DryRunPowerControl):
    """Every cancel fails, as when nothing is scheduled; sleep is not permitted."""

    async def cancel(self):
        raise PowerCommandError(['shutdown', '-c'], 1, 'no scheduled shutdown')

    async def suspend(self, mode):
        raise PowerCommandError(['systemctl', 'suspend'], 1, 'not permitted')


def make_host_info():
    host_info = Mock()
    host_info.hostname.return_value = 'DESKTOP-A'
    host_info.collect.return_value = HostStatus(hostname='DESKTOP-A', platform='linux', cpus=4)
    return host_info


class TestHttpServer(AioHTTPTestCase):
    """Test cases for the networked transport server."""

    async def get_application(self):
        logs_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, logs_dir, ignore_errors=True)
        logger.set_logs_dir(logs_dir)

        self.power = BrokenPowerControl()
        host_info = make_host_info()
        executor = ActionExecutor(self.power, host_info)
        server = HttpServer(AuthGuard(SECRET), executor, host_info=host_info,
                            serial_info=lambda: {'available': False, 'enabled': True, 'running': False})
        return server.create_app()

    async def test_health_needs_no_auth(self):
        async with self.client.get('/health') as resp:
            self.assertEqual(resp.status, 200)
            body = await resp.json()
        self.assertEqual(body['status'], 'ok')
        self.assertEqual(body['hostname'], 'DESKTOP-A')
        self.assertEqual(body['serial'], {'available': False, 'enabled': True, 'running': False})

    async def test_shutdown_with_delay(self):
        async with self.client.post('/api/shutdown', json={'key': SECRET, 'delay': 60, 'force': True}) as resp:
            self.assertEqual(resp.status, 200)
            body = await resp.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['message'], 'Shutdown scheduled in 60 seconds')
        self.assertIn('scheduledTime', body)
        self.assertEqual(self.power.calls, [('shutdown', 60, True)])

    async def test_cancel_with_nothing_scheduled(self):
        async with self.client.post('/api/cancel', json={'key': SECRET}) as resp:
            self.assertEqual(resp.status, 200)
            body = await resp.json()
        self.assertEqual(body, {'success': True, 'message': 'Scheduled shutdown/restart cancelled'})

    async def test_missing_key_is_401(self):
        async with self.client.post('/api/restart', json={}) as resp:
            self.assertEqual(resp.status, 401)
            body = await resp.json()
        self.assertFalse(body['success'])
        self.assertEqual(body['code'], 'AUTH_REQUIRED')
        self.assertEqual(self.power.calls, [])

    async def test_wrong_key_is_403(self):
        async with self.client.post('/api/shutdown', json={'key': 'xyz'}) as resp:
            self.assertEqual(resp.status, 403)
            body = await resp.json()
        self.assertEqual(body['code'], 'INVALID_KEY')
        self.assertEqual(self.power.calls, [])

    async def test_status_with_header(self):
        async with self.client.get('/api/status', headers={'X-Shared-Secret': SECRET}) as resp:
            self.assertEqual(resp.status, 200)
            body = await resp.json()
        self.assertEqual(body['message'], 'Status retrieved')
        self.assertEqual(body['hostname'], 'DESKTOP-A')
        self.assertEqual(body['cpus'], 4)

    async def test_unknown_route_is_404(self):
        async with self.client.post('/api/explode', json={'key': SECRET}) as resp:
            self.assertEqual(resp.status, 404)
            body = await resp.json()
        self.assertEqual(body['code'], 'NOT_FOUND')

    async def test_malformed_json_is_400(self):
        async with self.client.post('/api/shutdown', data='{not json',
                                    headers={'Content-Type': 'application/json'}) as resp:
            self.assertEqual(resp.status, 400)
            body = await resp.json()
        self.assertEqual(body['code'], 'INVALID_REQUEST')

    async def test_bad_option_type_is_400(self):
        async with self.client.post('/api/shutdown', json={'key': SECRET, 'delay': 'soon'}) as resp:
            self.assertEqual(resp.status, 400)
        self.assertEqual(self.power.calls, [])

    async def test_executor_failure_is_500(self):
        async with self.client.post('/api/sleep', json={'key': SECRET}) as resp:
            self.assertEqual(resp.status, 500)
            body = await resp.json()
        self.assertEqual(body['code'], 'SLEEP_FAILED')
        self.assertEqual(body['message'], 'Failed to initiate sleep mode')

    async def test_action_result_is_audited(self):
        async with self.client.post('/api/logout', json={'key': SECRET}) as resp:
            self.assertEqual(resp.status, 200)
        audit = logger.action_log_path.read_text(encoding='utf-8')
        self.assertIn('| OK | logout | VIA: http', audit)
