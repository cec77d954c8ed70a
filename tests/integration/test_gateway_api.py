"""
Integration tests for the HTTP handlers (api/gateways)

Handlers are loaded straight from their files and called with a mock
request, the way dbbasic_web calls them.
"""

import json
import importlib.util
import shutil
import tempfile
from pathlib import Path
from unittest.mock import Mock

import pytest

pytest.importorskip('dbbasic_web')

from tests.fixtures import COUNTER_V1, COUNTER_V2


API_DIR = Path(__file__).parent.parent.parent / 'api'

ADMIN = 'admin-identity'
USER = 'user-identity'


def load_gateway_api():
    """Load the api/gateways/[id].py module"""
    module_path = API_DIR / 'gateways' / '[id].py'
    spec = importlib.util.spec_from_file_location('gateways_id_api', module_path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def read_response(response):
    """Split a handler response tuple (status, headers, [body])"""
    status, _, body = response
    if isinstance(body, (list, tuple)):
        body = body[0]
    return status, json.loads(body)


class TestGatewayAPI:

    def setup_method(self):
        from object_gateway.runtime.gateway_runtime import GatewayRuntime

        self.temp_dir = Path(tempfile.mkdtemp())
        self.runtime = GatewayRuntime(self.temp_dir)
        self.v1 = self.runtime.deploy_module(COUNTER_V1)
        self.v2 = self.runtime.deploy_module(COUNTER_V2)
        self.gateway = self.runtime.create_gateway(self.v1, ADMIN, init_data='initialize')

        self.api = load_gateway_api()
        self.api._runtime = self.runtime

    def teardown_method(self):
        """Clean up temporary directory"""
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def _post(self, gateway_id, body):
        request = Mock()
        request.body = json.dumps(body).encode('utf-8')
        return read_response(self.api.POST(request, gateway_id))

    def _get(self, gateway_id, **query):
        request = Mock()
        request.GET = query
        return read_response(self.api.GET(request, gateway_id))

    def test_dispatch(self):
        status, data = self._post(self.gateway.address, {
            'caller': USER,
            'selector': 'setValue',
            'args': [12],
        })

        assert status == 200
        assert data['success'] is True
        assert data['result'] == 12
        assert self.gateway.dispatch(USER, 'getValue') == 12

    def test_failed_call_reports_payload(self):
        status, data = self._post(self.gateway.address, {
            'caller': USER,
            'selector': 'initialize',
        })

        assert status == 200
        assert data['success'] is False
        assert data['error_type'] == 'CallFailed'
        assert data['payload'] == {'error': 'AlreadyInitialized'}
        assert data['reverted'] is True

    def test_admin_upgrade(self):
        status, data = self._post(self.gateway.address, {
            'caller': ADMIN,
            'selector': 'upgradeModule',
            'args': [self.v2],
        })

        assert data['success'] is True
        assert self.gateway.dispatch(USER, 'getValuePlusOne') == 2

    def test_noop_upgrade_reported(self):
        status, data = self._post(self.gateway.address, {
            'caller': ADMIN,
            'selector': 'upgradeModule',
            'args': [self.v1],
        })

        assert data['success'] is False
        assert data['error_type'] == 'NoOpUpgrade'
        assert data['reverted'] is False

    @pytest.mark.parametrize('body', [
        {'selector': 'getValue'},
        {'caller': USER},
        {'caller': USER, 'selector': 'setValue', 'args': 5},
    ])
    def test_bad_request(self, body):
        status, data = self._post(self.gateway.address, body)

        assert status == 400

    def test_invalid_json(self):
        request = Mock()
        request.body = b'{not json'

        status, data = read_response(self.api.POST(request, self.gateway.address))

        assert status == 400

    def test_unknown_gateway(self):
        status, _ = self._post('missing', {'caller': USER, 'selector': 'getValue'})
        assert status == 404

        status, _ = self._get('missing')
        assert status == 404

    def test_info(self):
        status, data = self._get(self.gateway.address)

        assert status == 200
        assert data['gateway_id'] == self.gateway.address
        assert data['event_count'] == 2

    def test_events(self):
        self.gateway.dispatch(ADMIN, 'upgradeModule', self.v2)

        status, data = self._get(self.gateway.address, events='true', event_type='Upgraded')

        assert status == 200
        assert [e['payload']['module'] for e in data['events']] == [self.v1, self.v2]

    def test_logs(self):
        self.gateway.dispatch(ADMIN, 'upgradeModule', self.v2)

        status, data = self._get(self.gateway.address, logs='true', level='WARNING')

        assert status == 200
        assert data['count'] == 1
        assert data['logs'][0]['message'] == 'Module upgraded'
