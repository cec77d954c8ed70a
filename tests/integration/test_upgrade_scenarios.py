"""
Integration tests: end-to-end gateway lifecycles

Drives GatewayRuntime through construction, forwarding, upgrades and broker
administration against real files, then reopens everything from disk.
"""

import pytest
import tempfile
import shutil
import threading
from pathlib import Path

from tests.fixtures import COUNTER_V1, COUNTER_V2, MODULES_DIR


ADDR_A = 'addr-a'
ADDR_B = 'addr-b'
USER = 'user'


class ScenarioTestCase:

    def setup_method(self):
        from object_gateway.runtime.gateway_runtime import GatewayRuntime

        self.temp_dir = Path(tempfile.mkdtemp())
        self.runtime = GatewayRuntime(self.temp_dir)
        self.m1 = self.runtime.deploy_module(COUNTER_V1)
        self.m2 = self.runtime.deploy_module(COUNTER_V2)
        self.echo = self.runtime.deploy_module(MODULES_DIR / 'echo.py')

    def teardown_method(self):
        """Clean up temporary directory"""
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)


class TestScenarios(ScenarioTestCase):
    """Walkthroughs of the basic lifecycle"""

    def test_admin_reads_module_others_are_forwarded(self):
        from object_gateway.core.errors import CallFailed

        gateway = self.runtime.create_gateway(self.m1, ADDR_A)

        assert gateway.dispatch(ADDR_A, 'getModule') == self.m1

        # Counter has no getModule, so the forwarded call fails in the module
        with pytest.raises(CallFailed) as exc_info:
            gateway.dispatch(USER, 'getModule')

        assert exc_info.value.payload['error'] == 'UnknownOperationError'

    def test_admin_selector_reaches_module_for_others(self):
        gateway = self.runtime.create_gateway(self.echo, ADDR_A)

        assert gateway.dispatch(ADDR_A, 'implementation') == self.echo
        assert gateway.dispatch(USER, 'implementation') == 'from-module'

    def test_init_call_sets_state(self):
        gateway = self.runtime.create_gateway(self.m1, ADDR_A, init_data='initialize')

        assert gateway.dispatch(USER, 'getValue') == 1

    def test_noop_upgrade(self):
        from object_gateway.core.errors import NoOpUpgrade

        gateway = self.runtime.create_gateway(self.m1, ADDR_A)

        with pytest.raises(NoOpUpgrade):
            gateway.dispatch(ADDR_A, 'upgradeModule', self.m1)

        assert gateway.dispatch(ADDR_A, 'getModule') == self.m1
        assert len(gateway.get_events('Upgraded')) == 1

    def test_upgrade_keeps_state(self):
        gateway = self.runtime.create_gateway(self.m1, ADDR_A, init_data='initialize')
        gateway.dispatch(USER, 'setValue', 41)

        gateway.dispatch(ADDR_A, 'upgradeModule', self.m2)

        assert gateway.dispatch(USER, 'getValuePlusOne') == 42
        assert gateway.dispatch(USER, 'getValue') == 41

    def test_broker_upgrade_matches_direct_upgrade(self):
        from object_gateway.core.errors import Unauthorized

        broker = self.runtime.create_broker(owner=ADDR_B)
        via_broker = self.runtime.create_gateway(self.m1, broker.address, init_data='initialize')
        direct = self.runtime.create_gateway(self.m1, ADDR_A, init_data='initialize')

        with pytest.raises(Unauthorized):
            broker.upgrade(USER, via_broker, self.m2)

        assert via_broker.dispatch(USER, 'getValue') == 1
        assert broker.get_module(via_broker) == self.m1

        broker.upgrade(ADDR_B, via_broker, self.m2)
        direct.dispatch(ADDR_A, 'upgradeModule', self.m2)

        assert broker.get_module(via_broker) == direct.dispatch(ADDR_A, 'getModule') == self.m2
        assert via_broker.dispatch(USER, 'getValuePlusOne') == direct.dispatch(USER, 'getValuePlusOne') == 2
        assert [e['payload'] for e in via_broker.get_events('Upgraded')] == \
            [e['payload'] for e in direct.get_events('Upgraded')]


class TestProperties(ScenarioTestCase):
    """Properties that hold over whole operation sequences"""

    def test_pointers_never_null(self):
        from object_gateway.core.errors import InvalidAddress
        from object_gateway.core.identity import ADMIN_SLOT, IMPLEMENTATION_SLOT, ZERO_ADDRESS, is_null

        gateway = self.runtime.create_gateway(self.m1, ADDR_A)

        attempts = [
            ('changeAdmin', None),
            ('changeAdmin', ''),
            ('changeAdmin', ZERO_ADDRESS),
            ('upgradeModule', None),
            ('upgradeModule', ZERO_ADDRESS),
            ('upgradeAndInitialize', ZERO_ADDRESS, 'initialize'),
        ]
        for selector, *args in attempts:
            with pytest.raises(InvalidAddress):
                gateway.dispatch(ADDR_A, selector, *args)

            assert not is_null(gateway.store.get(IMPLEMENTATION_SLOT))
            assert not is_null(gateway.store.get(ADMIN_SLOT))

    def test_only_admin_gets_admin_operations(self):
        from object_gateway.runtime.gateway import ADMIN_OPERATIONS

        gateway = self.runtime.create_gateway(self.echo, ADDR_A)

        for caller in [USER, ADDR_B, 'ADDR-A', ADDR_A + ' ']:
            for selector in ADMIN_OPERATIONS:
                # Echo only defines implementation; every other admin selector
                # fails inside the module, which proves it was forwarded
                try:
                    result = gateway.dispatch(caller, selector)
                except Exception as e:
                    assert e.payload['error'] == 'UnknownOperationError'
                else:
                    assert selector == 'implementation'
                    assert result == 'from-module'

        assert gateway.dispatch(ADDR_A, 'getAdmin') == ADDR_A
        assert len(gateway.get_events()) == 2

    def test_failed_construction_leaves_nothing(self):
        from object_gateway.core.errors import GatewayNotFoundError, InitializationFailed

        failing = self.runtime.deploy_module(MODULES_DIR / 'failing_init.py')

        with pytest.raises(InitializationFailed) as exc_info:
            self.runtime.create_gateway(failing, ADDR_A, init_data='initialize', gateway_id='gw-broken')

        assert exc_info.value.payload == {'error': 'InitFailed'}
        assert self.runtime.list_gateways() == []
        assert not (self.temp_dir / 'state' / 'gw-broken').exists()
        assert not (self.temp_dir / 'events' / 'gw-broken').exists()

        with pytest.raises(GatewayNotFoundError):
            self.runtime.load_gateway('gw-broken')

    def test_forwarding_matches_direct_execution(self):
        """A gateway call sees what the module run directly on the same state sees"""
        from object_gateway.core.codec import Call
        from object_gateway.core.slot_store import PersistentSlotStore

        gateway = self.runtime.create_gateway(self.echo, ADDR_A)
        direct_store = PersistentSlotStore('direct', self.temp_dir)

        calls = [
            ('echo', (1, 'x', {'k': [2]})),
            ('record', ('score', 10)),
            ('recordThenRevert', (3,)),
            ('recordThenRaise', ()),
            ('writeReserved', ()),
            ('missing', ()),
        ]
        for selector, args in calls:
            expected = self.runtime.forwarder.forward(
                self.echo, Call(selector, args), direct_store, caller=USER
            )

            try:
                observed = (True, gateway.dispatch(USER, selector, *args))
            except Exception as e:
                observed = (False, e.payload)

            assert observed == expected

        assert gateway.get_state() == {'calls': 0, **direct_store.get_all()}

    def test_calls_are_serialized(self):
        gateway = self.runtime.create_gateway(self.m2, ADDR_A)

        def worker():
            for _ in range(10):
                gateway.dispatch(USER, 'increment')

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert gateway.dispatch(USER, 'getValue') == 50


class TestPersistence(ScenarioTestCase):
    """Gateways and brokers survive a restart"""

    def test_concurrent_loads_share_one_gateway(self):
        from object_gateway.runtime.gateway_runtime import GatewayRuntime

        gateway = self.runtime.create_gateway(self.m2, ADDR_A)
        restarted = GatewayRuntime(self.temp_dir)
        barrier = threading.Barrier(8)
        loaded = []

        def worker():
            barrier.wait()
            instance = restarted.load_gateway(gateway.address)
            loaded.append(instance)
            for _ in range(5):
                instance.dispatch(USER, 'increment')

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({id(instance) for instance in loaded}) == 1
        assert GatewayRuntime(self.temp_dir).load_gateway(gateway.address).dispatch(USER, 'getValue') == 40

    def test_full_lifecycle_across_restart(self):
        from object_gateway.runtime.gateway_runtime import GatewayRuntime

        broker = self.runtime.create_broker(owner=ADDR_B)
        gateway = self.runtime.create_gateway(self.m1, broker.address, init_data='initialize')
        gateway.dispatch(USER, 'setValue', 7)

        restarted = GatewayRuntime(self.temp_dir)
        gateway = restarted.load_gateway(gateway.address)
        broker = restarted.load_broker(broker.address)

        assert gateway.dispatch(USER, 'getValue') == 7

        assert broker.upgrade_and_initialize(ADDR_B, gateway, self.m2, 'increment') == 8
        broker.change_admin(ADDR_B, gateway, ADDR_A)

        again = GatewayRuntime(self.temp_dir).load_gateway(gateway.address)

        assert again.dispatch(ADDR_A, 'getModule') == self.m2
        assert again.dispatch(USER, 'getValuePlusOne') == 9
        assert [e['event_type'] for e in again.get_events()] == [
            'Upgraded', 'AdminChanged', 'Upgraded', 'AdminChanged',
        ]

    def test_self_logs_record_admin_actions(self):
        broker = self.runtime.create_broker(owner=ADDR_B)
        gateway = self.runtime.create_gateway(self.m1, broker.address)

        broker.upgrade(ADDR_B, gateway, self.m2)

        gateway_logs = self.runtime.get_logs(gateway.address, level='WARNING')
        assert [entry['message'] for entry in gateway_logs] == ['Module upgraded']
        assert gateway_logs[0]['module'] == self.m2

        assert self.runtime.get_logs(broker.address)
