"""
Gateway Runtime

Wires the primitives together for a directory of gateways and brokers.

Layout under base_dir:
- modules/{identity}.py - deployed logic modules
- state/{id}/slots.tsv - gateway and broker slots
- events/{id}/events.tsv - committed notifications
- logs/{id}/log.tsv - self-logs
- brokers.tsv - which state directories belong to brokers

The runtime:
- Deploys modules
- Creates gateways and brokers, injecting store, event log and logger
- Reopens persisted gateways and brokers
- Caches open instances
"""

import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from object_gateway.core.errors import GatewayError, GatewayNotFoundError
from object_gateway.core.events import EventLog
from object_gateway.core.forwarder import CallForwarder
from object_gateway.core.identity import new_address
from object_gateway.core.self_logger import SelfLogger
from object_gateway.core.slot_store import PersistentSlotStore
from object_gateway.runtime.admin_broker import AdminBroker
from object_gateway.runtime.gateway import Gateway
from object_gateway.runtime.registry import ModuleRegistry


class GatewayRuntime:
    """
    Runtime for gateways.

    Provides the shared module registry and forwarder, and builds gateway
    and broker instances on top of them.
    """

    def __init__(
        self,
        base_dir: Path | str,
        strict_admin: bool = False,
        max_log_size: Optional[int] = None,
    ):
        """
        Initialize runtime.

        Args:
            base_dir: Base directory for modules, state, events, logs
            strict_admin: Build gateways that reject module calls from their admin
            max_log_size: Log rotation size for every self-logger
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.strict_admin = strict_admin
        self.max_log_size = max_log_size

        self.registry = ModuleRegistry(self.base_dir)
        self.forwarder = CallForwarder(self.registry)

        self.brokers_file = self.base_dir / 'brokers.tsv'

        self._gateways: Dict[str, Gateway] = {}
        self._brokers: Dict[str, AdminBroker] = {}
        # One instance per id, so every caller shares its lock and slots
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config) -> 'GatewayRuntime':
        """Build a runtime from a GatewayConfig"""
        return cls(
            base_dir=config.base_dir,
            strict_admin=config.strict_admin,
            max_log_size=config.max_log_size,
        )

    def deploy_module(self, path: str | Path) -> str:
        """Deploy a logic module file, returning its identity"""
        return self.registry.deploy(path)

    def deploy_source(self, source: str) -> str:
        """Deploy logic module source, returning its identity"""
        return self.registry.deploy_source(source)

    def create_gateway(
        self,
        module: str,
        admin: str,
        init_data: Any = None,
        gateway_id: Optional[str] = None,
    ) -> Gateway:
        """
        Construct a new gateway.

        Args:
            module: Identity of the initial logic module
            admin: Identity of the initial admin (usually a broker)
            init_data: Optional init call for the module
            gateway_id: Identity for the gateway (generated if omitted)

        Returns:
            The constructed gateway
        """
        gateway_id = gateway_id or new_address()

        with self._lock:
            if gateway_id in self._gateways:
                raise GatewayError(f'Gateway {gateway_id} is already constructed')

            gateway = Gateway(
                gateway_id=gateway_id,
                store=self._store(gateway_id),
                forwarder=self.forwarder,
                initial_module=module,
                initial_admin=admin,
                init_data=init_data,
                logger=self._logger(gateway_id),
                strict_admin=self.strict_admin,
            )

            self._gateways[gateway_id] = gateway
            return gateway

    def load_gateway(self, gateway_id: str) -> Gateway:
        """
        Get a gateway, reopening it from disk if needed.

        Raises:
            GatewayNotFoundError: If no gateway was constructed at gateway_id
        """
        with self._lock:
            if gateway_id in self._gateways:
                return self._gateways[gateway_id]

            if gateway_id in self._broker_ids():
                raise GatewayNotFoundError(f'{gateway_id} is a broker, not a gateway')

            gateway = Gateway.open(
                gateway_id,
                store=self._store(gateway_id),
                forwarder=self.forwarder,
                logger=self._logger(gateway_id),
                strict_admin=self.strict_admin,
            )

            self._gateways[gateway_id] = gateway
            return gateway

    def list_gateways(self) -> List[str]:
        """Identities of all constructed gateways"""
        state_dir = self.base_dir / 'state'
        if not state_dir.exists():
            return []

        brokers = self._broker_ids()
        return sorted(
            p.name for p in state_dir.iterdir()
            if (p / 'slots.tsv').exists() and p.name not in brokers
        )

    def create_broker(self, owner: str, broker_id: Optional[str] = None) -> AdminBroker:
        """Create an admin broker owned by owner"""
        broker_id = broker_id or new_address()

        with self._lock:
            broker = AdminBroker(
                broker_id,
                store=self._store(broker_id),
                owner=owner,
                logger=self._logger(broker_id),
            )

            with open(self.brokers_file, 'a') as f:
                f.write(f'{broker_id}\n')

            self._brokers[broker_id] = broker
            return broker

    def load_broker(self, broker_id: str) -> AdminBroker:
        """Get a broker, reopening it from disk if needed"""
        with self._lock:
            if broker_id in self._brokers:
                return self._brokers[broker_id]

            if broker_id not in self._broker_ids():
                raise GatewayNotFoundError(f'No broker created at {broker_id}')

            broker = AdminBroker.open(
                broker_id,
                store=self._store(broker_id),
                logger=self._logger(broker_id),
            )

            self._brokers[broker_id] = broker
            return broker

    def get_logs(self, object_id: str, level: Optional[str] = None, limit: Optional[int] = None):
        """Get a gateway's or broker's self-log"""
        return self._logger(object_id).get_logs(level=level, limit=limit)

    def _broker_ids(self) -> set:
        if not self.brokers_file.exists():
            return set()
        return {line.strip() for line in self.brokers_file.read_text().splitlines() if line.strip()}

    def _store(self, object_id: str) -> PersistentSlotStore:
        return PersistentSlotStore(
            object_id,
            self.base_dir,
            event_log=EventLog(object_id, self.base_dir),
        )

    def _logger(self, object_id: str) -> SelfLogger:
        return SelfLogger(object_id, self.base_dir, max_log_size=self.max_log_size)
