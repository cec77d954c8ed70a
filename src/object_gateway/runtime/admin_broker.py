"""
Admin Broker

The recommended admin of a gateway. A broker has an owner; the owner drives
the gateway's admin operations through the broker, so the owner's own
identity never needs to be the gateway admin. (If it were, every call the
owner made to the gateway would be taken as an admin call and the module's
own operations would be out of its reach.)

The broker calls the gateway with its own identity. Whether the gateway
accepts the call is decided by the gateway: the broker must be its admin.
"""

from typing import Any

from object_gateway.core.errors import GatewayNotFoundError, InvalidAddress, Unauthorized
from object_gateway.core.events import OWNERSHIP_TRANSFERRED
from object_gateway.core.identity import OWNER_SLOT, is_null
from object_gateway.core.slot_store import PersistentSlotStore


class AdminBroker:
    """
    Owner-gated admin for gateways.

    Create with AdminBroker(broker_id, store, owner); reopen a persisted one
    with AdminBroker.open(broker_id, store).
    """

    def __init__(self, broker_id: str, store: PersistentSlotStore, owner: str, logger: Any = None):
        """
        Initialize broker.

        Args:
            broker_id: The broker's own identity
            store: Slot store for this broker
            owner: Initial owner (the creator)
            logger: Optional SelfLogger

        Raises:
            InvalidAddress: If owner is the null identity
        """
        if is_null(owner):
            raise InvalidAddress('Owner is the null identity')

        self.address = broker_id
        self.store = store
        self.logger = logger

        with store.transaction():
            store.set(OWNER_SLOT, owner)
            store.emit(OWNERSHIP_TRANSFERRED, previous=None, owner=owner)

        if self.logger:
            self.logger.info('Broker created', owner=owner)

    @classmethod
    def open(cls, broker_id: str, store: PersistentSlotStore, logger: Any = None) -> 'AdminBroker':
        """Reopen a persisted broker"""
        if not store.exists():
            raise GatewayNotFoundError(f'No broker created at {broker_id}')

        broker = cls.__new__(cls)
        broker.address = broker_id
        broker.store = store
        broker.logger = logger
        return broker

    @property
    def owner(self) -> str:
        return self.store.get(OWNER_SLOT)

    # Read-only, open to anyone

    def get_module(self, gateway) -> str:
        """Active module of a gateway this broker administers"""
        return gateway.dispatch(self.address, 'implementation')

    def get_admin(self, gateway) -> str:
        """Admin of a gateway this broker administers"""
        return gateway.dispatch(self.address, 'admin')

    # Owner only

    def change_admin(self, caller: str, gateway, new_admin: str) -> None:
        self._only_owner(caller)
        gateway.dispatch(self.address, 'changeAdmin', new_admin)
        self._log_action('changeAdmin', gateway, new_admin=new_admin)

    def upgrade(self, caller: str, gateway, new_module: str) -> None:
        self._only_owner(caller)
        gateway.dispatch(self.address, 'upgradeTo', new_module)
        self._log_action('upgradeTo', gateway, module=new_module)

    def upgrade_and_initialize(
        self,
        caller: str,
        gateway,
        new_module: str,
        init_data: Any,
        value: Any = 0,
    ) -> Any:
        """
        Upgrade a gateway and run an init call on the new module.

        Returns:
            The init call's return value
        """
        self._only_owner(caller)
        result = gateway.dispatch(self.address, 'upgradeToAndCall', new_module, init_data, value=value)
        self._log_action('upgradeToAndCall', gateway, module=new_module)
        return result

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """
        Hand the broker to a new owner.

        Raises:
            Unauthorized: If caller is not the owner
            InvalidAddress: If new_owner is the null identity
        """
        self._only_owner(caller)
        if is_null(new_owner):
            raise InvalidAddress('New owner is the null identity')
        self._set_owner(new_owner)

    def renounce_ownership(self, caller: str) -> None:
        """Leave the broker without an owner. Owner-only operations stop working for good."""
        self._only_owner(caller)
        self._set_owner(None)

    def _set_owner(self, new_owner) -> None:
        previous = self.owner

        with self.store.transaction():
            self.store.set(OWNER_SLOT, new_owner)
            self.store.emit(OWNERSHIP_TRANSFERRED, previous=previous, owner=new_owner)

        if self.logger:
            self.logger.warning('Ownership transferred', previous=previous, owner=new_owner)

    def _only_owner(self, caller: str) -> None:
        owner = self.owner
        if is_null(owner) or caller != owner:
            if self.logger:
                self.logger.error('Unauthorized broker call', caller=caller)
            raise Unauthorized(f'{caller} is not the broker owner')

    def _log_action(self, action: str, gateway, **fields) -> None:
        if self.logger:
            self.logger.warning(f'{action} sent', gateway=gateway.address, **fields)
